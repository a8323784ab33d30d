"""
Typed exception hierarchy for the GST ledger core.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the mobile front end, export jobs) translate core failures into
user-visible messages. Matching on message text is fragile, so every
failure has:
  1. a TYPED exception class (catch by type, not message)
  2. a CODE class attribute (machine-readable, API-safe)
  3. structured DATA attributes (not just a message string)

Example:
    try:
        result = reconciler.reconcile(payment, invoice_balance=due)
    except OverpaymentError as e:
        show_error(f"Amount cannot exceed invoice due ({e.max_admissible})")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GstKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidLineItemError
    |   +-- InvalidTaxConfigurationError
    |   +-- EmptyInvoiceError
    |   +-- UnsupportedPaymentModeError
    |
    +-- PaymentError
    |   +-- OverpaymentError
    |   +-- InvoicePartyMismatchError
    |
    +-- SnapshotError
        +-- DuplicateRecordError
        +-- UnknownPartyOrInvoiceError
            +-- PartyNotFoundError
            +-- InvoiceNotFoundError
            +-- PaymentNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                       | When Raised
------------|----------------------------|-------------------------------------
Validation  | INVALID_AMOUNT             | Negative, zero or non-finite money
            | INVALID_LINE_ITEM          | quantity <= 0 or rate < 0
            | INVALID_TAX_CONFIGURATION  | CGST/SGST and IGST both non-zero
            | EMPTY_INVOICE              | Invoice without line items
            | UNSUPPORTED_PAYMENT_MODE   | Mode not enabled in configuration
------------|----------------------------|-------------------------------------
Payment     | OVERPAYMENT                | Amount exceeds linked invoice due
            | INVOICE_PARTY_MISMATCH     | Linked invoice of another party
------------|----------------------------|-------------------------------------
Snapshot    | DUPLICATE_RECORD           | Id already present on create
            | PARTY_NOT_FOUND            | Party id absent from the snapshot
            | INVOICE_NOT_FOUND          | Invoice id absent from the snapshot
            | PAYMENT_NOT_FOUND          | Payment id absent from the snapshot

None of these are retried: the core has no I/O to retry. A failed
validation leaves every derived balance unchanged.
"""

from decimal import Decimal
from typing import Any


class GstKernelError(Exception):
    """
    Base exception for all GST ledger core errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "GST_KERNEL_ERROR"


# Validation exceptions


class ValidationError(GstKernelError):
    """Base exception for local input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Monetary input is negative, zero, non-finite or a float."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: Any, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount for {field}: {value} ({reason})")


class InvalidLineItemError(ValidationError):
    """Line item quantity or rate is out of range."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, item_ref: str, reason: str):
        self.item_ref = item_ref
        self.reason = reason
        super().__init__(f"Invalid line item {item_ref}: {reason}")


class InvalidTaxConfigurationError(ValidationError):
    """
    Tax rates are inconsistent.

    Intra-state (CGST/SGST) and inter-state (IGST) rates are mutually
    exclusive; negative rates are never valid.
    """

    code: str = "INVALID_TAX_CONFIGURATION"

    def __init__(self, cgst: Decimal, sgst: Decimal, igst: Decimal, reason: str):
        self.cgst = str(cgst)
        self.sgst = str(sgst)
        self.igst = str(igst)
        self.reason = reason
        super().__init__(
            f"Invalid tax configuration (cgst={cgst}, sgst={sgst}, igst={igst}): {reason}"
        )


class EmptyInvoiceError(ValidationError):
    """Invoice has no line items."""

    code: str = "EMPTY_INVOICE"

    def __init__(self, invoice_ref: str | None = None):
        self.invoice_ref = invoice_ref
        label = invoice_ref if invoice_ref is not None else "<draft>"
        super().__init__(f"Invoice {label} has no line items")


class UnsupportedPaymentModeError(ValidationError):
    """Payment mode is not accepted by the active configuration."""

    code: str = "UNSUPPORTED_PAYMENT_MODE"

    def __init__(self, mode: str, accepted: list[str]):
        self.mode = mode
        self.accepted = accepted
        super().__init__(f"Payment mode '{mode}' is not accepted; expected one of {accepted}")


# Payment exceptions


class PaymentError(GstKernelError):
    """Base exception for payment reconciliation errors."""

    code: str = "PAYMENT_ERROR"


class OverpaymentError(PaymentError):
    """Payment amount exceeds the linked invoice's outstanding balance."""

    code: str = "OVERPAYMENT"

    def __init__(self, amount: Decimal, max_admissible: Decimal, invoice_ref: str):
        self.amount = str(amount)
        self.max_admissible = str(max_admissible)
        self.invoice_ref = invoice_ref
        super().__init__(
            f"Payment of {amount} exceeds the balance of invoice {invoice_ref}; "
            f"maximum admissible amount is {max_admissible}"
        )


class InvoicePartyMismatchError(PaymentError):
    """Payment is linked to an invoice that belongs to another party."""

    code: str = "INVOICE_PARTY_MISMATCH"

    def __init__(self, payment_ref: str, invoice_ref: str, payment_party: str, invoice_party: str):
        self.payment_ref = payment_ref
        self.invoice_ref = invoice_ref
        self.payment_party = payment_party
        self.invoice_party = invoice_party
        super().__init__(
            f"Payment {payment_ref} for party {payment_party} cannot settle invoice "
            f"{invoice_ref} of party {invoice_party}"
        )


# Snapshot exceptions


class SnapshotError(GstKernelError):
    """Base exception for inconsistencies in caller-supplied snapshots."""

    code: str = "SNAPSHOT_ERROR"


class DuplicateRecordError(SnapshotError):
    """A record with the same id already exists in the snapshot."""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, ref_kind: str, ref: str):
        self.ref_kind = ref_kind
        self.ref = ref
        super().__init__(f"{ref_kind.capitalize()} already exists: {ref}")


class UnknownPartyOrInvoiceError(SnapshotError):
    """Referenced id is not present in the supplied snapshot."""

    code: str = "UNKNOWN_REFERENCE"
    ref_kind: str = "record"

    def __init__(self, ref: str):
        self.ref = ref
        super().__init__(f"Unknown {self.ref_kind}: {ref}")


class PartyNotFoundError(UnknownPartyOrInvoiceError):
    code: str = "PARTY_NOT_FOUND"
    ref_kind: str = "party"


class InvoiceNotFoundError(UnknownPartyOrInvoiceError):
    code: str = "INVOICE_NOT_FOUND"
    ref_kind: str = "invoice"


class PaymentNotFoundError(UnknownPartyOrInvoiceError):
    code: str = "PAYMENT_NOT_FOUND"
    ref_kind: str = "payment"
