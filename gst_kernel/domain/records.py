"""
Records -- Immutable snapshot records exchanged with the remote store.

Responsibility:
    Defines the plain data the core consumes: line items, tax rates,
    invoices, parties and payments. Derived values (totals, balances) are
    never stored on these records; engines recompute them on every read.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Depends only on gst_kernel.domain.values and gst_kernel.exceptions.

Invariants enforced:
    - LineItem: quantity > 0 and rate >= 0; ``line_amount`` is a property,
      never a stored field, so it cannot drift from quantity and rate.
    - TaxRates: rates are non-negative and intra-state (CGST/SGST) and
      inter-state (IGST) rates are never both non-zero.
    - Enum-typed fields are coerced from their string values, so records
      built from store payloads compare equal to hand-built ones.

    Invoice discounts and payment amounts are range-checked by the engines
    that consume them (InvoiceTotalCalculator, PaymentReconciler), which
    is where a caller's proposed values are validated.

Failure modes:
    - InvalidLineItemError and InvalidTaxConfigurationError from
      ``__post_init__``.
    - ValueError for unknown enum values (kind, direction, mode, status).

Sign convention:
    A positive party balance is receivable (the party owes the business);
    a negative one is payable (the business owes the party).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from gst_kernel.domain.values import Money, Numeric, to_decimal
from gst_kernel.exceptions import (
    InvalidAmountError,
    InvalidLineItemError,
    InvalidTaxConfigurationError,
)

_ZERO = Decimal("0")


class InvoiceKind(str, Enum):
    """Whether an invoice records a sale or a purchase."""

    SALE = "sale"
    PURCHASE = "purchase"


class PartyKind(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class PaymentDirection(str, Enum):
    """Direction of cash movement, seen from the business."""

    IN = "in"  # received from the party
    OUT = "out"  # paid to the party


class PaymentMode(str, Enum):
    CASH = "cash"
    BANK = "bank"
    UPI = "upi"
    CHEQUE = "cheque"


class InvoiceStatus(str, Enum):
    """Document workflow status as kept by the remote store."""

    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"


class BalanceLabel(str, Enum):
    """Receivable / Payable classification of a signed balance."""

    RECEIVABLE = "receivable"
    PAYABLE = "payable"
    SETTLED = "settled"

    @classmethod
    def for_amount(cls, balance: Money) -> BalanceLabel:
        if balance.is_positive:
            return cls.RECEIVABLE
        if balance.is_negative:
            return cls.PAYABLE
        return cls.SETTLED

    @property
    def title(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class LineItem:
    """
    One billed line of an invoice.

    Contract:
        ``line_amount = quantity * rate`` at full precision, computed on
        every read.
    Guarantees:
        - quantity is a finite Decimal > 0.
        - rate is Money >= 0.
    """

    item_ref: str
    particular: str
    quantity: Decimal
    rate: Money
    unit: str = ""
    hsn_code: str | None = None

    def __post_init__(self) -> None:
        try:
            quantity = to_decimal(self.quantity, "quantity")
        except InvalidAmountError as e:
            raise InvalidLineItemError(self.item_ref, f"quantity {e.reason}") from e
        if quantity <= _ZERO:
            raise InvalidLineItemError(self.item_ref, f"quantity must be positive, got {quantity}")
        object.__setattr__(self, "quantity", quantity)

        rate = self.rate if isinstance(self.rate, Money) else Money.of(self.rate)
        if rate.is_negative:
            raise InvalidLineItemError(self.item_ref, f"rate must not be negative, got {rate.amount}")
        object.__setattr__(self, "rate", rate)

    @property
    def line_amount(self) -> Money:
        return self.rate.multiply(self.quantity)


@dataclass(frozen=True)
class TaxRates:
    """
    GST percentages applied to an invoice subtotal.

    CGST and SGST apply to intra-state supplies, IGST to inter-state
    supplies. Rates are percentages (``Decimal("9")`` is 9%).
    """

    cgst: Decimal = _ZERO
    sgst: Decimal = _ZERO
    igst: Decimal = _ZERO

    def __post_init__(self) -> None:
        rates = {}
        for name in ("cgst", "sgst", "igst"):
            try:
                rates[name] = to_decimal(getattr(self, name), name)
            except InvalidAmountError as e:
                raise InvalidTaxConfigurationError(
                    self.cgst, self.sgst, self.igst, f"{name} rate {e.reason}"
                ) from e
            object.__setattr__(self, name, rates[name])

        negative = [name for name, rate in rates.items() if rate < _ZERO]
        if negative:
            raise InvalidTaxConfigurationError(
                self.cgst, self.sgst, self.igst,
                f"negative rate(s): {', '.join(negative)}",
            )
        if (self.cgst != _ZERO or self.sgst != _ZERO) and self.igst != _ZERO:
            raise InvalidTaxConfigurationError(
                self.cgst, self.sgst, self.igst,
                "intra-state (CGST/SGST) and inter-state (IGST) rates are mutually exclusive",
            )

    @classmethod
    def intra_state(cls, cgst: Numeric, sgst: Numeric) -> TaxRates:
        return cls(cgst=cgst, sgst=sgst)

    @classmethod
    def inter_state(cls, igst: Numeric) -> TaxRates:
        return cls(igst=igst)

    @classmethod
    def none(cls) -> TaxRates:
        return cls()

    @property
    def is_inter_state(self) -> bool:
        return self.igst != _ZERO

    @property
    def total_rate(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class Invoice:
    """
    Sale or purchase invoice snapshot.

    Derived fields (subtotal, taxes, round-off, grand total, balance) are
    produced by InvoiceTotalCalculator, never stored here.
    """

    id: str
    kind: InvoiceKind
    party_ref: str
    date: date
    line_items: tuple[LineItem, ...]
    discount: Money = field(default_factory=Money.zero)
    tax_rates: TaxRates = field(default_factory=TaxRates)
    paid_at_creation: Money = field(default_factory=Money.zero)
    invoice_number: str | None = None
    site_name: str = ""
    status: InvoiceStatus = InvoiceStatus.DRAFT
    is_deleted: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", InvoiceKind(self.kind))
        object.__setattr__(self, "status", InvoiceStatus(self.status))
        object.__setattr__(self, "line_items", tuple(self.line_items))

    @property
    def display_number(self) -> str:
        return self.invoice_number or self.id


@dataclass(frozen=True)
class Party:
    """
    Trading party (customer or supplier).

    ``opening_balance`` is signed: positive is receivable, negative payable.
    The current balance is derived by PartyLedgerEngine.
    """

    id: str
    name: str
    kind: PartyKind
    opening_balance: Money = field(default_factory=Money.zero)
    gstin: str | None = None
    contact: str = ""
    address: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", PartyKind(self.kind))


@dataclass(frozen=True)
class Payment:
    """Money received from (IN) or paid to (OUT) a party."""

    id: str
    direction: PaymentDirection
    party_ref: str
    amount: Money
    mode: PaymentMode
    date: date
    linked_invoice_ref: str | None = None
    note: str = ""
    is_deleted: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", PaymentDirection(self.direction))
        object.__setattr__(self, "mode", PaymentMode(self.mode))

    @property
    def is_linked(self) -> bool:
        return self.linked_invoice_ref is not None
