"""
Module: gst_engines.invoice_totals
Responsibility:
    Derive subtotal, CGST/SGST/IGST amounts, discount, round-off, grand
    total and balance from an invoice's line items and rates. This is the
    single formula every consumer (entry screen, list, PDF export, party
    ledger) agrees on.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gst_kernel.

Invariants enforced:
    - subtotal == sum(quantity * rate) exactly; no intermediate rounding.
    - Taxes are applied to the unrounded subtotal and stay unrounded.
    - grand_total is a whole currency amount (half away from zero) and
      grand_total - (subtotal + taxes - discount) == round_off, always.
    - Every call recomputes from scratch; nothing is patched incrementally.
    - balance is never clamped: a negative balance means overpaid.

Failure modes:
    - EmptyInvoiceError when no line items are supplied.
    - InvalidLineItemError / InvalidTaxConfigurationError from the records.
    - InvalidAmountError for a negative discount or paid-at-creation.

Usage:
    from gst_engines.invoice_totals import InvoiceTotalCalculator
    from gst_kernel.domain import LineItem, Money, TaxRates

    totals = InvoiceTotalCalculator().calculate(
        line_items=[LineItem("itm-1", "Cement", Decimal("2"), Money.of("1000"))],
        discount=Money.zero(),
        tax_rates=TaxRates.intra_state("9", "9"),
    )
    totals.grand_total  # Money(2360)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from gst_engines.tracer import traced_engine
from gst_kernel.domain.records import Invoice, LineItem, Payment, TaxRates
from gst_kernel.domain.values import Money
from gst_kernel.exceptions import EmptyInvoiceError
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_totals")


class SettlementStatus(str, Enum):
    """Payment state of an invoice derived from its balance."""

    PAID = "paid"
    DUE = "due"
    OVERPAID = "overpaid"


@dataclass(frozen=True)
class InvoiceTotals:
    """
    Derived totals of one invoice.

    Contract:
        Frozen result of InvoiceTotalCalculator. All amounts are carried at
        full precision; only grand_total is rounded (to whole units).
    Guarantees:
        - round_off == grand_total - pre_round_total.
        - balance == grand_total - paid_at_creation - payments_applied.
    """

    subtotal: Money
    cgst_amount: Money
    sgst_amount: Money
    igst_amount: Money
    discount: Money
    pre_round_total: Money
    round_off: Money
    grand_total: Money
    paid_at_creation: Money
    payments_applied: Money
    balance: Money

    @property
    def tax_total(self) -> Money:
        return self.cgst_amount + self.sgst_amount + self.igst_amount

    @property
    def amount_paid(self) -> Money:
        return self.paid_at_creation + self.payments_applied

    @property
    def is_overpaid(self) -> bool:
        return self.balance.is_negative

    @property
    def settlement(self) -> SettlementStatus:
        if self.balance.is_zero:
            return SettlementStatus.PAID
        if self.balance.is_negative:
            return SettlementStatus.OVERPAID
        return SettlementStatus.DUE


def linked_payments(invoice_ref: str, payments: Iterable[Payment]) -> tuple[Payment, ...]:
    """Non-deleted payments applied to the given invoice."""
    return tuple(
        p for p in payments
        if not p.is_deleted and p.linked_invoice_ref == invoice_ref
    )


class InvoiceTotalCalculator:
    """
    Calculate invoice totals.

    Contract:
        Pure functions -- no I/O, no hidden state. Identical inputs always
        produce identical InvoiceTotals.
    Non-goals:
        - Does not reject a negative grand total (discount larger than the
          taxed subtotal); that is a caller-level policy.
        - Does not clamp the balance.
    """

    @traced_engine(
        "invoice_totals", "1.0",
        fingerprint_fields=("line_items", "discount", "tax_rates", "paid_at_creation"),
    )
    def calculate(
        self,
        line_items: Sequence[LineItem],
        discount: Money,
        tax_rates: TaxRates,
        paid_at_creation: Money | None = None,
        existing_payments: Sequence[Money] = (),
        is_edit: bool = False,
        invoice_ref: str | None = None,
    ) -> InvoiceTotals:
        """
        Compute all derived totals for an invoice draft.

        Args:
            line_items: Ordered line items (at least one).
            discount: Flat discount, >= 0.
            tax_rates: CGST/SGST or IGST percentages.
            paid_at_creation: Amount settled when the invoice was raised.
            existing_payments: Amounts of payments already linked to the
                invoice; only counted when ``is_edit`` is true.
            is_edit: True when recomputing a stored invoice.
            invoice_ref: Used in error messages and logs only.

        Returns:
            InvoiceTotals

        Raises:
            EmptyInvoiceError: no line items.
            InvalidAmountError: negative discount or paid-at-creation.
        """
        if not line_items:
            logger.error("invoice_totals_empty", extra={"invoice_ref": invoice_ref})
            raise EmptyInvoiceError(invoice_ref)

        paid_at_creation = paid_at_creation if paid_at_creation is not None else Money.zero()
        discount.require_non_negative("discount")
        paid_at_creation.require_non_negative("paid_at_creation")

        subtotal = Money.total(item.line_amount for item in line_items)

        cgst_amount = subtotal.percentage_of(tax_rates.cgst)
        sgst_amount = subtotal.percentage_of(tax_rates.sgst)
        igst_amount = subtotal.percentage_of(tax_rates.igst)

        pre_round_total = subtotal + cgst_amount + sgst_amount + igst_amount - discount
        grand_total = pre_round_total.round_to_whole()
        round_off = grand_total - pre_round_total

        payments_applied = Money.total(existing_payments) if is_edit else Money.zero()
        balance = grand_total - paid_at_creation - payments_applied

        totals = InvoiceTotals(
            subtotal=subtotal,
            cgst_amount=cgst_amount,
            sgst_amount=sgst_amount,
            igst_amount=igst_amount,
            discount=discount,
            pre_round_total=pre_round_total,
            round_off=round_off,
            grand_total=grand_total,
            paid_at_creation=paid_at_creation,
            payments_applied=payments_applied,
            balance=balance,
        )

        logger.info("invoice_totals_calculated", extra={
            "invoice_ref": invoice_ref,
            "line_count": len(line_items),
            "is_edit": is_edit,
            "subtotal": str(subtotal.amount),
            "tax_total": str(totals.tax_total.amount),
            "round_off": str(round_off.amount),
            "grand_total": str(grand_total.amount),
            "balance": str(balance.amount),
        })
        if grand_total.is_negative:
            logger.warning("invoice_grand_total_negative", extra={
                "invoice_ref": invoice_ref,
                "grand_total": str(grand_total.amount),
                "discount": str(discount.amount),
            })

        return totals

    def calculate_for_invoice(
        self,
        invoice: Invoice,
        payments: Iterable[Payment] = (),
    ) -> InvoiceTotals:
        """
        Recompute totals for a stored invoice snapshot.

        Payments linked to the invoice (and not deleted) reduce its
        balance; unrelated payments are ignored.
        """
        applied = linked_payments(invoice.id, payments)
        return self.calculate(
            line_items=invoice.line_items,
            discount=invoice.discount,
            tax_rates=invoice.tax_rates,
            paid_at_creation=invoice.paid_at_creation,
            existing_payments=[p.amount for p in applied],
            is_edit=True,
            invoice_ref=invoice.id,
        )

    def invoice_balance(self, invoice: Invoice, payments: Iterable[Payment] = ()) -> Money:
        """Outstanding balance of a stored invoice."""
        return self.calculate_for_invoice(invoice, payments).balance
