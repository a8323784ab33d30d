"""
Module: gst_engines.party_balance
Responsibility:
    Derive a party's current balance from its opening balance and the full
    history of its invoices and payments, plus the per-party breakdowns the
    front end shows (sales, purchases, received, paid, unpaid invoices).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Holds no state between calls. Recomputes from the full history on
    every call, so a missed update upstream can never leave a stale
    balance behind.

Invariants enforced:
    - current_balance = opening_balance + sum(sale grand totals)
      - sum(purchase grand totals) - sum(payments in) + sum(payments out),
      over non-deleted records of the party.
    - The result is independent of the order of the input collections
      (it is a sum).

Failure modes:
    - Errors from InvoiceTotalCalculator propagate (a stored invoice with
      no line items raises EmptyInvoiceError).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from gst_engines.invoice_totals import InvoiceTotalCalculator, InvoiceTotals
from gst_engines.tracer import traced_engine
from gst_kernel.domain.records import (
    BalanceLabel,
    Invoice,
    InvoiceKind,
    Party,
    Payment,
    PaymentDirection,
)
from gst_kernel.domain.values import Money
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.party_balance")


@dataclass(frozen=True)
class PartyBalance:
    """Breakdown of a party's balance."""

    party_ref: str
    opening_balance: Money
    sales_total: Money
    purchases_total: Money
    received_total: Money
    paid_total: Money
    current_balance: Money

    @property
    def label(self) -> BalanceLabel:
        return BalanceLabel.for_amount(self.current_balance)


def _for_party(records: Iterable, party_ref: str | None) -> list:
    return [
        r for r in records
        if not r.is_deleted and (party_ref is None or r.party_ref == party_ref)
    ]


class PartyLedgerEngine:
    """
    Compute party balances as a pure fold over invoices and payments.

    Contract:
        Pure functions; all data passed as parameters.
    Guarantees:
        - ``current_balance`` is order-independent.
        - ``summarize(...).current_balance == current_balance(...)``.
    """

    def __init__(self, calculator: InvoiceTotalCalculator | None = None):
        self._calculator = calculator or InvoiceTotalCalculator()

    @traced_engine("party_balance", "1.0", fingerprint_fields=("opening_balance", "party_ref"))
    def current_balance(
        self,
        opening_balance: Money,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        party_ref: str | None = None,
    ) -> Money:
        """
        Fold the party balance formula over the supplied history.

        Args:
            opening_balance: Signed opening balance of the party.
            invoices: Invoice snapshots; deleted ones are skipped.
            payments: Payment snapshots; deleted ones are skipped.
            party_ref: When given, only records of this party count.
                When None, the collections are assumed to belong to one
                party already.
        """
        return self._fold(opening_balance, invoices, payments, party_ref).current_balance

    def summarize(
        self,
        party: Party,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
    ) -> PartyBalance:
        """Balance breakdown for one party."""
        result = self._fold(party.opening_balance, invoices, payments, party.id)
        logger.info("party_balance_computed", extra={
            "party_ref": party.id,
            "current_balance": str(result.current_balance.amount),
            "label": result.label.value,
        })
        return result

    def unpaid_invoices(
        self,
        party_ref: str,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
    ) -> list[tuple[Invoice, InvoiceTotals]]:
        """Non-deleted invoices of the party with a positive balance, in input order."""
        unpaid = []
        for invoice in _for_party(invoices, party_ref):
            totals = self._calculator.calculate_for_invoice(invoice, payments)
            if totals.balance.is_positive:
                unpaid.append((invoice, totals))
        return unpaid

    def total_due(
        self,
        party_ref: str,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
    ) -> Money:
        """Sum of the balances of the party's unpaid invoices."""
        return Money.total(
            totals.balance for _, totals in self.unpaid_invoices(party_ref, invoices, payments)
        )

    def _fold(
        self,
        opening_balance: Money,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        party_ref: str | None,
    ) -> PartyBalance:
        sales = Money.zero()
        purchases = Money.zero()
        for invoice in _for_party(invoices, party_ref):
            grand_total = self._calculator.calculate_for_invoice(invoice).grand_total
            if invoice.kind == InvoiceKind.SALE:
                sales = sales + grand_total
            else:
                purchases = purchases + grand_total

        received = Money.zero()
        paid = Money.zero()
        for payment in _for_party(payments, party_ref):
            if payment.direction == PaymentDirection.IN:
                received = received + payment.amount
            else:
                paid = paid + payment.amount

        current = opening_balance + sales - purchases - received + paid
        logger.debug("party_balance_folded", extra={
            "party_ref": party_ref,
            "invoice_count": len(invoices),
            "payment_count": len(payments),
            "current_balance": str(current.amount),
        })
        return PartyBalance(
            party_ref=party_ref or "",
            opening_balance=opening_balance,
            sales_total=sales,
            purchases_total=purchases,
            received_total=received,
            paid_total=paid,
            current_balance=current,
        )
