"""
Module: gst_engines.statement
Responsibility:
    Merge a party's (or all parties') invoices and payments into a single
    chronological debit/credit ledger with a running balance and a totals
    row, for on-screen statements and CSV/PDF export.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Ledger entries are never persisted; they are rebuilt from committed
    invoice and payment snapshots on every request.

Invariants enforced:
    - Sale invoices and outgoing payments are debits; purchase invoices
      and incoming payments are credits.
    - Entries are ordered by date ascending; ties keep insertion order
      (invoices first, then payments, each in input order).
    - running_balance folds ``debit - credit`` from the starting balance,
      matching the party sign convention (positive = receivable).
    - closing_balance == opening_balance + total_debit - total_credit.
    - Building twice from identical snapshots yields identical output.

Failure modes:
    - ValueError when ``start`` is after ``end``.
    - Errors from InvoiceTotalCalculator propagate.

Usage:
    from gst_engines.statement import StatementBuilder

    statement = StatementBuilder().build(
        invoices=invoices,
        payments=payments,
        start=date(2025, 4, 1),
        end=date(2026, 3, 31),
        party_ref="party-7",
    )
    statement.totals.closing_balance
    statement.export_rows()
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

from gst_engines.invoice_totals import InvoiceTotalCalculator
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

logger = get_logger("engines.statement")

EXPORT_FIELDS: tuple[str, ...] = ("S.No", "Date", "Particulars", "Debit", "Credit")
EXPORT_DATE_FORMAT = "%d/%m/%Y"


class LedgerSource(str, Enum):
    INVOICE = "invoice"
    PAYMENT = "payment"


@dataclass(frozen=True)
class LedgerEntry:
    """
    One row of a ledger statement.

    Contract:
        Exactly one of debit/credit is non-zero for a non-zero source
        amount; both are >= 0. ``running_balance`` is the balance after
        this row.
    """

    date: date
    description: str
    debit: Money
    credit: Money
    source_kind: LedgerSource
    source_ref: str
    party_ref: str
    running_balance: Money


@dataclass(frozen=True)
class StatementTotals:
    total_debit: Money
    total_credit: Money
    opening_balance: Money
    closing_balance: Money

    @property
    def label(self) -> BalanceLabel:
        return BalanceLabel.for_amount(self.closing_balance)


@dataclass(frozen=True)
class Statement:
    """A built ledger statement: entries plus totals row."""

    entries: tuple[LedgerEntry, ...]
    totals: StatementTotals
    start: date | None = None
    end: date | None = None
    party_ref: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def export_rows(self) -> list[dict[str, str]]:
        """
        Plain rows for the CSV/PDF exporters.

        One row per entry, then a ``Total`` row and a ``Balance`` row. An
        ``Opening Balance`` row leads when the statement starts from a
        non-zero balance. Amounts are two-decimal strings, blank when zero.
        """
        rows: list[dict[str, str]] = []
        opening = self.totals.opening_balance
        if not opening.is_zero:
            rows.append(_balance_row("Opening Balance", opening))

        for index, entry in enumerate(self.entries, start=1):
            rows.append({
                "S.No": str(index),
                "Date": entry.date.strftime(EXPORT_DATE_FORMAT),
                "Particulars": entry.description,
                "Debit": _format_amount(entry.debit),
                "Credit": _format_amount(entry.credit),
            })

        rows.append({
            "S.No": "",
            "Date": "",
            "Particulars": "Total",
            "Debit": _format_amount(self.totals.total_debit, blank_zero=False),
            "Credit": _format_amount(self.totals.total_credit, blank_zero=False),
        })
        rows.append(_balance_row("Balance", self.totals.closing_balance))
        return rows


def _format_amount(amount: Money, blank_zero: bool = True) -> str:
    if blank_zero and amount.is_zero:
        return ""
    return str(amount.round().amount)


def _balance_row(label: str, balance: Money) -> dict[str, str]:
    return {
        "S.No": "",
        "Date": "",
        "Particulars": label,
        "Debit": _format_amount(balance) if balance.is_positive else "",
        "Credit": _format_amount(abs(balance)) if balance.is_negative else "",
    }


def _in_range(on: date, start: date | None, end: date | None) -> bool:
    if start is not None and on < start:
        return False
    if end is not None and on > end:
        return False
    return True


def invoice_description(invoice: Invoice) -> str:
    prefix = "To" if invoice.kind == InvoiceKind.SALE else "By"
    return f"{prefix} Invoice No - {invoice.display_number}"


def payment_description(payment: Payment) -> str:
    prefix = "By" if payment.direction == PaymentDirection.IN else "To"
    return f"{prefix} {payment.mode.value.upper()} - {payment.note or 'Payment'}"


class StatementBuilder:
    """
    Build ledger statements from invoice and payment snapshots.

    Contract:
        Pure functions; all data passed as parameters.
    Non-goals:
        - Does not render CSV or PDF; ``Statement.export_rows`` hands plain
          rows to the exporters.
    """

    def __init__(self, calculator: InvoiceTotalCalculator | None = None):
        self._calculator = calculator or InvoiceTotalCalculator()

    @traced_engine("statement", "1.0", fingerprint_fields=("start", "end", "party_ref", "opening_balance"))
    def build(
        self,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        start: date | None = None,
        end: date | None = None,
        party_ref: str | None = None,
        opening_balance: Money | None = None,
    ) -> Statement:
        """
        Build a statement over an inclusive date range.

        Args:
            invoices: All invoice snapshots; deleted ones are skipped.
            payments: All payment snapshots; deleted ones are skipped.
            start: First date included (None = unbounded).
            end: Last date included (None = unbounded).
            party_ref: Restrict to one party; None means all parties.
            opening_balance: Starting balance of the running column
                (zero when omitted).

        Raises:
            ValueError: start is after end.
        """
        if start is not None and end is not None and start > end:
            logger.error("statement_invalid_range", extra={
                "start": start.isoformat(), "end": end.isoformat(),
            })
            raise ValueError(f"Statement start {start} is after end {end}")

        opening = opening_balance if opening_balance is not None else Money.zero()
        raw = [
            entry for entry in self._collect(invoices, payments, party_ref)
            if _in_range(entry[0], start, end)
        ]
        statement = self._assemble(raw, opening, start, end, party_ref)

        logger.info("statement_built", extra={
            "party_ref": party_ref,
            "start": start.isoformat() if start else None,
            "end": end.isoformat() if end else None,
            "entry_count": len(statement.entries),
            "total_debit": str(statement.totals.total_debit.amount),
            "total_credit": str(statement.totals.total_credit.amount),
            "closing_balance": str(statement.totals.closing_balance.amount),
        })
        return statement

    def build_party_ledger(
        self,
        party: Party,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        start: date | None = None,
        end: date | None = None,
    ) -> Statement:
        """
        Full ledger of one party, starting from its opening balance.

        Activity dated before ``start`` is brought forward into the
        starting balance, so the closing balance always equals the party's
        current balance as of ``end``.
        """
        brought_forward = party.opening_balance
        if start is not None:
            for entry_date, _, debit, credit, *_ in self._collect(invoices, payments, party.id):
                if entry_date < start:
                    brought_forward = brought_forward + debit - credit

        return self.build(
            invoices=invoices,
            payments=payments,
            start=start,
            end=end,
            party_ref=party.id,
            opening_balance=brought_forward,
        )

    def _collect(
        self,
        invoices: Sequence[Invoice],
        payments: Sequence[Payment],
        party_ref: str | None,
    ) -> list[tuple[date, str, Money, Money, LedgerSource, str, str]]:
        """Unsorted (date, description, debit, credit, kind, ref, party) tuples."""
        zero = Money.zero()
        raw: list[tuple[date, str, Money, Money, LedgerSource, str, str]] = []

        for invoice in invoices:
            if invoice.is_deleted or (party_ref is not None and invoice.party_ref != party_ref):
                continue
            grand_total = self._calculator.calculate_for_invoice(invoice).grand_total
            is_debit = invoice.kind == InvoiceKind.SALE
            if grand_total.is_negative:
                # a negative total posts its magnitude to the opposite column
                grand_total = abs(grand_total)
                is_debit = not is_debit
            raw.append((
                invoice.date,
                invoice_description(invoice),
                grand_total if is_debit else zero,
                zero if is_debit else grand_total,
                LedgerSource.INVOICE,
                invoice.id,
                invoice.party_ref,
            ))

        for payment in payments:
            if payment.is_deleted or (party_ref is not None and payment.party_ref != party_ref):
                continue
            is_in = payment.direction == PaymentDirection.IN
            raw.append((
                payment.date,
                payment_description(payment),
                zero if is_in else payment.amount,
                payment.amount if is_in else zero,
                LedgerSource.PAYMENT,
                payment.id,
                payment.party_ref,
            ))

        return raw

    @staticmethod
    def _assemble(
        raw: list[tuple[date, str, Money, Money, LedgerSource, str, str]],
        opening: Money,
        start: date | None,
        end: date | None,
        party_ref: str | None,
    ) -> Statement:
        # sorted() is stable: ties keep insertion order
        ordered = sorted(raw, key=lambda r: r[0])

        entries: list[LedgerEntry] = []
        running = opening
        total_debit = Money.zero()
        total_credit = Money.zero()
        for entry_date, description, debit, credit, kind, ref, party in ordered:
            running = running + debit - credit
            total_debit = total_debit + debit
            total_credit = total_credit + credit
            entries.append(LedgerEntry(
                date=entry_date,
                description=description,
                debit=debit,
                credit=credit,
                source_kind=kind,
                source_ref=ref,
                party_ref=party,
                running_balance=running,
            ))

        totals = StatementTotals(
            total_debit=total_debit,
            total_credit=total_credit,
            opening_balance=opening,
            closing_balance=opening + total_debit - total_credit,
        )
        return Statement(
            entries=tuple(entries),
            totals=totals,
            start=start,
            end=end,
            party_ref=party_ref,
        )
