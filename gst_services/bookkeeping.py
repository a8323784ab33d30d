"""
gst_services.bookkeeping -- Snapshot-in / snapshot-out bookkeeping workflows.

Responsibility:
    Orchestrate the engines for every balance-affecting mutation the front
    end performs (create, edit and delete of invoices and payments) and for
    the read-side projections (invoice totals, party balances, statements).
    Each mutation validates against the supplied ``LedgerSnapshot`` and
    returns a new snapshot together with the re-derived balances.

Architecture position:
    Services -- orchestration over engines + kernel + config.
    Holds no mutable state between calls. The caller loads a snapshot from
    the remote store, calls one mutation, and persists the returned records.

Invariants enforced:
    - Invoice and party balances in a result are recomputed from the full
      new snapshot, never patched incrementally.
    - A linked payment satisfies ``0 < amount <= invoice balance`` when it
      is applied; edits reverse the old payment before reapplying the new
      one (PaymentReconciler.edit).
    - Deleted records are invisible to lookups and to every projection.
    - Deleting an invoice unlinks its payments; they keep adjusting the
      party balance as direct payments.
    - A negative grand total is rejected unless the configuration allows it.

Failure modes:
    - PartyNotFoundError / InvoiceNotFoundError / PaymentNotFoundError for
      references absent from the snapshot.
    - DuplicateRecordError when creating a record whose id already exists.
    - UnsupportedPaymentModeError for modes the configuration disables.
    - InvoicePartyMismatchError for a payment linked to another party's
      invoice.
    - OverpaymentError, InvalidAmountError and the other kernel validation
      errors propagate from the engines.
    On any failure no result is produced; the input snapshot is untouched.

Audit relevance:
    Every mutation logs a ``bookkeeping_*`` event with the record ids and
    resulting balances, inside a LogContext bound to the party, invoice
    and payment ids.

Usage:
    from gst_services import BookkeepingService, LedgerSnapshot

    service = BookkeepingService()
    result = service.record_invoice(snapshot, invoice)
    result.invoice_totals[invoice.id].grand_total
    result.party_balances[invoice.party_ref].current_balance
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from gst_config.schema import InvoicingConfig
from gst_engines.invoice_totals import InvoiceTotalCalculator, InvoiceTotals, linked_payments
from gst_engines.party_balance import PartyBalance, PartyLedgerEngine
from gst_engines.payment_reconciler import (
    PaymentEditResult,
    PaymentReconciler,
    ReconciliationResult,
)
from gst_engines.statement import Statement, StatementBuilder
from gst_kernel.domain.records import Invoice, Party, Payment
from gst_kernel.domain.values import Money
from gst_kernel.exceptions import (
    DuplicateRecordError,
    InvalidAmountError,
    InvoiceNotFoundError,
    InvoicePartyMismatchError,
    OverpaymentError,
    PartyNotFoundError,
    PaymentNotFoundError,
    UnsupportedPaymentModeError,
)
from gst_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.bookkeeping")


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    Immutable view of a business's parties, invoices and payments.

    Records keep their input order. Soft-deleted records stay in the
    collections (the remote store keeps them) but are invisible to the
    ``party`` / ``invoice`` / ``payment`` lookups.
    """

    parties: tuple[Party, ...] = ()
    invoices: tuple[Invoice, ...] = ()
    payments: tuple[Payment, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parties", tuple(self.parties))
        object.__setattr__(self, "invoices", tuple(self.invoices))
        object.__setattr__(self, "payments", tuple(self.payments))

    def party(self, party_id: str) -> Party:
        for party in self.parties:
            if party.id == party_id:
                return party
        raise PartyNotFoundError(party_id)

    def invoice(self, invoice_id: str) -> Invoice:
        for invoice in self.invoices:
            if invoice.id == invoice_id and not invoice.is_deleted:
                return invoice
        raise InvoiceNotFoundError(invoice_id)

    def payment(self, payment_id: str) -> Payment:
        for payment in self.payments:
            if payment.id == payment_id and not payment.is_deleted:
                return payment
        raise PaymentNotFoundError(payment_id)

    def has_invoice(self, invoice_id: str) -> bool:
        return any(i.id == invoice_id and not i.is_deleted for i in self.invoices)

    def has_payment(self, payment_id: str) -> bool:
        return any(p.id == payment_id and not p.is_deleted for p in self.payments)

    def with_invoice(self, invoice: Invoice) -> LedgerSnapshot:
        """New snapshot with ``invoice`` replacing the record of the same id, or appended."""
        return replace(self, invoices=_upsert(self.invoices, invoice))

    def with_payment(self, payment: Payment) -> LedgerSnapshot:
        """New snapshot with ``payment`` replacing the record of the same id, or appended."""
        return replace(self, payments=_upsert(self.payments, payment))

    def with_payments(self, payments: Iterable[Payment]) -> LedgerSnapshot:
        snapshot = self
        for payment in payments:
            snapshot = snapshot.with_payment(payment)
        return snapshot


def _upsert(records: tuple, record) -> tuple:
    # Only the live record with the id is replaced; deleted tombstones stay.
    for index, existing in enumerate(records):
        if existing.id == record.id and not existing.is_deleted:
            return records[:index] + (record,) + records[index + 1:]
    return records + (record,)


@dataclass(frozen=True)
class BookkeepingResult:
    """
    Outcome of one mutation.

    ``invoice_totals`` holds the recomputed totals of every live invoice
    the mutation touched; ``party_balances`` the balance of every party
    touched. ``reconciliation`` is set for payment mutations.
    """

    snapshot: LedgerSnapshot
    invoice_totals: dict[str, InvoiceTotals] = field(default_factory=dict)
    party_balances: dict[str, PartyBalance] = field(default_factory=dict)
    reconciliation: ReconciliationResult | PaymentEditResult | None = None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class BookkeepingService:
    """
    Invoice and payment workflows over immutable snapshots.

    Contract:
        Every method takes the current snapshot and returns either a
        BookkeepingResult (mutations) or a derived value (projections).
    Non-goals:
        - Does not persist anything or talk to the remote store.
        - Does not serialize concurrent mutations; callers apply one
          balance-affecting mutation at a time.
    """

    def __init__(
        self,
        config: InvoicingConfig | None = None,
        calculator: InvoiceTotalCalculator | None = None,
        reconciler: PaymentReconciler | None = None,
    ):
        self._config = config or InvoicingConfig()
        self._calculator = calculator or InvoiceTotalCalculator()
        self._reconciler = reconciler or PaymentReconciler()
        self._ledger = PartyLedgerEngine(self._calculator)
        self._statements = StatementBuilder(self._calculator)

    @property
    def config(self) -> InvoicingConfig:
        return self._config

    # -- invoices ----------------------------------------------------------

    def record_invoice(self, snapshot: LedgerSnapshot, invoice: Invoice) -> BookkeepingResult:
        """
        Create an invoice.

        Payments are not considered on create: the balance is the grand
        total less the amount paid at creation, which may not exceed it.

        Raises:
            DuplicateRecordError: a live invoice with this id exists.
            PartyNotFoundError: unknown party.
            OverpaymentError: paid_at_creation exceeds the grand total.
            InvalidAmountError: negative grand total while not allowed.
        """
        with LogContext.bind(party_id=invoice.party_ref, invoice_id=invoice.id):
            if snapshot.has_invoice(invoice.id):
                raise DuplicateRecordError("invoice", invoice.id)
            snapshot.party(invoice.party_ref)

            totals = self._calculator.calculate(
                line_items=invoice.line_items,
                discount=invoice.discount,
                tax_rates=invoice.tax_rates,
                paid_at_creation=invoice.paid_at_creation,
                is_edit=False,
                invoice_ref=invoice.id,
            )
            self._check_grand_total(invoice, totals)
            if invoice.paid_at_creation.is_positive and totals.balance.is_negative:
                max_admissible = max(totals.grand_total, Money.zero())
                logger.warning("bookkeeping_paid_at_creation_rejected", extra={
                    "invoice_ref": invoice.id,
                    "paid_at_creation": str(invoice.paid_at_creation.amount),
                    "grand_total": str(totals.grand_total.amount),
                })
                raise OverpaymentError(
                    invoice.paid_at_creation.amount, max_admissible.amount, invoice.id,
                )

            new_snapshot = snapshot.with_invoice(invoice)
            result = BookkeepingResult(
                snapshot=new_snapshot,
                invoice_totals={invoice.id: totals},
                party_balances=self._balances(new_snapshot, [invoice.party_ref]),
            )
            logger.info("bookkeeping_invoice_recorded", extra={
                "invoice_ref": invoice.id,
                "kind": invoice.kind.value,
                "grand_total": str(totals.grand_total.amount),
                "balance": str(totals.balance.amount),
            })
            return result

    def edit_invoice(self, snapshot: LedgerSnapshot, invoice: Invoice) -> BookkeepingResult:
        """
        Replace a stored invoice with an edited version.

        Totals are recomputed from scratch with the linked payments
        subtracted. Lowering the grand total below what has already been
        paid leaves the invoice overpaid (negative balance), which is
        reported but not rejected.

        Raises:
            InvoiceNotFoundError, PartyNotFoundError, InvalidAmountError.
            InvoicePartyMismatchError: the party changes while payments
                are still linked to the invoice.
        """
        with LogContext.bind(party_id=invoice.party_ref, invoice_id=invoice.id):
            previous = snapshot.invoice(invoice.id)
            snapshot.party(invoice.party_ref)
            if previous.party_ref != invoice.party_ref:
                for linked in linked_payments(invoice.id, snapshot.payments):
                    raise InvoicePartyMismatchError(
                        linked.id, invoice.id, linked.party_ref, invoice.party_ref,
                    )

            totals = self._calculator.calculate_for_invoice(invoice, snapshot.payments)
            self._check_grand_total(invoice, totals)
            if totals.is_overpaid:
                logger.warning("bookkeeping_invoice_overpaid", extra={
                    "invoice_ref": invoice.id,
                    "grand_total": str(totals.grand_total.amount),
                    "balance": str(totals.balance.amount),
                })

            new_snapshot = snapshot.with_invoice(replace(invoice, is_deleted=False))
            parties = _unique([previous.party_ref, invoice.party_ref])
            result = BookkeepingResult(
                snapshot=new_snapshot,
                invoice_totals={invoice.id: totals},
                party_balances=self._balances(new_snapshot, parties),
            )
            logger.info("bookkeeping_invoice_edited", extra={
                "invoice_ref": invoice.id,
                "previous_party_ref": previous.party_ref,
                "grand_total": str(totals.grand_total.amount),
                "balance": str(totals.balance.amount),
            })
            return result

    def delete_invoice(self, snapshot: LedgerSnapshot, invoice_id: str) -> BookkeepingResult:
        """
        Soft-delete an invoice.

        Its grand total leaves the party balance. Payments linked to it are
        unlinked and stay on the party as direct payments.

        Raises:
            InvoiceNotFoundError.
        """
        with LogContext.bind(invoice_id=invoice_id):
            invoice = snapshot.invoice(invoice_id)
            unlinked = [
                replace(p, linked_invoice_ref=None)
                for p in snapshot.payments
                if not p.is_deleted and p.linked_invoice_ref == invoice_id
            ]
            new_snapshot = (
                snapshot
                .with_invoice(replace(invoice, is_deleted=True))
                .with_payments(unlinked)
            )
            result = BookkeepingResult(
                snapshot=new_snapshot,
                party_balances=self._balances(new_snapshot, [invoice.party_ref]),
            )
            logger.info("bookkeeping_invoice_deleted", extra={
                "invoice_ref": invoice_id,
                "party_ref": invoice.party_ref,
                "unlinked_payments": [p.id for p in unlinked],
            })
            return result

    # -- payments ----------------------------------------------------------

    def record_payment(self, snapshot: LedgerSnapshot, payment: Payment) -> BookkeepingResult:
        """
        Record a payment, optionally settling one invoice.

        Raises:
            DuplicateRecordError, PartyNotFoundError, InvoiceNotFoundError,
            UnsupportedPaymentModeError, InvoicePartyMismatchError,
            InvalidAmountError, OverpaymentError.
        """
        with LogContext.bind(
            party_id=payment.party_ref,
            payment_id=payment.id,
            invoice_id=payment.linked_invoice_ref,
        ):
            if snapshot.has_payment(payment.id):
                raise DuplicateRecordError("payment", payment.id)
            self._validate_payment(snapshot, payment)

            balance = None
            if payment.is_linked:
                invoice = snapshot.invoice(payment.linked_invoice_ref)
                balance = self._calculator.invoice_balance(invoice, snapshot.payments)
            effect = self._reconciler.reconcile(payment=payment, invoice_balance=balance)

            new_snapshot = snapshot.with_payment(payment)
            result = BookkeepingResult(
                snapshot=new_snapshot,
                invoice_totals=self._totals(new_snapshot, [payment.linked_invoice_ref]),
                party_balances=self._balances(new_snapshot, [payment.party_ref]),
                reconciliation=effect,
            )
            logger.info("bookkeeping_payment_recorded", extra={
                "payment_ref": payment.id,
                "direction": payment.direction.value,
                "amount": str(payment.amount.amount),
                "party_balance": str(
                    result.party_balances[payment.party_ref].current_balance.amount
                ),
            })
            return result

    def edit_payment(self, snapshot: LedgerSnapshot, payment: Payment) -> BookkeepingResult:
        """
        Replace a stored payment with an edited version.

        The old payment is reversed before the new one is validated, so an
        edit on the same invoice is checked against the balance without the
        old amount.

        Raises:
            PaymentNotFoundError plus everything ``record_payment`` raises.
        """
        with LogContext.bind(
            party_id=payment.party_ref,
            payment_id=payment.id,
            invoice_id=payment.linked_invoice_ref,
        ):
            previous = snapshot.payment(payment.id)
            self._validate_payment(snapshot, payment)

            invoice_refs = _unique([previous.linked_invoice_ref, payment.linked_invoice_ref])
            balances = {
                ref: self._calculator.invoice_balance(snapshot.invoice(ref), snapshot.payments)
                for ref in invoice_refs
            }
            effect = self._reconciler.edit(previous, payment, balances)

            new_snapshot = snapshot.with_payment(replace(payment, is_deleted=False))
            result = BookkeepingResult(
                snapshot=new_snapshot,
                invoice_totals=self._totals(new_snapshot, invoice_refs),
                party_balances=self._balances(
                    new_snapshot, _unique([previous.party_ref, payment.party_ref]),
                ),
                reconciliation=effect,
            )
            logger.info("bookkeeping_payment_edited", extra={
                "payment_ref": payment.id,
                "previous_amount": str(previous.amount.amount),
                "amount": str(payment.amount.amount),
                "touched_invoices": invoice_refs,
            })
            return result

    def delete_payment(self, snapshot: LedgerSnapshot, payment_id: str) -> BookkeepingResult:
        """
        Soft-delete a payment, restoring its linked invoice's balance.

        Raises:
            PaymentNotFoundError, InvoiceNotFoundError.
        """
        with LogContext.bind(payment_id=payment_id):
            payment = snapshot.payment(payment_id)

            balance = None
            if payment.is_linked:
                invoice = snapshot.invoice(payment.linked_invoice_ref)
                balance = self._calculator.invoice_balance(invoice, snapshot.payments)
            effect = self._reconciler.reverse(payment, balance)

            new_snapshot = snapshot.with_payment(replace(payment, is_deleted=True))
            result = BookkeepingResult(
                snapshot=new_snapshot,
                invoice_totals=self._totals(new_snapshot, [payment.linked_invoice_ref]),
                party_balances=self._balances(new_snapshot, [payment.party_ref]),
                reconciliation=effect,
            )
            logger.info("bookkeeping_payment_deleted", extra={
                "payment_ref": payment_id,
                "party_ref": payment.party_ref,
                "invoice_ref": payment.linked_invoice_ref,
            })
            return result

    # -- projections -------------------------------------------------------

    def invoice_totals(self, snapshot: LedgerSnapshot, invoice_id: str) -> InvoiceTotals:
        invoice = snapshot.invoice(invoice_id)
        return self._calculator.calculate_for_invoice(invoice, snapshot.payments)

    def party_balance(self, snapshot: LedgerSnapshot, party_id: str) -> PartyBalance:
        party = snapshot.party(party_id)
        return self._ledger.summarize(party, snapshot.invoices, snapshot.payments)

    def unpaid_invoices(
        self, snapshot: LedgerSnapshot, party_id: str,
    ) -> list[tuple[Invoice, InvoiceTotals]]:
        """Invoices of the party that a new payment can still settle."""
        snapshot.party(party_id)
        return self._ledger.unpaid_invoices(party_id, snapshot.invoices, snapshot.payments)

    def total_due(self, snapshot: LedgerSnapshot, party_id: str) -> Money:
        snapshot.party(party_id)
        return self._ledger.total_due(party_id, snapshot.invoices, snapshot.payments)

    def statement(
        self,
        snapshot: LedgerSnapshot,
        start: date | None = None,
        end: date | None = None,
        party_id: str | None = None,
    ) -> Statement:
        """Debit/credit statement over a date range, for one party or all."""
        if party_id is not None:
            snapshot.party(party_id)
        return self._statements.build(
            invoices=snapshot.invoices,
            payments=snapshot.payments,
            start=start,
            end=end,
            party_ref=party_id,
        )

    def party_ledger(
        self,
        snapshot: LedgerSnapshot,
        party_id: str,
        start: date | None = None,
        end: date | None = None,
    ) -> Statement:
        """Full party ledger starting from the opening balance."""
        party = snapshot.party(party_id)
        return self._statements.build_party_ledger(
            party, snapshot.invoices, snapshot.payments, start=start, end=end,
        )

    # -- internals ---------------------------------------------------------

    def _check_grand_total(self, invoice: Invoice, totals: InvoiceTotals) -> None:
        if totals.grand_total.is_negative and not self._config.invoices.allow_negative_grand_total:
            logger.warning("bookkeeping_negative_grand_total_rejected", extra={
                "invoice_ref": invoice.id,
                "grand_total": str(totals.grand_total.amount),
                "discount": str(invoice.discount.amount),
            })
            raise InvalidAmountError(
                "grand_total", totals.grand_total.amount,
                "discount exceeds the taxed subtotal",
            )

    def _validate_payment(self, snapshot: LedgerSnapshot, payment: Payment) -> None:
        snapshot.party(payment.party_ref)
        if not self._config.accepts_mode(payment.mode):
            raise UnsupportedPaymentModeError(
                payment.mode.value, [m.value for m in self._config.payments.modes],
            )
        if payment.is_linked:
            invoice = snapshot.invoice(payment.linked_invoice_ref)
            if invoice.party_ref != payment.party_ref:
                raise InvoicePartyMismatchError(
                    payment.id, invoice.id, payment.party_ref, invoice.party_ref,
                )

    def _totals(
        self, snapshot: LedgerSnapshot, invoice_refs: Iterable[str | None],
    ) -> dict[str, InvoiceTotals]:
        return {
            ref: self._calculator.calculate_for_invoice(snapshot.invoice(ref), snapshot.payments)
            for ref in invoice_refs
            if ref is not None
        }

    def _balances(
        self, snapshot: LedgerSnapshot, party_refs: Iterable[str],
    ) -> dict[str, PartyBalance]:
        return {
            ref: self._ledger.summarize(snapshot.party(ref), snapshot.invoices, snapshot.payments)
            for ref in party_refs
        }


def _unique(refs: Iterable[str | None]) -> list[str]:
    seen: list[str] = []
    for ref in refs:
        if ref is not None and ref not in seen:
            seen.append(ref)
    return seen
