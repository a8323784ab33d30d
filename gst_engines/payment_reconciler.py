"""
Module: gst_engines.payment_reconciler
Responsibility:
    Validate a proposed payment against the outstanding balance of the
    invoice it settles, and compute the effect of applying, reversing or
    editing a payment on invoice and party balances.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Balances are supplied by the caller; nothing is read from a cache.

Invariants enforced:
    - A payment amount is always > 0.
    - A linked payment never exceeds its invoice's balance at the time it
      is applied: ``0 < amount <= balance``. ``amount == balance`` drives
      the balance to exactly zero.
    - Party delta sign follows the party balance formula: money received
      (IN) lowers what the party owes, money paid (OUT) raises it.
    - Edits reverse the old effect first and then reapply the new payment
      through the same validation path. Balances are never adjusted by a
      raw difference between old and new amounts.

Failure modes:
    - InvalidAmountError when the amount is not strictly positive.
    - OverpaymentError naming the maximum admissible amount.
    - InvoiceNotFoundError when a linked payment arrives without the
      linked invoice's balance.
    On any failure no result is produced, so the caller's balances are
    left untouched.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from gst_engines.tracer import traced_engine
from gst_kernel.domain.records import Payment, PaymentDirection
from gst_kernel.domain.values import Money
from gst_kernel.exceptions import InvoiceNotFoundError, OverpaymentError
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.payment_reconciler")


class EffectKind(str, Enum):
    APPLY = "apply"
    REVERSE = "reverse"


@dataclass(frozen=True)
class ReconciliationResult:
    """
    Effect of applying or reversing one payment.

    Contract:
        ``invoice_balance`` is the linked invoice's balance after the
        operation (None for unlinked payments). ``party_delta`` is the
        signed change to the party's current balance.
    """

    payment_ref: str
    party_ref: str
    kind: EffectKind
    party_delta: Money
    invoice_ref: str | None = None
    previous_invoice_balance: Money | None = None
    invoice_balance: Money | None = None


@dataclass(frozen=True)
class PaymentEditResult:
    """
    Combined effect of a payment edit (reversal followed by reapplication).

    ``invoice_balances`` holds the new balance of every invoice touched by
    the edit; ``party_deltas`` the net delta of every party touched.
    """

    reversal: ReconciliationResult
    application: ReconciliationResult
    invoice_balances: dict[str, Money] = field(default_factory=dict)
    party_deltas: dict[str, Money] = field(default_factory=dict)


def party_delta(payment: Payment) -> Money:
    """Signed change a committed payment makes to its party's balance."""
    if payment.direction == PaymentDirection.IN:
        return -payment.amount
    return payment.amount


class PaymentReconciler:
    """
    Validate payments and compute their balance effects.

    Contract:
        Pure functions over the payment and the balances passed in.
    Non-goals:
        - Does not decide which invoice a payment should settle.
        - Does not serialize concurrent edits; callers must apply one
          balance-affecting mutation at a time.
    """

    @traced_engine("payment_reconciler", "1.0", fingerprint_fields=("payment", "invoice_balance"))
    def reconcile(
        self,
        payment: Payment,
        invoice_balance: Money | None = None,
    ) -> ReconciliationResult:
        """
        Validate a proposed payment and compute its effect.

        Args:
            payment: The proposed payment.
            invoice_balance: Current balance of ``payment.linked_invoice_ref``;
                required when the payment is linked, ignored otherwise.

        Raises:
            InvalidAmountError: amount <= 0.
            OverpaymentError: linked amount exceeds the invoice balance.
            InvoiceNotFoundError: linked payment without an invoice balance.
        """
        payment.amount.require_positive("payment amount")

        if not payment.is_linked:
            logger.info("payment_reconciled", extra={
                "payment_ref": payment.id,
                "party_ref": payment.party_ref,
                "direction": payment.direction.value,
                "amount": str(payment.amount.amount),
                "linked": False,
            })
            return ReconciliationResult(
                payment_ref=payment.id,
                party_ref=payment.party_ref,
                kind=EffectKind.APPLY,
                party_delta=party_delta(payment),
            )

        invoice_ref = payment.linked_invoice_ref
        if invoice_balance is None:
            logger.error("payment_invoice_balance_missing", extra={
                "payment_ref": payment.id,
                "invoice_ref": invoice_ref,
            })
            raise InvoiceNotFoundError(invoice_ref)

        if payment.amount > invoice_balance:
            max_admissible = max(invoice_balance, Money.zero())
            logger.warning("payment_overpayment_rejected", extra={
                "payment_ref": payment.id,
                "invoice_ref": invoice_ref,
                "amount": str(payment.amount.amount),
                "max_admissible": str(max_admissible.amount),
            })
            raise OverpaymentError(payment.amount.amount, max_admissible.amount, invoice_ref)

        new_balance = invoice_balance - payment.amount
        logger.info("payment_reconciled", extra={
            "payment_ref": payment.id,
            "party_ref": payment.party_ref,
            "direction": payment.direction.value,
            "amount": str(payment.amount.amount),
            "linked": True,
            "invoice_ref": invoice_ref,
            "previous_invoice_balance": str(invoice_balance.amount),
            "invoice_balance": str(new_balance.amount),
        })
        return ReconciliationResult(
            payment_ref=payment.id,
            party_ref=payment.party_ref,
            kind=EffectKind.APPLY,
            party_delta=party_delta(payment),
            invoice_ref=invoice_ref,
            previous_invoice_balance=invoice_balance,
            invoice_balance=new_balance,
        )

    def reverse(
        self,
        payment: Payment,
        invoice_balance: Money | None = None,
    ) -> ReconciliationResult:
        """
        Undo the effect of a previously applied payment (delete).

        The linked invoice's balance is restored by the payment amount and
        the party delta is the negation of the one applied originally.

        Raises:
            InvoiceNotFoundError: linked payment without an invoice balance.
        """
        restored_delta = -party_delta(payment)

        if not payment.is_linked:
            logger.info("payment_reversed", extra={
                "payment_ref": payment.id,
                "party_ref": payment.party_ref,
                "amount": str(payment.amount.amount),
                "linked": False,
            })
            return ReconciliationResult(
                payment_ref=payment.id,
                party_ref=payment.party_ref,
                kind=EffectKind.REVERSE,
                party_delta=restored_delta,
            )

        invoice_ref = payment.linked_invoice_ref
        if invoice_balance is None:
            logger.error("payment_invoice_balance_missing", extra={
                "payment_ref": payment.id,
                "invoice_ref": invoice_ref,
            })
            raise InvoiceNotFoundError(invoice_ref)

        restored_balance = invoice_balance + payment.amount
        logger.info("payment_reversed", extra={
            "payment_ref": payment.id,
            "party_ref": payment.party_ref,
            "amount": str(payment.amount.amount),
            "linked": True,
            "invoice_ref": invoice_ref,
            "invoice_balance": str(restored_balance.amount),
        })
        return ReconciliationResult(
            payment_ref=payment.id,
            party_ref=payment.party_ref,
            kind=EffectKind.REVERSE,
            party_delta=restored_delta,
            invoice_ref=invoice_ref,
            previous_invoice_balance=invoice_balance,
            invoice_balance=restored_balance,
        )

    def edit(
        self,
        old_payment: Payment,
        new_payment: Payment,
        invoice_balances: Mapping[str, Money],
    ) -> PaymentEditResult:
        """
        Replace a committed payment with an edited version.

        The old payment is reversed against ``invoice_balances`` and the
        new one is validated against the restored balances, so changing
        direction, amount, party or linked invoice in any combination is
        handled uniformly. Re-linking to the same invoice validates against
        the balance as it would be without the old payment.

        Args:
            old_payment: The payment as currently committed.
            new_payment: The edited payment.
            invoice_balances: Current balances of (at least) the old and new
                linked invoices.

        Raises:
            InvalidAmountError, OverpaymentError, InvoiceNotFoundError.
        """
        balances = dict(invoice_balances)
        touched: dict[str, Money] = {}

        reversal = self.reverse(
            old_payment,
            balances.get(old_payment.linked_invoice_ref) if old_payment.is_linked else None,
        )
        if reversal.invoice_ref is not None:
            balances[reversal.invoice_ref] = reversal.invoice_balance
            touched[reversal.invoice_ref] = reversal.invoice_balance

        application = self.reconcile(
            payment=new_payment,
            invoice_balance=(
                balances.get(new_payment.linked_invoice_ref) if new_payment.is_linked else None
            ),
        )
        if application.invoice_ref is not None:
            touched[application.invoice_ref] = application.invoice_balance

        deltas: dict[str, Money] = {}
        for effect in (reversal, application):
            deltas[effect.party_ref] = deltas.get(effect.party_ref, Money.zero()) + effect.party_delta

        logger.info("payment_edited", extra={
            "old_payment_ref": old_payment.id,
            "new_payment_ref": new_payment.id,
            "touched_invoices": sorted(touched),
            "party_deltas": {k: str(v.amount) for k, v in deltas.items()},
        })
        return PaymentEditResult(
            reversal=reversal,
            application=application,
            invoice_balances=touched,
            party_deltas=deltas,
        )
