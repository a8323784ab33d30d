"""
Hypothesis property tests for the ledger invariants.

Boundaries fuzzed here:
- Invoice totals: subtotal identity, round-off identity, whole grand total
- Overpayment guard: amount <= balance accepted, amount > balance rejected
- Party balance: order independence over shuffled histories
- Statements: idempotence and closing balance identity
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from gst_engines.invoice_totals import InvoiceTotalCalculator
from gst_engines.party_balance import PartyLedgerEngine
from gst_engines.payment_reconciler import PaymentReconciler
from gst_engines.statement import StatementBuilder
from gst_kernel.domain.records import (
    Invoice,
    InvoiceKind,
    LineItem,
    Payment,
    PaymentDirection,
    PaymentMode,
    TaxRates,
)
from gst_kernel.domain.values import Money
from gst_kernel.exceptions import OverpaymentError

FUZZ_SETTINGS = settings(
    max_examples=75,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)

START = date(2025, 4, 1)

amounts = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("9999999.99"),
    places=2, allow_nan=False, allow_infinity=False,
)
quantities = st.decimals(
    min_value=Decimal("0.001"), max_value=Decimal("10000"),
    places=3, allow_nan=False, allow_infinity=False,
)
percentages = st.sampled_from([Decimal(r) for r in ("0", "0.125", "1.5", "2.5", "6", "9", "14")])


@st.composite
def line_items(draw, max_size=6):
    count = draw(st.integers(min_value=1, max_value=max_size))
    return [
        LineItem(f"itm-{i}", f"Item {i}", draw(quantities), Money.of(draw(amounts)))
        for i in range(count)
    ]


@st.composite
def tax_rates(draw):
    if draw(st.booleans()):
        return TaxRates.inter_state(draw(percentages) * 2)
    rate = draw(percentages)
    return TaxRates.intra_state(rate, rate)


@st.composite
def histories(draw):
    invoices = [
        Invoice(
            id=f"inv-{i}",
            kind=draw(st.sampled_from(list(InvoiceKind))),
            party_ref="party-1",
            date=START + timedelta(days=draw(st.integers(0, 60))),
            line_items=tuple(draw(line_items(max_size=3))),
            tax_rates=draw(tax_rates()),
        )
        for i in range(draw(st.integers(0, 6)))
    ]
    payments = [
        Payment(
            id=f"pay-{i}",
            direction=draw(st.sampled_from(list(PaymentDirection))),
            party_ref="party-1",
            amount=Money.of(draw(amounts)),
            mode=draw(st.sampled_from(list(PaymentMode))),
            date=START + timedelta(days=draw(st.integers(0, 60))),
        )
        for i in range(draw(st.integers(0, 6)))
    ]
    return invoices, payments


class TestInvoiceTotalProperties:

    @given(items=line_items(), rates=tax_rates(), discount=amounts)
    @FUZZ_SETTINGS
    def test_totals_identities(self, items, rates, discount):
        totals = InvoiceTotalCalculator().calculate(
            line_items=items, discount=Money.of(discount), tax_rates=rates,
        )

        exact_subtotal = sum((i.quantity * i.rate.amount for i in items), Decimal("0"))
        assert totals.subtotal.amount == exact_subtotal

        pre_round = totals.subtotal + totals.tax_total - totals.discount
        assert totals.grand_total - pre_round == totals.round_off
        assert totals.grand_total.amount == totals.grand_total.amount.to_integral_value()
        assert abs(totals.round_off) <= Money.of("0.5")


class TestOverpaymentGuardProperties:

    @given(balance=amounts, amount=amounts)
    @FUZZ_SETTINGS
    def test_amount_never_exceeds_balance(self, balance, amount):
        payment = Payment(
            id="pay-1", direction=PaymentDirection.IN, party_ref="party-1",
            amount=Money.of(amount), mode=PaymentMode.CASH, date=START,
            linked_invoice_ref="inv-1",
        )
        reconciler = PaymentReconciler()
        if amount > balance:
            try:
                reconciler.reconcile(payment=payment, invoice_balance=Money.of(balance))
            except OverpaymentError as e:
                assert Decimal(e.max_admissible) == balance
            else:
                raise AssertionError("overpayment accepted")
        else:
            result = reconciler.reconcile(payment=payment, invoice_balance=Money.of(balance))
            assert not result.invoice_balance.is_negative
            assert result.invoice_balance.is_zero == (amount == balance)


class TestPartyBalanceProperties:

    @given(history=histories(), opening=amounts, data=st.data())
    @FUZZ_SETTINGS
    def test_order_independent(self, history, opening, data):
        invoices, payments = history
        engine = PartyLedgerEngine()
        expected = engine.current_balance(Money.of(opening), invoices, payments)

        shuffled_invoices = data.draw(st.permutations(invoices))
        shuffled_payments = data.draw(st.permutations(payments))
        assert engine.current_balance(Money.of(opening), shuffled_invoices, shuffled_payments) == expected


class TestStatementProperties:

    @given(history=histories())
    @FUZZ_SETTINGS
    def test_idempotent_and_closing_matches_party_balance(self, history):
        invoices, payments = history
        builder = StatementBuilder()

        first = builder.build(invoices, payments, party_ref="party-1")
        second = builder.build(invoices, payments, party_ref="party-1")
        assert first == second

        dates = [e.date for e in first.entries]
        assert dates == sorted(dates)

        balance = PartyLedgerEngine().current_balance(Money.zero(), invoices, payments)
        assert first.totals.closing_balance == balance
