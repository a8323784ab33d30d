"""Tests for the party ledger engine (gst_engines/party_balance.py)."""

import random
from dataclasses import replace

from conftest import make_invoice, make_line, make_party, make_payment
from gst_engines.party_balance import PartyLedgerEngine
from gst_kernel.domain.records import BalanceLabel, InvoiceKind, PaymentDirection, TaxRates
from gst_kernel.domain.values import Money


class TestCurrentBalance:
    """Balance formula over the full history."""

    def setup_method(self):
        self.engine = PartyLedgerEngine()

    def test_sale_with_linked_payment(self):
        """Opening 0, sale 10000, payment in 4000 -> 6000 receivable."""
        party = make_party(opening="0")
        invoices = [make_invoice(lines=(make_line("1", "10000"),))]
        payments = [make_payment(amount="4000", invoice_ref="inv-1")]

        summary = self.engine.summarize(party, invoices, payments)

        assert summary.current_balance == Money.of("6000")
        assert summary.label == BalanceLabel.RECEIVABLE
        assert summary.sales_total == Money.of("10000")
        assert summary.received_total == Money.of("4000")

    def test_full_formula(self):
        party = make_party(opening="-1500")
        invoices = [
            make_invoice("inv-1", lines=(make_line("1", "10000"),)),
            make_invoice("inv-2", lines=(make_line("2", "1000"),), kind=InvoiceKind.PURCHASE),
        ]
        payments = [
            make_payment("pay-1", "3000", direction=PaymentDirection.IN),
            make_payment("pay-2", "700", direction=PaymentDirection.OUT),
        ]

        summary = self.engine.summarize(party, invoices, payments)

        # -1500 + 10000 - 2000 - 3000 + 700
        assert summary.current_balance == Money.of("4200")
        assert summary.purchases_total == Money.of("2000")
        assert summary.paid_total == Money.of("700")

    def test_uses_grand_totals(self):
        """Party balance moves by the rounded grand total, not the pre-round total."""
        invoices = [make_invoice(
            lines=(make_line("1", "142.35"),), tax_rates=TaxRates.intra_state("9", "9"),
        )]
        balance = self.engine.current_balance(Money.zero(), invoices, [], party_ref="party-1")
        assert balance == Money.of("168")

    def test_paid_at_creation_does_not_move_party_balance(self):
        invoices = [make_invoice(lines=(make_line("1", "1000"),), paid_at_creation="1000")]
        balance = self.engine.current_balance(Money.zero(), invoices, [], party_ref="party-1")
        assert balance == Money.of("1000")

    def test_deleted_records_ignored(self):
        invoices = [
            make_invoice("inv-1", lines=(make_line("1", "500"),)),
            replace(make_invoice("inv-2", lines=(make_line("1", "900"),)), is_deleted=True),
        ]
        payments = [replace(make_payment("pay-1", "500"), is_deleted=True)]
        balance = self.engine.current_balance(Money.zero(), invoices, payments, party_ref="party-1")
        assert balance == Money.of("500")

    def test_other_parties_ignored(self):
        invoices = [
            make_invoice("inv-1", party_ref="party-1", lines=(make_line("1", "500"),)),
            make_invoice("inv-2", party_ref="party-2", lines=(make_line("1", "900"),)),
        ]
        payments = [make_payment("pay-1", "100", party_ref="party-2")]
        balance = self.engine.current_balance(Money.zero(), invoices, payments, party_ref="party-1")
        assert balance == Money.of("500")

    def test_payable_and_settled_labels(self):
        supplier = make_party(opening="0")
        purchase = [make_invoice(kind=InvoiceKind.PURCHASE, lines=(make_line("1", "250"),))]
        assert self.engine.summarize(supplier, purchase, []).label == BalanceLabel.PAYABLE

        paid = [make_payment(amount="250", direction=PaymentDirection.OUT)]
        assert self.engine.summarize(supplier, purchase, paid).label == BalanceLabel.SETTLED

    def test_order_independent(self):
        invoices = [
            make_invoice(f"inv-{i}", lines=(make_line(str(i), "133.33"),),
                         kind=InvoiceKind.SALE if i % 2 else InvoiceKind.PURCHASE)
            for i in range(1, 8)
        ]
        payments = [
            make_payment(f"pay-{i}", f"{i * 11}.5",
                         direction=PaymentDirection.IN if i % 3 else PaymentDirection.OUT)
            for i in range(1, 6)
        ]
        expected = self.engine.current_balance(Money.of("42"), invoices, payments)

        rng = random.Random(7)
        for _ in range(5):
            shuffled_invoices = list(invoices)
            shuffled_payments = list(payments)
            rng.shuffle(shuffled_invoices)
            rng.shuffle(shuffled_payments)
            assert self.engine.current_balance(
                Money.of("42"), shuffled_invoices, shuffled_payments,
            ) == expected


class TestUnpaidInvoices:
    """Invoices a new payment can still settle."""

    def setup_method(self):
        self.engine = PartyLedgerEngine()
        self.invoices = [
            make_invoice("inv-1", lines=(make_line("1", "10000"),)),
            make_invoice("inv-2", lines=(make_line("1", "3000"),)),
            make_invoice("inv-3", lines=(make_line("1", "500"),), paid_at_creation="500"),
        ]
        self.payments = [
            make_payment("pay-1", "4000", invoice_ref="inv-1"),
            make_payment("pay-2", "3000", invoice_ref="inv-2"),
        ]

    def test_only_positive_balances(self):
        unpaid = self.engine.unpaid_invoices("party-1", self.invoices, self.payments)
        assert [(inv.id, totals.balance) for inv, totals in unpaid] == [
            ("inv-1", Money.of("6000")),
        ]

    def test_total_due(self):
        extra = self.invoices + [make_invoice("inv-4", lines=(make_line("1", "250"),))]
        assert self.engine.total_due("party-1", extra, self.payments) == Money.of("6250")

    def test_no_invoices(self):
        assert self.engine.unpaid_invoices("party-9", self.invoices, self.payments) == []
        assert self.engine.total_due("party-9", self.invoices, self.payments) == Money.zero()
