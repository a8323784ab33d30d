"""
Tests for the invoice total calculator.

Covers:
- Subtotal, CGST/SGST and IGST amounts
- Whole-unit grand total and the round-off identity
- Discount, paid-at-creation and linked payments on edit
- Settlement status and overpaid invoices
- Validation errors
"""

from decimal import Decimal

import pytest

from conftest import make_invoice, make_line, make_payment
from gst_engines.invoice_totals import (
    InvoiceTotalCalculator,
    SettlementStatus,
    linked_payments,
)
from gst_kernel.domain.records import TaxRates
from gst_kernel.domain.values import Money
from gst_kernel.exceptions import EmptyInvoiceError, InvalidAmountError


class TestInvoiceTotals:
    """Worked scenarios for the totals formula."""

    def setup_method(self):
        self.calculator = InvoiceTotalCalculator()

    def test_two_lines_intra_state(self):
        """[2 x 1000, 1 x 500] at 9% + 9% with no discount."""
        totals = self.calculator.calculate(
            line_items=[make_line("2", "1000"), make_line("1", "500", item_ref="itm-2")],
            discount=Money.zero(),
            tax_rates=TaxRates.intra_state("9", "9"),
        )

        assert totals.subtotal == Money.of("2500.00")
        assert totals.cgst_amount == Money.of("225.00")
        assert totals.sgst_amount == Money.of("225.00")
        assert totals.igst_amount == Money.zero()
        assert totals.pre_round_total == Money.of("2950.00")
        assert totals.grand_total == Money.of("2950")
        assert totals.round_off == Money.zero()
        assert totals.balance == Money.of("2950")

    def test_round_up_small_positive_round_off(self):
        """Subtotal 142.35 at 9% + 9% is 167.973, rounded to 168."""
        totals = self.calculator.calculate(
            line_items=[make_line("1", "142.35")],
            discount=Money.zero(),
            tax_rates=TaxRates.intra_state("9", "9"),
        )

        assert totals.pre_round_total.amount == Decimal("167.9730")
        assert totals.grand_total == Money.of("168")
        assert totals.round_off == Money.of("0.027")
        assert totals.round_off.round() == Money.of("0.03")

    def test_round_down_from_fraction_below_half(self):
        """Subtotal 141.33 at 9% + 9% is 166.7694; grand total 167."""
        totals = self.calculator.calculate(
            line_items=[make_line("1", "141.33")],
            discount=Money.zero(),
            tax_rates=TaxRates.intra_state("9", "9"),
        )

        assert totals.pre_round_total.amount == Decimal("166.7694")
        assert totals.grand_total == Money.of("167")
        assert totals.round_off == Money.of("0.2306")

    def test_negative_round_off(self):
        totals = self.calculator.calculate(
            line_items=[make_line("1", "100.40")],
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
        )
        assert totals.grand_total == Money.of("100")
        assert totals.round_off == Money.of("-0.40")

    def test_exact_half_rounds_away_from_zero(self):
        totals = self.calculator.calculate(
            line_items=[make_line("1", "100.50")],
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
        )
        assert totals.grand_total == Money.of("101")

    def test_inter_state_igst(self):
        totals = self.calculator.calculate(
            line_items=[make_line("4", "250")],
            discount=Money.zero(),
            tax_rates=TaxRates.inter_state("18"),
        )
        assert totals.igst_amount == Money.of("180")
        assert totals.cgst_amount == Money.zero()
        assert totals.tax_total == Money.of("180")
        assert totals.grand_total == Money.of("1180")

    def test_discount_applied_after_tax(self):
        """Tax is charged on the undiscounted subtotal."""
        totals = self.calculator.calculate(
            line_items=[make_line("1", "1000")],
            discount=Money.of("80"),
            tax_rates=TaxRates.intra_state("9", "9"),
        )
        assert totals.tax_total == Money.of("180")
        assert totals.grand_total == Money.of("1100")

    def test_discount_beyond_total_goes_negative(self, captured_logs):
        totals = self.calculator.calculate(
            line_items=[make_line("1", "100")],
            discount=Money.of("150"),
            tax_rates=TaxRates.none(),
        )
        assert totals.grand_total == Money.of("-50")
        assert any(r["message"] == "invoice_grand_total_negative" for r in captured_logs())

    def test_round_off_identity_holds(self):
        totals = self.calculator.calculate(
            line_items=[make_line("3", "33.33"), make_line("0.75", "19.99", item_ref="itm-2")],
            discount=Money.of("7.77"),
            tax_rates=TaxRates.intra_state("2.5", "2.5"),
        )
        expected = totals.subtotal + totals.tax_total - totals.discount
        assert totals.grand_total - expected == totals.round_off
        assert totals.grand_total.amount == totals.grand_total.amount.to_integral_value()


class TestPaymentsAndBalance:
    """Balance = grand total - paid at creation - linked payments."""

    def setup_method(self):
        self.calculator = InvoiceTotalCalculator()
        self.lines = [make_line("1", "10000")]

    def test_paid_at_creation(self):
        totals = self.calculator.calculate(
            line_items=self.lines,
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
            paid_at_creation=Money.of("2500"),
        )
        assert totals.balance == Money.of("7500")
        assert totals.settlement == SettlementStatus.DUE

    def test_existing_payments_ignored_on_create(self):
        totals = self.calculator.calculate(
            line_items=self.lines,
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
            existing_payments=[Money.of("4000")],
            is_edit=False,
        )
        assert totals.payments_applied == Money.zero()
        assert totals.balance == Money.of("10000")

    def test_existing_payments_counted_on_edit(self):
        totals = self.calculator.calculate(
            line_items=self.lines,
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
            paid_at_creation=Money.of("1000"),
            existing_payments=[Money.of("4000"), Money.of("5000")],
            is_edit=True,
        )
        assert totals.payments_applied == Money.of("9000")
        assert totals.amount_paid == Money.of("10000")
        assert totals.balance == Money.zero()
        assert totals.settlement == SettlementStatus.PAID

    def test_overpaid_after_edit_is_not_clamped(self):
        totals = self.calculator.calculate(
            line_items=[make_line("1", "3000")],
            discount=Money.zero(),
            tax_rates=TaxRates.none(),
            existing_payments=[Money.of("4000")],
            is_edit=True,
        )
        assert totals.balance == Money.of("-1000")
        assert totals.is_overpaid
        assert totals.settlement == SettlementStatus.OVERPAID

    def test_calculate_for_invoice_uses_linked_payments_only(self):
        invoice = make_invoice(invoice_id="inv-1", lines=self.lines)
        payments = [
            make_payment("pay-1", "4000", invoice_ref="inv-1"),
            make_payment("pay-2", "1000"),
            make_payment("pay-3", "500", invoice_ref="inv-2"),
        ]
        assert self.calculator.invoice_balance(invoice, payments) == Money.of("6000")

    def test_deleted_payments_not_applied(self):
        from dataclasses import replace

        invoice = make_invoice(invoice_id="inv-1", lines=self.lines)
        deleted = replace(make_payment("pay-1", "4000", invoice_ref="inv-1"), is_deleted=True)
        assert linked_payments("inv-1", [deleted]) == ()
        assert self.calculator.invoice_balance(invoice, [deleted]) == Money.of("10000")


class TestValidation:

    def setup_method(self):
        self.calculator = InvoiceTotalCalculator()

    def test_empty_invoice(self):
        with pytest.raises(EmptyInvoiceError) as exc_info:
            self.calculator.calculate(
                line_items=[], discount=Money.zero(), tax_rates=TaxRates.none(),
                invoice_ref="inv-7",
            )
        assert exc_info.value.invoice_ref == "inv-7"

    def test_negative_discount(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            self.calculator.calculate(
                line_items=[make_line()], discount=Money.of("-1"), tax_rates=TaxRates.none(),
            )
        assert exc_info.value.field == "discount"

    def test_negative_paid_at_creation(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            self.calculator.calculate(
                line_items=[make_line()], discount=Money.zero(), tax_rates=TaxRates.none(),
                paid_at_creation=Money.of("-5"),
            )
        assert exc_info.value.field == "paid_at_creation"

    def test_recomputation_is_deterministic(self):
        kwargs = dict(
            line_items=[make_line("2", "1000")],
            discount=Money.of("10"),
            tax_rates=TaxRates.intra_state("9", "9"),
        )
        assert self.calculator.calculate(**kwargs) == self.calculator.calculate(**kwargs)
