"""
Pytest fixtures for the GST ledger core test suite.

Provides:
- Structured logging configured at DEBUG for every test
- Log capture as parsed JSON records
- Builders for parties, line items, invoices and payments
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from gst_kernel.domain.records import (
    Invoice,
    InvoiceKind,
    LineItem,
    Party,
    PartyKind,
    Payment,
    PaymentDirection,
    PaymentMode,
    TaxRates,
)
from gst_kernel.domain.values import Money
from gst_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

TODAY = date(2025, 6, 15)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture gst_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            service.record_payment(snapshot, payment)
            logs = captured_logs()
            assert any(r["message"] == "bookkeeping_payment_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("gst_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Record builders
# =============================================================================


def make_line(
    quantity="1",
    rate="100",
    item_ref="itm-1",
    particular="Cement bag",
) -> LineItem:
    return LineItem(
        item_ref=item_ref,
        particular=particular,
        quantity=Decimal(quantity),
        rate=Money.of(rate),
    )


def make_party(
    party_id="party-1",
    opening="0",
    kind=PartyKind.CUSTOMER,
    name="Sharma Traders",
) -> Party:
    return Party(id=party_id, name=name, kind=kind, opening_balance=Money.of(opening))


def make_invoice(
    invoice_id="inv-1",
    party_ref="party-1",
    lines=None,
    kind=InvoiceKind.SALE,
    on=TODAY,
    discount="0",
    tax_rates=None,
    paid_at_creation="0",
    invoice_number=None,
) -> Invoice:
    return Invoice(
        id=invoice_id,
        kind=kind,
        party_ref=party_ref,
        date=on,
        line_items=lines if lines is not None else (make_line(),),
        discount=Money.of(discount),
        tax_rates=tax_rates if tax_rates is not None else TaxRates.none(),
        paid_at_creation=Money.of(paid_at_creation),
        invoice_number=invoice_number,
    )


def make_payment(
    payment_id="pay-1",
    amount="100",
    party_ref="party-1",
    direction=PaymentDirection.IN,
    mode=PaymentMode.CASH,
    on=TODAY,
    invoice_ref=None,
    note="",
) -> Payment:
    return Payment(
        id=payment_id,
        direction=direction,
        party_ref=party_ref,
        amount=Money.of(amount),
        mode=mode,
        date=on,
        linked_invoice_ref=invoice_ref,
        note=note,
    )


@pytest.fixture
def party():
    return make_party()


@pytest.fixture
def ten_thousand_sale():
    """Sale invoice with a grand total of exactly 10000 and no tax."""
    return make_invoice(lines=(make_line("1", "10000"),))
