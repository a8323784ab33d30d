"""
Pure domain layer.

This module contains the money value object and the snapshot records
with NO dependencies on:
- Network or storage
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from gst_kernel.domain.records import (
    BalanceLabel,
    Invoice,
    InvoiceKind,
    InvoiceStatus,
    LineItem,
    Party,
    PartyKind,
    Payment,
    PaymentDirection,
    PaymentMode,
    TaxRates,
)
from gst_kernel.domain.values import CURRENCY_CODE, CURRENCY_DECIMAL_PLACES, Money

__all__ = [
    # Value objects
    "Money",
    "CURRENCY_CODE",
    "CURRENCY_DECIMAL_PLACES",
    # Records
    "LineItem",
    "TaxRates",
    "Invoice",
    "Party",
    "Payment",
    # Enums
    "InvoiceKind",
    "InvoiceStatus",
    "PartyKind",
    "PaymentDirection",
    "PaymentMode",
    "BalanceLabel",
]
