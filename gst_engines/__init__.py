"""
Module: gst_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for
    gst_services and for front-end adapters.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gst_kernel (and sibling engine modules).
    MUST NOT import gst_services or gst_config.

Invariants enforced:
    - Purity: engines never read the clock, a cache or the network;
      dates and snapshots are passed in as explicit parameters.
    - Decimal-only arithmetic through gst_kernel.domain.values.Money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped in ``@traced_engine`` (see
    ``gst_engines.tracer``), emitting GST_ENGINE_TRACE log records with
    engine name, version, input fingerprint and duration.

Usage:
    from gst_engines import (
        InvoiceTotalCalculator,
        PartyLedgerEngine,
        PaymentReconciler,
        StatementBuilder,
    )
"""

from gst_engines.invoice_totals import (
    InvoiceTotalCalculator,
    InvoiceTotals,
    SettlementStatus,
    linked_payments,
)
from gst_engines.party_balance import PartyBalance, PartyLedgerEngine
from gst_engines.payment_reconciler import (
    EffectKind,
    PaymentEditResult,
    PaymentReconciler,
    ReconciliationResult,
    party_delta,
)
from gst_engines.statement import (
    EXPORT_FIELDS,
    LedgerEntry,
    LedgerSource,
    Statement,
    StatementBuilder,
    StatementTotals,
)
from gst_engines.tracer import traced_engine

__all__ = [
    # Invoice totals
    "InvoiceTotalCalculator",
    "InvoiceTotals",
    "SettlementStatus",
    "linked_payments",
    # Payment reconciliation
    "PaymentReconciler",
    "ReconciliationResult",
    "PaymentEditResult",
    "EffectKind",
    "party_delta",
    # Party balances
    "PartyLedgerEngine",
    "PartyBalance",
    # Statements
    "StatementBuilder",
    "Statement",
    "StatementTotals",
    "LedgerEntry",
    "LedgerSource",
    "EXPORT_FIELDS",
    # Tracing
    "traced_engine",
]
