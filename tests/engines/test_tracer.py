"""Tests for engine invocation tracing (gst_engines/tracer.py)."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import make_line
from gst_engines.invoice_totals import InvoiceTotalCalculator
from gst_engines.tracer import compute_input_fingerprint, traced_engine
from gst_kernel.domain.records import PaymentMode, TaxRates
from gst_kernel.domain.values import Money


def _traces(records):
    return [r for r in records if r["message"] == "GST_ENGINE_TRACE"]


class TestFingerprint:

    def test_deterministic(self):
        kwargs = {"amount": Money.of("10"), "on": date(2025, 4, 1)}
        assert compute_input_fingerprint(("amount", "on"), kwargs) == \
            compute_input_fingerprint(("amount", "on"), dict(kwargs))

    def test_sixteen_hex_chars(self):
        fp = compute_input_fingerprint(("x",), {"x": 1})
        assert len(fp) == 16
        int(fp, 16)

    def test_scale_insensitive(self):
        a = compute_input_fingerprint(("amount",), {"amount": Money.of("2950")})
        b = compute_input_fingerprint(("amount",), {"amount": Money.of("2950.00")})
        assert a == b

    def test_value_sensitive(self):
        a = compute_input_fingerprint(("amount",), {"amount": Decimal("1")})
        b = compute_input_fingerprint(("amount",), {"amount": Decimal("2")})
        assert a != b

    def test_dataclasses_enums_and_missing_fields(self):
        kwargs = {"rates": TaxRates.intra_state("9", "9"), "mode": PaymentMode.CASH}
        fp = compute_input_fingerprint(("rates", "mode", "absent"), kwargs)
        assert fp == compute_input_fingerprint(("rates", "mode", "absent"), kwargs)


class TestTracedEngine:

    def test_trace_emitted(self, captured_logs):
        InvoiceTotalCalculator().calculate(
            line_items=[make_line("2", "1000")],
            discount=Money.zero(),
            tax_rates=TaxRates.intra_state("9", "9"),
        )

        traces = _traces(captured_logs())
        assert len(traces) == 1
        trace = traces[0]
        assert trace["trace_type"] == "GST_ENGINE_TRACE"
        assert trace["engine_name"] == "invoice_totals"
        assert trace["engine_version"] == "1.0"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0
        assert trace["logger"] == "gst_kernel.engines.tracer"

    def test_failed_call_not_traced(self, captured_logs):
        @traced_engine("failing", "0.1", fingerprint_fields=("x",))
        def explode(x):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            explode(x=1)
        assert _traces(captured_logs()) == []

    def test_transparent_return_value(self, captured_logs):
        @traced_engine("doubler", "2.0")
        def double(value):
            return value * 2

        assert double(21) == 42
        trace = _traces(captured_logs())[0]
        assert trace["input_fingerprint"] == ""
        assert trace["function"].endswith("double")
