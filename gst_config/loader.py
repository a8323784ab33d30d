"""
Configuration Loader (``gst_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the typed
``gst_config.schema`` dataclasses.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; unknown top-level sections are rejected rather than ignored.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong types or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from gst_config.schema import (
    InvoiceSettings,
    InvoicingConfig,
    LoggingSettings,
    PaymentSettings,
    TaxDefaults,
)
from gst_kernel.domain.records import PaymentMode

_SECTIONS = frozenset({"currency", "taxes", "payments", "invoices", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping, got {type(data).__name__}")
    return data


def parse_rate(value: Any, name: str) -> Decimal:
    """Parse a percentage from YAML. Floats are refused to keep rates exact."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{name} must be quoted or an integer (got {value!r})")
    try:
        rate = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{name} is not a number: {value!r}") from e
    if not rate.is_finite() or rate < 0:
        raise ValueError(f"{name} must be a finite, non-negative percentage (got {value!r})")
    return rate


def parse_taxes(data: dict[str, Any]) -> TaxDefaults:
    defaults = TaxDefaults()
    return TaxDefaults(
        default_cgst_rate=parse_rate(
            data.get("default_cgst_rate", defaults.default_cgst_rate), "taxes.default_cgst_rate"
        ),
        default_sgst_rate=parse_rate(
            data.get("default_sgst_rate", defaults.default_sgst_rate), "taxes.default_sgst_rate"
        ),
        default_igst_rate=parse_rate(
            data.get("default_igst_rate", defaults.default_igst_rate), "taxes.default_igst_rate"
        ),
    )


def parse_mode(value: Any, name: str) -> PaymentMode:
    try:
        return PaymentMode(str(value).lower())
    except ValueError as e:
        valid = [m.value for m in PaymentMode]
        raise ValueError(f"{name}: unknown payment mode {value!r}, expected one of {valid}") from e


def parse_payments(data: dict[str, Any]) -> PaymentSettings:
    defaults = PaymentSettings()
    raw_modes = data.get("modes")
    modes = (
        tuple(parse_mode(m, "payments.modes") for m in raw_modes)
        if raw_modes is not None else defaults.modes
    )
    default_mode = (
        parse_mode(data["default_mode"], "payments.default_mode")
        if "default_mode" in data else modes[0] if modes else defaults.default_mode
    )
    return PaymentSettings(modes=modes, default_mode=default_mode)


def parse_invoices(data: dict[str, Any]) -> InvoiceSettings:
    allow = data.get("allow_negative_grand_total", False)
    if not isinstance(allow, bool):
        raise ValueError(f"invoices.allow_negative_grand_total must be a boolean (got {allow!r})")
    return InvoiceSettings(allow_negative_grand_total=allow)


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    return LoggingSettings(level=str(data.get("level", "INFO")).upper())


def parse_config(data: dict[str, Any]) -> InvoicingConfig:
    """
    Parse an ``InvoicingConfig`` from a dict.

    Missing sections fall back to the schema defaults.

    Raises:
        ValueError: unknown sections, wrong types or invalid values.
    """
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {sorted(unknown)}")

    currency = str(data.get("currency", "INR")).upper()
    if currency != "INR":
        raise ValueError(f"Only INR is supported, got currency '{currency}'")

    return InvoicingConfig(
        currency=currency,
        taxes=parse_taxes(data.get("taxes") or {}),
        payments=parse_payments(data.get("payments") or {}),
        invoices=parse_invoices(data.get("invoices") or {}),
        logging=parse_logging(data.get("logging") or {}),
    )


def load_config(path: Path) -> InvoicingConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(Path(path)))


def compute_checksum(config: InvoicingConfig) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON form of a config.

    Identical configurations always produce identical checksums.
    """
    canonical = json.dumps(dataclasses.asdict(config), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
