"""
InvoicingConfig schema.

Typed, frozen view of the YAML configuration. The loader parses YAML
into these types; services receive an ``InvoicingConfig`` and never read
files themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from gst_kernel.domain.records import PaymentMode, TaxRates

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxDefaults:
    """Default GST percentages offered for new invoice drafts."""

    default_cgst_rate: Decimal = Decimal("9")
    default_sgst_rate: Decimal = Decimal("9")
    default_igst_rate: Decimal = Decimal("18")


@dataclass(frozen=True)
class PaymentSettings:
    """Accepted payment modes."""

    modes: tuple[PaymentMode, ...] = (
        PaymentMode.CASH,
        PaymentMode.BANK,
        PaymentMode.UPI,
        PaymentMode.CHEQUE,
    )
    default_mode: PaymentMode = PaymentMode.CASH

    def __post_init__(self) -> None:
        if not self.modes:
            raise ValueError("payments.modes must list at least one mode")
        if self.default_mode not in self.modes:
            raise ValueError(
                f"payments.default_mode '{self.default_mode.value}' is not one of the accepted modes"
            )


@dataclass(frozen=True)
class InvoiceSettings:
    # A discount larger than the taxed subtotal drives the grand total
    # below zero; rejected unless explicitly allowed.
    allow_negative_grand_total: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"

    def __post_init__(self) -> None:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level not in valid:
            raise ValueError(f"logging.level must be one of {sorted(valid)}, got '{self.level}'")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoicingConfig:
    """
    Root configuration object.

    Field defaults mirror the packaged ``defaults.yaml``.
    """

    currency: str = "INR"
    taxes: TaxDefaults = field(default_factory=TaxDefaults)
    payments: PaymentSettings = field(default_factory=PaymentSettings)
    invoices: InvoiceSettings = field(default_factory=InvoiceSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def default_tax_rates(self, inter_state: bool = False) -> TaxRates:
        """Tax rates for a new draft: IGST when inter-state, else CGST/SGST."""
        if inter_state:
            return TaxRates.inter_state(self.taxes.default_igst_rate)
        return TaxRates.intra_state(self.taxes.default_cgst_rate, self.taxes.default_sgst_rate)

    def accepts_mode(self, mode: PaymentMode) -> bool:
        return mode in self.payments.modes
