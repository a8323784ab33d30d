"""
gst_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides ``get_active_config()``, the one way services obtain
    configuration at runtime. YAML parsing lives in ``gst_config.loader``.

Architecture position:
    Configuration -- sits above ``gst_kernel`` and below
    ``gst_services``. The kernel and the engines never import from
    ``gst_config``; services pass the relevant values down explicitly.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- schema validation failures.
    - ``yaml.YAMLError`` -- malformed YAML.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``GST_CONFIG_TRACE`` log entry carrying the source path and checksum.
"""

from __future__ import annotations

from pathlib import Path

from gst_config.loader import compute_checksum, load_config, parse_config
from gst_config.schema import (
    InvoiceSettings,
    InvoicingConfig,
    LoggingSettings,
    PaymentSettings,
    TaxDefaults,
)
from gst_kernel.logging_config import configure_logging, get_logger, set_log_level

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | None = None) -> InvoicingConfig:
    """
    The public configuration entrypoint.

    Args:
        config_path: YAML file to load. Defaults to the packaged
            ``defaults.yaml``.

    Returns:
        A frozen ``InvoicingConfig``.

    Raises:
        FileNotFoundError, ValueError, yaml.YAMLError.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    config = load_config(path)
    _logger.info("GST_CONFIG_TRACE", extra={
        "trace_type": "GST_CONFIG_TRACE",
        "config_path": str(path),
        "checksum": compute_checksum(config),
        "payment_modes": [m.value for m in config.payments.modes],
    })
    return config


def configure_logging_from(config: InvoicingConfig) -> None:
    """
    Configure structured logging at the level named by ``config.logging``.

    The level is applied even when logging was already configured.
    """
    configure_logging(level=config.logging.level)
    set_log_level(config.logging.level)


__all__ = [
    "get_active_config",
    "configure_logging_from",
    "load_config",
    "parse_config",
    "compute_checksum",
    "DEFAULT_CONFIG_PATH",
    "InvoicingConfig",
    "TaxDefaults",
    "PaymentSettings",
    "InvoiceSettings",
    "LoggingSettings",
]
