"""
till_config -- single public entrypoint for audit configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains store
    metadata, method ordering lists, tax rates and reconciliation
    thresholds.  The YAML loader underneath is internal tooling.

Failure modes:
    - ``FileNotFoundError`` -- configuration file does not exist.
    - ``InvalidConfigurationError`` -- document missing keys or values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``TILL_CONFIG_TRACE`` log entry with config id, version and checksum,
    tying each report to the exact configuration that produced it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from till_config.loader import load_config
from till_config.schema import (
    MethodOrdering,
    ReconciliationThresholds,
    ReportConfig,
    StoreDefinition,
    TaxRates,
)

_logger = logging.getLogger("till_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"
_ENV_VAR = "TILL_AUDIT_CONFIG"


def get_active_config(config_path: Path | None = None) -> ReportConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: explicit ``config_path``, then the
    ``TILL_AUDIT_CONFIG`` environment variable, then the packaged
    ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        InvalidConfigurationError: If the document fails parsing.
    """
    if config_path is None:
        env_path = os.environ.get(_ENV_VAR)
        config_path = Path(env_path) if env_path else _DEFAULT_CONFIG_PATH

    config = load_config(config_path)

    _logger.info(
        "TILL_CONFIG_TRACE",
        extra={
            "trace_type": "TILL_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "store_count": len(config.stores),
            "config_path": str(config_path),
        },
    )
    return config


__all__ = [
    "MethodOrdering",
    "ReconciliationThresholds",
    "ReportConfig",
    "StoreDefinition",
    "TaxRates",
    "get_active_config",
]
