"""
Configuration Loader (``till_config.loader``).

Loads a YAML configuration document and parses it into the frozen
``till_config.schema`` dataclasses.  Runtime callers go through
``till_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys or bad values  -> ``InvalidConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from till_config.schema import (
    MethodOrdering,
    ReconciliationThresholds,
    ReportConfig,
    StoreDefinition,
    TaxRates,
)
from till_kernel.exceptions import InvalidConfigurationError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _require(data: dict[str, Any], key: str, source: str) -> Any:
    if key not in data or data[key] is None:
        raise InvalidConfigurationError(source, f"missing required key '{key}'")
    return data[key]


def _parse_decimal(value: Any, key: str, source: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidConfigurationError(source, f"'{key}' is not a number: {value!r}") from e
    if result < 0:
        raise InvalidConfigurationError(source, f"'{key}' cannot be negative")
    return result


def _parse_names(value: Any, key: str, source: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise InvalidConfigurationError(source, f"'{key}' must be a list")
    return tuple(str(item) for item in value)


def parse_store(data: dict[str, Any], source: str = "<memory>") -> StoreDefinition:
    """Parse a StoreDefinition from a dict."""
    code = str(_require(data, "code", source)).upper()
    return StoreDefinition(
        code=code,
        name=str(data.get("name") or code),
        withholding_agent=bool(data.get("withholding_agent", True)),
    )


def parse_methods(data: dict[str, Any], source: str = "<memory>") -> MethodOrdering:
    """Parse the method ordering lists."""
    return MethodOrdering(
        sort_first=_parse_names(data.get("sort_first"), "sort_first", source),
        sort_last=_parse_names(data.get("sort_last"), "sort_last", source),
        dollar=_parse_names(data.get("dollar"), "dollar", source),
    )


def parse_config(data: dict[str, Any], source: str = "<memory>") -> ReportConfig:
    """
    Parse a full ``ReportConfig`` from a YAML document.

    Raises:
        InvalidConfigurationError: if required keys are missing or a
            numeric value cannot be parsed.
    """
    currencies = _require(data, "currencies", source)
    stores_data = _require(data, "stores", source)
    if not isinstance(stores_data, list):
        raise InvalidConfigurationError(source, "'stores' must be a list")

    stores = tuple(parse_store(s, source) for s in stores_data)
    codes = [s.code for s in stores]
    if len(codes) != len(set(codes)):
        raise InvalidConfigurationError(source, "duplicate store codes")

    tax_data = data.get("tax") or {}
    tax = TaxRates(
        consumption_rate=_parse_decimal(
            tax_data.get("consumption_rate", "0.16"), "consumption_rate", source
        ),
        withholding_rate=_parse_decimal(
            tax_data.get("withholding_rate", "0.03"), "withholding_rate", source
        ),
    )

    recon_data = data.get("reconciliation") or {}
    thresholds = ReconciliationThresholds(
        warning_threshold_pct=_parse_decimal(
            recon_data.get("warning_threshold_pct", "1"), "warning_threshold_pct", source
        ),
        bucket_tolerance=_parse_decimal(
            recon_data.get("bucket_tolerance", "1.00"), "bucket_tolerance", source
        ),
    )

    return ReportConfig(
        config_id=str(_require(data, "config_id", source)),
        version=int(data.get("version", 1)),
        local_currency=str(_require(currencies, "local", source)),
        foreign_currency=str(_require(currencies, "foreign", source)),
        stores=stores,
        methods=parse_methods(data.get("methods") or {}, source),
        tax=tax,
        thresholds=thresholds,
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> ReportConfig:
    """Load and parse a configuration file."""
    return parse_config(load_yaml_file(path), source=str(path))
