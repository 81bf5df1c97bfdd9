"""
Canonical JSON rendering of audit results.

Amounts render as strings with exactly two places; exchange rates keep
every digit the conversion used.  Enums render as their value and
mapping keys as strings; ``dumps`` sorts keys so identical inputs produce
byte-identical output.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from till_kernel.domain.values import round2

# Decimal fields that are factors, not amounts
_EXACT_FIELDS = frozenset({"rate"})


def _key(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _field_payload(name: str, value: Any) -> Any:
    if name in _EXACT_FIELDS and isinstance(value, Decimal):
        return str(value)
    return to_payload(value)


def to_payload(obj: Any) -> Any:
    """Convert result dataclasses into JSON-ready primitives."""
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    if isinstance(obj, Decimal):
        return str(round2(obj))
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _field_payload(f.name, getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, Mapping):
        return {_key(k): to_payload(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = [to_payload(v) for v in obj]
        return sorted(items) if isinstance(obj, (set, frozenset)) else items
    raise TypeError(f"Cannot serialize {type(obj).__name__}")


def dumps(obj: Any, indent: int | None = 2) -> str:
    return json.dumps(to_payload(obj), sort_keys=True, indent=indent, ensure_ascii=False)
