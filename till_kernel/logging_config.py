"""
Structured JSON logging for the till audit.

Every record is one JSON line carrying the audit context of the unit of
work that emitted it: which run (``correlation_id``), which report date,
which store and which operation.  The service binds that context once per
store, so engine code never passes it around.

Usage:
    from till_kernel.logging_config import LogContext, get_logger

    logger = get_logger("engines.rate")
    with LogContext.bind(report_date="2024-03-15", store_code="FQ01"):
        logger.info("rate_derived", extra={"rate": rate})
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# Audit context, in the order it appears in each line
CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "report_date",
    "store_code",
    "operation",
)

_CONTEXT: Mapping[str, ContextVar[str | None]] = {
    name: ContextVar(f"till_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _CONTEXT[name]
    except KeyError:
        raise TypeError(
            f"Unknown log context field {name!r}; expected one of {CONTEXT_FIELDS}"
        ) from None


class LogContext:
    """Per-thread / per-task audit context attached to every log line."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set context fields. None values leave the field untouched."""
        for name, value in fields.items():
            var = _context_var(name)
            if value is not None:
                var.set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        """Non-empty context fields, in declaration order."""
        return {
            name: value
            for name in CONTEXT_FIELDS
            if (value := _CONTEXT[name].get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a block, restoring them on exit."""
        tokens = [
            (var, var.set(value))
            for name, value in fields.items()
            if (var := _context_var(name)) is not None and value is not None
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Amounts as plain strings, enums (buckets, document types) as their value."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (UUID, Decimal)):
            return str(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return super().default(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: header, audit context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = value

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # Audit errors carry dataset, store and date as attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "args":
                fields.setdefault(f"exc_{name}", value)
        return fields


_LOGGER_PREFIX = "till_kernel"


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``till_kernel`` hierarchy."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON formatter to the ``till_kernel`` hierarchy.

    Idempotent: only the first call installs a handler.  ``level`` takes
    either a logging constant or its name (``"DEBUG"``).
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if isinstance(level, str):
        level = logging.getLevelNamesMapping()[level.upper()]

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root_logger.addHandler(target)


def reset_logging() -> None:
    """Undo configure_logging. Tests only."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True
