"""
Values -- Decimal helpers for every monetary computation in the audit.

Responsibility:
    Provides the single rounding primitive (``round2``) and the lenient
    numeric coercion used at ingestion boundaries.  Every engine calls
    ``round2`` after each arithmetic step, so running totals are
    re-rounded on every accumulation rather than once at the end.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every engine module.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str()``
      before they ever reach a quantize call.
    - Two-place rounding, half away from zero (ROUND_HALF_UP).
    - Division by a zero rate yields zero, never an exception.

Failure modes:
    - ``round2`` raises ``decimal.InvalidOperation`` for NaN/infinite input.
      ``to_decimal`` never raises.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Decimal | int | float | str) -> Decimal:
    """
    Round to two decimal places, half away from zero.

    Postconditions:
        - Returns a Decimal with exponent -2.
        - ``round2(round2(x)) == round2(x)``.
    """
    return _as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def divide2(numerator: Decimal, denominator: Decimal) -> Decimal:
    """Rounded quotient; 0.00 when the denominator is zero."""
    if denominator == ZERO:
        return round2(ZERO)
    return round2(_as_decimal(numerator) / _as_decimal(denominator))


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a raw payload value into a Decimal.

    Missing, empty, boolean or unparseable values become zero so that a
    single malformed field never fails a whole batch.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, (int, float, str)):
        text = str(value).strip()
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            return ZERO
        return result if result.is_finite() else ZERO
    return ZERO


def title_case(text: str | None) -> str:
    """Lowercase ``text`` and capitalize the first letter of each word."""
    if not text:
        return ""
    return " ".join(word[:1].upper() + word[1:] for word in text.lower().split(" "))
