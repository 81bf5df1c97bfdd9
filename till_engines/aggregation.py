"""
till_engines.aggregation -- Group payment lines into per-method totals.

Responsibility:
    Consolidate PaymentLines by grouping key.  Cash-basis lines are kept
    apart per register: key (document, register, method).  Credit-basis
    lines are consolidated store-wide: key (document, method).

Invariants enforced:
    - Running sums are re-rounded after every increment, never only at
      the end.
    - ``count`` equals the number of contributing lines exactly.
    - Groups are emitted in first-seen order, so identical inputs always
      produce identical outputs.

Also provides the section sort order shared by every view of a section:
fixed-priority methods first, dynamic terminals next, the fixed trailing
list last, alphabetical within a tie.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Protocol, TypeVar

from till_engines.decomposition import PaymentLine
from till_engines.tracer import traced_engine
from till_kernel.domain.dtos import DocumentType
from till_kernel.domain.values import ZERO, round2
from till_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

_DYNAMIC_BUCKET = 500
_TRAILING_BUCKET = 1000


@dataclass(frozen=True)
class AggregatedMethod:
    """Totals for one grouping key."""

    document_type: DocumentType
    register_id: str | None  # None for credit-basis groups
    method: str
    amount_local: Decimal = ZERO
    amount_foreign: Decimal = ZERO
    count: int = 0
    is_dollar: bool = False

    @property
    def key(self) -> tuple[DocumentType, str | None, str]:
        return (self.document_type, self.register_id, self.method)


def grouping_key(line: PaymentLine) -> tuple[DocumentType, str | None, str]:
    """Register only distinguishes cash-basis groups."""
    if line.document_type == DocumentType.CASH_BASIS:
        return (line.document_type, line.register_id, line.method)
    return (line.document_type, None, line.method)


class LineAggregator:
    """
    Pure aggregator of payment lines.

    Contract:
        No I/O, fully deterministic.
    Guarantees:
        - Each group's totals equal the rounded running sum of its lines.
    """

    @traced_engine("aggregation", "1.0", fingerprint_fields=("lines",))
    def aggregate(self, lines: Iterable[PaymentLine]) -> tuple[AggregatedMethod, ...]:
        groups: dict[tuple[DocumentType, str | None, str], AggregatedMethod] = {}
        line_count = 0
        for line in lines:
            line_count += 1
            key = grouping_key(line)
            current = groups.get(key)
            if current is None:
                current = AggregatedMethod(
                    document_type=key[0],
                    register_id=key[1],
                    method=key[2],
                    is_dollar=line.is_dollar,
                )
            groups[key] = replace(
                current,
                amount_local=round2(current.amount_local + line.amount_local),
                amount_foreign=round2(current.amount_foreign + line.amount_foreign),
                count=current.count + 1,
            )

        logger.info("lines_aggregated", extra={
            "line_count": line_count,
            "group_count": len(groups),
        })
        return tuple(groups.values())


class _HasMethod(Protocol):
    @property
    def method(self) -> str: ...


_M = TypeVar("_M", bound=_HasMethod)


def method_rank(method: str, sort_first: Sequence[str], sort_last: Sequence[str]) -> int:
    """Sort bucket index of a method label."""
    if method in sort_first:
        return list(sort_first).index(method)
    if method in sort_last:
        return _TRAILING_BUCKET + list(sort_last).index(method)
    return _DYNAMIC_BUCKET


def sort_methods(
    items: Iterable[_M],
    sort_first: Sequence[str],
    sort_last: Sequence[str],
) -> tuple[_M, ...]:
    """Fixed-priority, then dynamic terminals, then fixed trailing."""
    return tuple(sorted(
        items,
        key=lambda item: (method_rank(item.method, sort_first, sort_last), item.method),
    ))
