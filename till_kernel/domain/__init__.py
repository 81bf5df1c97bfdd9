"""
Pure domain layer.

This module contains value helpers, input DTOs and the payment method
catalog with NO dependencies on:
- Configuration files
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from till_kernel.domain.dtos import DocumentType, RawOrder
from till_kernel.domain.methods import (
    PaymentBucket,
    bucket_for_method,
    canonical_label,
)
from till_kernel.domain.values import (
    CENT,
    ZERO,
    divide2,
    round2,
    title_case,
    to_decimal,
)

__all__ = [
    "CENT",
    "ZERO",
    "DocumentType",
    "PaymentBucket",
    "RawOrder",
    "bucket_for_method",
    "canonical_label",
    "divide2",
    "round2",
    "title_case",
    "to_decimal",
]
