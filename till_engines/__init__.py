"""
Module: till_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    till_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import till_kernel (and sibling engine modules).
    MUST NOT import till_services or till_ingestion.

Invariants enforced:
    - Decimal-only arithmetic: every monetary amount is a ``Decimal``
      rounded to two places after each operation.
    - Determinism: identical inputs always produce identical outputs.
    - Engines never read configuration files or the clock; rates, store
      flags and ordering lists arrive as parameters.

Audit relevance:
    Every engine entrypoint is traced via ``@traced_engine`` (see
    ``till_engines.tracer``), emitting TILL_ENGINE_TRACE log records with
    engine name, version, input fingerprint and duration.

Usage:
    from till_engines.rate import derive_rate
    from till_engines.decomposition import PaymentDecomposer
    from till_engines.aggregation import LineAggregator
    from till_engines.totals import TotalsCalculator
    from till_engines.counters import CounterNormalizer
    from till_engines.reconciliation import ReconciliationEngine
"""

from till_engines.aggregation import (
    AggregatedMethod,
    LineAggregator,
    method_rank,
    sort_methods,
)
from till_engines.counters import (
    BatchEntry,
    BucketAmounts,
    CounterGrandTotals,
    CounterNormalizer,
    CounterRecord,
    CounterSet,
)
from till_engines.decomposition import (
    PaymentDecomposer,
    PaymentLine,
    terminal_method_name,
)
from till_engines.rate import derive_rate
from till_engines.reconciliation import (
    BucketComparison,
    BucketComparisonTotals,
    CashBasisReconciliation,
    ReconciliationEngine,
    ReconciliationResult,
    ReconciliationRow,
    RegisterReconciliation,
    RowTotals,
    SectionReconciliation,
)
from till_engines.totals import (
    CashBasisSection,
    MethodTotals,
    SalesSummary,
    Section,
    SectionTotals,
    TotalsCalculator,
    Verification,
)
from till_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AggregatedMethod",
    "BatchEntry",
    "BucketAmounts",
    "BucketComparison",
    "BucketComparisonTotals",
    "CashBasisReconciliation",
    "CashBasisSection",
    "CounterGrandTotals",
    "CounterNormalizer",
    "CounterRecord",
    "CounterSet",
    "LineAggregator",
    "MethodTotals",
    "PaymentDecomposer",
    "PaymentLine",
    "ReconciliationEngine",
    "ReconciliationResult",
    "ReconciliationRow",
    "RegisterReconciliation",
    "RowTotals",
    "SalesSummary",
    "Section",
    "SectionReconciliation",
    "SectionTotals",
    "TotalsCalculator",
    "Verification",
    "compute_input_fingerprint",
    "derive_rate",
    "method_rank",
    "sort_methods",
    "terminal_method_name",
    "traced_engine",
]
