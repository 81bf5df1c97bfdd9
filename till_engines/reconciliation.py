"""
till_engines.reconciliation -- System versus counted reconciliation.

Responsibility:
    Compare what the orders recorded (system) against what the tills
    physically counted, per method and per section, and decide how the
    counted figures are allocated when one point-of-sale terminal serves
    both document classifications.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  A pure function of the
    two sections and the normalized counters.

Algorithm (cash-basis, per register):
    1. A point-of-sale method is *shared* when its cash-basis plus
       credit-basis system amount exceeds the cash-basis amount alone
       (strictly greater); otherwise it is exclusive to cash-basis.
    2. Shared terminal: counted = system.  The credit-basis rows absorb
       the terminal's variance.
    3. Exclusive terminal: counted = this register's settlement batches
       for the terminal, converted with the counters' rate.
    4. Other methods: counted = system.
    5. Shortfall = point-of-sale system minus counted.  When positive it
       is added to the register's cash-local counted amounts, once.

Algorithm (credit-basis, store-wide):
    - Point-of-sale rows: counted = all batches of the terminal minus the
      terminal's cash-basis system amount.
    - Other buckets: the tills' counted pool (opening float removed) minus
      the cash-basis system amount (cash-local: minus cash-basis counted,
      which already holds the absorbed shortfalls) is split across the
      bucket's rows in proportion to their system amounts.  A bucket with
      a positive pool and no rows gets one synthesized row.

Invariants enforced:
    - difference = counted - system on every row and every total.
    - grand-total difference == rounding adjustment.
    - Every sum is re-rounded after each addition.

Failure modes:
    - None.  Zero rates, zero system totals and absent buckets all
      degenerate to zero values.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from till_engines.aggregation import sort_methods
from till_engines.counters import CounterSet
from till_engines.totals import CashBasisSection, MethodTotals, Section
from till_engines.tracer import traced_engine
from till_kernel.domain.dtos import DocumentType
from till_kernel.domain.methods import (
    BUCKET_ORDER,
    PaymentBucket,
    bucket_for_method,
    canonical_label,
)
from till_kernel.domain.values import ZERO, divide2, round2
from till_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ReconciliationRow:
    """System versus counted amounts for one method of one section."""

    method: str
    bucket: PaymentBucket
    system_local: Decimal
    system_foreign: Decimal
    counted_local: Decimal
    counted_foreign: Decimal
    difference_local: Decimal
    difference_foreign: Decimal
    register_id: str | None = None
    synthesized: bool = False

    @classmethod
    def build(
        cls,
        method: str,
        system_local: Decimal,
        system_foreign: Decimal,
        counted_local: Decimal,
        counted_foreign: Decimal,
        register_id: str | None = None,
        synthesized: bool = False,
    ) -> ReconciliationRow:
        return cls(
            method=method,
            bucket=bucket_for_method(method),
            system_local=round2(system_local),
            system_foreign=round2(system_foreign),
            counted_local=round2(counted_local),
            counted_foreign=round2(counted_foreign),
            difference_local=round2(counted_local - system_local),
            difference_foreign=round2(counted_foreign - system_foreign),
            register_id=register_id,
            synthesized=synthesized,
        )

    def with_counted(self, counted_local: Decimal, counted_foreign: Decimal) -> ReconciliationRow:
        return ReconciliationRow.build(
            self.method,
            self.system_local,
            self.system_foreign,
            counted_local,
            counted_foreign,
            register_id=self.register_id,
            synthesized=self.synthesized,
        )

    def merge(self, other: ReconciliationRow) -> ReconciliationRow:
        """Consolidate the same method from another register."""
        return ReconciliationRow.build(
            self.method,
            round2(self.system_local + other.system_local),
            round2(self.system_foreign + other.system_foreign),
            round2(self.counted_local + other.counted_local),
            round2(self.counted_foreign + other.counted_foreign),
            register_id=None,
            synthesized=self.synthesized and other.synthesized,
        )


@dataclass(frozen=True)
class RowTotals:
    """Rounded sums of a set of reconciliation rows."""

    system_local: Decimal = round2(0)
    system_foreign: Decimal = round2(0)
    counted_local: Decimal = round2(0)
    counted_foreign: Decimal = round2(0)
    difference_local: Decimal = round2(0)
    difference_foreign: Decimal = round2(0)

    def add(self, row: ReconciliationRow | RowTotals) -> RowTotals:
        return RowTotals(
            system_local=round2(self.system_local + row.system_local),
            system_foreign=round2(self.system_foreign + row.system_foreign),
            counted_local=round2(self.counted_local + row.counted_local),
            counted_foreign=round2(self.counted_foreign + row.counted_foreign),
            difference_local=round2(self.difference_local + row.difference_local),
            difference_foreign=round2(self.difference_foreign + row.difference_foreign),
        )

    @classmethod
    def of(cls, rows: Iterable[ReconciliationRow | RowTotals]) -> RowTotals:
        totals = cls()
        for row in rows:
            totals = totals.add(row)
        return totals


@dataclass(frozen=True)
class RegisterReconciliation:
    """Cash-basis rows of one register and its applied shortfall."""

    register_id: str
    rows: tuple[ReconciliationRow, ...]
    totals: RowTotals
    shortfall_local: Decimal = round2(0)
    shortfall_foreign: Decimal = round2(0)


@dataclass(frozen=True)
class SectionReconciliation:
    document_type: DocumentType
    rows: tuple[ReconciliationRow, ...] = ()
    totals: RowTotals = field(default_factory=RowTotals)


@dataclass(frozen=True)
class CashBasisReconciliation(SectionReconciliation):
    """Cash-basis rows merged across registers plus the per-register breakdown."""

    registers: Mapping[str, RegisterReconciliation] = field(default_factory=dict)


@dataclass(frozen=True)
class BucketComparison:
    """Orders-side versus till-side system figure for one bucket."""

    bucket: PaymentBucket
    orders_foreign: Decimal
    tills_foreign: Decimal
    difference: Decimal
    within_tolerance: bool


@dataclass(frozen=True)
class BucketComparisonTotals:
    """All buckets of the orders/tills comparison summed."""

    orders_foreign: Decimal = round2(0)
    tills_foreign: Decimal = round2(0)
    difference: Decimal = round2(0)
    # |difference| as a percentage of the orders side; 0 without orders
    percentage: Decimal = round2(0)
    within_tolerance: bool = True


@dataclass(frozen=True)
class ReconciliationResult:
    cash_basis: CashBasisReconciliation
    credit_basis: SectionReconciliation
    grand_totals: RowTotals
    rounding_adjustment: Decimal
    rounding_percentage: Decimal
    warning: bool
    rate: Decimal
    bucket_comparison: tuple[BucketComparison, ...] = ()
    bucket_totals: BucketComparisonTotals = field(default_factory=BucketComparisonTotals)


# (local, foreign) pairs keyed by method, terminal or bucket
_Pair = tuple[Decimal, Decimal]
_ZERO_PAIR: _Pair = (round2(ZERO), round2(ZERO))


def _add_pair(pairs: dict, key: object, local: Decimal, foreign: Decimal) -> None:
    current = pairs.get(key, _ZERO_PAIR)
    pairs[key] = (round2(current[0] + local), round2(current[1] + foreign))


def _system_by_method(methods: Iterable[MethodTotals]) -> dict[str, _Pair]:
    pairs: dict[str, _Pair] = {}
    for row in methods:
        _add_pair(pairs, row.method, row.amount_local, row.amount_foreign)
    return pairs


class ReconciliationEngine:
    """
    Pure reconciliation of system versus counted amounts.

    Contract:
        No I/O, fully deterministic, never raises on numeric edge cases.
        Inputs are not mutated; every result is a new frozen structure.
    """

    def __init__(
        self,
        sort_first: Sequence[str] = (),
        sort_last: Sequence[str] = (),
        warning_threshold_pct: Decimal = Decimal("1"),
        bucket_tolerance: Decimal = Decimal("1.00"),
    ) -> None:
        self._sort_first = tuple(sort_first)
        self._sort_last = tuple(sort_last)
        self._warning_threshold_pct = warning_threshold_pct
        self._bucket_tolerance = bucket_tolerance

    def _sorted(self, rows: Iterable[ReconciliationRow]) -> tuple[ReconciliationRow, ...]:
        return sort_methods(rows, self._sort_first, self._sort_last)

    @traced_engine(
        "reconciliation", "1.0",
        fingerprint_fields=("cash_basis", "credit_basis", "counters"),
    )
    def reconcile(
        self,
        cash_basis: CashBasisSection,
        credit_basis: Section,
        counters: CounterSet,
    ) -> ReconciliationResult:
        rate = counters.rate

        batches_by_register: dict[tuple[str, str], Decimal] = {}
        batches_by_terminal: dict[str, Decimal] = {}
        for record in counters.records:
            for batch in record.batches:
                key = (record.register_id, batch.terminal)
                batches_by_register[key] = round2(
                    batches_by_register.get(key, ZERO) + batch.amount_local
                )
                batches_by_terminal[batch.terminal] = round2(
                    batches_by_terminal.get(batch.terminal, ZERO) + batch.amount_local
                )

        cash_system = _system_by_method(cash_basis.methods)
        credit_system = _system_by_method(credit_basis.methods)
        shared = self.shared_terminals(cash_system, credit_system)

        registers = {
            register_id: self._reconcile_register(
                register_id, section, shared, batches_by_register, rate,
            )
            for register_id, section in cash_basis.registers.items()
        }
        cash_result = self._merge_registers(registers)
        credit_result = self._reconcile_credit_basis(
            credit_basis, cash_system, cash_result, counters, batches_by_terminal, rate,
        )

        grand_totals = cash_result.totals.add(credit_result.totals)
        adjustment = round2(grand_totals.counted_foreign - grand_totals.system_foreign)
        if grand_totals.system_foreign == ZERO:
            percentage = round2(ZERO)
        else:
            percentage = round2(abs(adjustment) / grand_totals.system_foreign * _HUNDRED)
        warning = percentage > self._warning_threshold_pct

        comparison = self.compare_buckets(cash_basis, credit_basis, counters)
        bucket_totals = self.comparison_totals(comparison)

        log_extra = {
            "register_count": len(registers),
            "shared_terminals": sorted(shared),
            "system_foreign": str(grand_totals.system_foreign),
            "counted_foreign": str(grand_totals.counted_foreign),
            "rounding_adjustment": str(adjustment),
            "rounding_percentage": str(percentage),
            "warning": warning,
        }
        if warning:
            logger.warning("reconciliation_variance_above_threshold", extra=log_extra)
        logger.info("reconciliation_completed", extra=log_extra)

        return ReconciliationResult(
            cash_basis=cash_result,
            credit_basis=credit_result,
            grand_totals=grand_totals,
            rounding_adjustment=adjustment,
            rounding_percentage=percentage,
            warning=warning,
            rate=rate,
            bucket_comparison=comparison,
            bucket_totals=bucket_totals,
        )

    @staticmethod
    def shared_terminals(
        cash_system: Mapping[str, _Pair],
        credit_system: Mapping[str, _Pair],
    ) -> frozenset[str]:
        """
        Point-of-sale methods that also carry credit-basis usage.

        The comparison is strict: a combined amount equal to the
        cash-basis amount leaves the terminal exclusive.
        """
        shared = set()
        for method, (_, cash_foreign) in cash_system.items():
            if bucket_for_method(method) != PaymentBucket.POINT_OF_SALE:
                continue
            credit_foreign = credit_system.get(method, _ZERO_PAIR)[1]
            if round2(cash_foreign + credit_foreign) > cash_foreign:
                shared.add(method)
        return frozenset(shared)

    def _reconcile_register(
        self,
        register_id: str,
        section: Section,
        shared: frozenset[str],
        batches_by_register: Mapping[tuple[str, str], Decimal],
        rate: Decimal,
    ) -> RegisterReconciliation:
        rows: list[ReconciliationRow] = []
        pos_system = pos_counted = _ZERO_PAIR

        for method in section.methods:
            bucket = bucket_for_method(method.method)
            counted_local, counted_foreign = method.amount_local, method.amount_foreign
            if bucket == PaymentBucket.POINT_OF_SALE:
                if method.method not in shared:
                    counted_local = round2(
                        batches_by_register.get((register_id, method.method), ZERO)
                    )
                    counted_foreign = divide2(counted_local, rate)
                pos_system = (
                    round2(pos_system[0] + method.amount_local),
                    round2(pos_system[1] + method.amount_foreign),
                )
                pos_counted = (
                    round2(pos_counted[0] + counted_local),
                    round2(pos_counted[1] + counted_foreign),
                )
            rows.append(ReconciliationRow.build(
                method.method,
                method.amount_local,
                method.amount_foreign,
                counted_local,
                counted_foreign,
                register_id=register_id,
            ))

        shortfall_foreign = round2(pos_system[1] - pos_counted[1])
        shortfall_local = round2(pos_system[0] - pos_counted[0])
        if shortfall_foreign > ZERO:
            shortfall_local = max(shortfall_local, round2(ZERO))
            rows = self._absorb_shortfall(rows, register_id, shortfall_local, shortfall_foreign)
        else:
            shortfall_local = shortfall_foreign = round2(ZERO)

        ordered = self._sorted(rows)
        return RegisterReconciliation(
            register_id=register_id,
            rows=ordered,
            totals=RowTotals.of(ordered),
            shortfall_local=shortfall_local,
            shortfall_foreign=shortfall_foreign,
        )

    @staticmethod
    def _absorb_shortfall(
        rows: list[ReconciliationRow],
        register_id: str,
        shortfall_local: Decimal,
        shortfall_foreign: Decimal,
    ) -> list[ReconciliationRow]:
        """Add the shortfall to the register's cash-local counted amounts."""
        for i, row in enumerate(rows):
            if row.bucket == PaymentBucket.CASH_LOCAL:
                rows[i] = row.with_counted(
                    round2(row.counted_local + shortfall_local),
                    round2(row.counted_foreign + shortfall_foreign),
                )
                return rows
        rows.append(ReconciliationRow.build(
            canonical_label(PaymentBucket.CASH_LOCAL),
            ZERO,
            ZERO,
            shortfall_local,
            shortfall_foreign,
            register_id=register_id,
            synthesized=True,
        ))
        return rows

    def _merge_registers(
        self,
        registers: Mapping[str, RegisterReconciliation],
    ) -> CashBasisReconciliation:
        merged: dict[str, ReconciliationRow] = {}
        for register in registers.values():
            for row in register.rows:
                existing = merged.get(row.method)
                merged[row.method] = (
                    existing.merge(row) if existing else replace(row, register_id=None)
                )
        return CashBasisReconciliation(
            document_type=DocumentType.CASH_BASIS,
            rows=self._sorted(merged.values()),
            totals=RowTotals.of(r.totals for r in registers.values()),
            registers=dict(registers),
        )

    def _reconcile_credit_basis(
        self,
        credit_basis: Section,
        cash_system: Mapping[str, _Pair],
        cash_result: CashBasisReconciliation,
        counters: CounterSet,
        batches_by_terminal: Mapping[str, Decimal],
        rate: Decimal,
    ) -> SectionReconciliation:
        cash_system_by_bucket: dict[PaymentBucket, _Pair] = {}
        for method, (local, foreign) in cash_system.items():
            _add_pair(cash_system_by_bucket, bucket_for_method(method), local, foreign)

        cash_counted_by_bucket: dict[PaymentBucket, _Pair] = {}
        for row in cash_result.rows:
            _add_pair(cash_counted_by_bucket, row.bucket, row.counted_local, row.counted_foreign)

        tills_counted: dict[PaymentBucket, _Pair] = {}
        for record in counters.records:
            for bucket in BUCKET_ORDER:
                local, foreign = record.counted_net(bucket)
                _add_pair(tills_counted, bucket, local, foreign)

        rows: list[ReconciliationRow] = []
        by_bucket: dict[PaymentBucket, list[MethodTotals]] = {}
        for method in credit_basis.methods:
            bucket = bucket_for_method(method.method)
            if bucket == PaymentBucket.POINT_OF_SALE:
                batch_local = batches_by_terminal.get(method.method, ZERO)
                cash_local, cash_foreign = cash_system.get(method.method, _ZERO_PAIR)
                rows.append(ReconciliationRow.build(
                    method.method,
                    method.amount_local,
                    method.amount_foreign,
                    round2(batch_local - cash_local),
                    round2(divide2(batch_local, rate) - cash_foreign),
                ))
            else:
                by_bucket.setdefault(bucket, []).append(method)

        for bucket in BUCKET_ORDER:
            if bucket == PaymentBucket.POINT_OF_SALE:
                continue
            counted_local, counted_foreign = tills_counted.get(bucket, _ZERO_PAIR)
            if bucket == PaymentBucket.CASH_LOCAL:
                used_local, used_foreign = cash_counted_by_bucket.get(bucket, _ZERO_PAIR)
            else:
                used_local, used_foreign = cash_system_by_bucket.get(bucket, _ZERO_PAIR)
            pool_local = round2(counted_local - used_local)
            pool_foreign = round2(counted_foreign - used_foreign)
            rows.extend(self.distribute_pool(
                bucket, by_bucket.get(bucket, []), pool_local, pool_foreign,
            ))

        ordered = self._sorted(rows)
        return SectionReconciliation(
            document_type=DocumentType.CREDIT_BASIS,
            rows=ordered,
            totals=RowTotals.of(ordered),
        )

    @staticmethod
    def distribute_pool(
        bucket: PaymentBucket,
        methods: Sequence[MethodTotals],
        pool_local: Decimal,
        pool_foreign: Decimal,
    ) -> list[ReconciliationRow]:
        """
        Split a bucket's counted pool across its credit-basis methods in
        proportion to their system amounts.

        A zero bucket system total gives every method a zero share.  With
        no methods at all, a positive pool becomes one synthesized row.
        """
        if not methods:
            if pool_foreign > ZERO:
                return [ReconciliationRow.build(
                    canonical_label(bucket),
                    ZERO,
                    ZERO,
                    pool_local,
                    pool_foreign,
                    synthesized=True,
                )]
            return []

        bucket_system = round2(ZERO)
        for method in methods:
            bucket_system = round2(bucket_system + method.amount_foreign)

        rows = []
        for method in methods:
            if bucket_system == ZERO:
                share = ZERO
            else:
                share = method.amount_foreign / bucket_system
            rows.append(ReconciliationRow.build(
                method.method,
                method.amount_local,
                method.amount_foreign,
                round2(pool_local * share),
                round2(pool_foreign * share),
            ))
        return rows

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("counters",))
    def compare_buckets(
        self,
        cash_basis: Section,
        credit_basis: Section,
        counters: CounterSet,
    ) -> tuple[BucketComparison, ...]:
        """Orders-side system amount against the tills' system figure per bucket."""
        orders: dict[PaymentBucket, Decimal] = {}
        for method in (*cash_basis.methods, *credit_basis.methods):
            bucket = bucket_for_method(method.method)
            orders[bucket] = round2(orders.get(bucket, ZERO) + method.amount_foreign)

        tills: dict[PaymentBucket, Decimal] = {}
        for record in counters.records:
            for bucket in BUCKET_ORDER:
                tills[bucket] = round2(
                    tills.get(bucket, ZERO) + record.bucket(bucket).system_foreign
                )

        comparison = []
        for bucket in BUCKET_ORDER:
            orders_foreign = orders.get(bucket, round2(ZERO))
            tills_foreign = tills.get(bucket, round2(ZERO))
            difference = round2(orders_foreign - tills_foreign)
            comparison.append(BucketComparison(
                bucket=bucket,
                orders_foreign=orders_foreign,
                tills_foreign=tills_foreign,
                difference=difference,
                within_tolerance=abs(difference) <= self._bucket_tolerance,
            ))
        return tuple(comparison)

    def comparison_totals(
        self, comparison: Iterable[BucketComparison],
    ) -> BucketComparisonTotals:
        """Sum the per-bucket comparison into one orders/tills figure."""
        orders_foreign = round2(ZERO)
        tills_foreign = round2(ZERO)
        for item in comparison:
            orders_foreign = round2(orders_foreign + item.orders_foreign)
            tills_foreign = round2(tills_foreign + item.tills_foreign)

        difference = round2(orders_foreign - tills_foreign)
        if orders_foreign == ZERO:
            percentage = round2(ZERO)
        else:
            percentage = round2(abs(difference) / orders_foreign * _HUNDRED)
        return BucketComparisonTotals(
            orders_foreign=orders_foreign,
            tills_foreign=tills_foreign,
            difference=difference,
            percentage=percentage,
            within_tolerance=abs(difference) <= self._bucket_tolerance,
        )
