"""
till_engines.counters -- Normalize register closing payloads.

Responsibility:
    Reshape the raw per-operator closing payloads into CounterRecords with
    one BucketAmounts per payment type, the opening cash float, and the
    physical point-of-sale settlement batches.  Also rolls all records up
    into store-level grand totals.

Invariants enforced:
    - One rate for the whole report: the first operator's declared rate,
      or zero when absent.  A zero rate converts to zero, never faults.
    - Every monetary sub-field is rounded to two places.
    - Batches with zero or missing amounts are dropped.
    - Missing numeric fields read as zero.

Failure modes:
    - None.  Non-mapping payload entries are skipped with a warning.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from till_engines.decomposition import terminal_method_name
from till_engines.tracer import traced_engine
from till_kernel.domain.methods import BUCKET_ORDER, PaymentBucket
from till_kernel.domain.values import ZERO, divide2, round2, to_decimal
from till_kernel.logging_config import get_logger

logger = get_logger("engines.counters")


@dataclass(frozen=True)
class BatchEntry:
    """One point-of-sale settlement batch reported at closing."""

    terminal: str
    batch_id: str
    amount_local: Decimal


@dataclass(frozen=True)
class BucketAmounts:
    """System versus counted figures for one payment-type bucket."""

    system_local: Decimal = round2(0)
    system_foreign: Decimal = round2(0)
    counted_local: Decimal = round2(0)
    counted_foreign: Decimal = round2(0)

    @property
    def difference_local(self) -> Decimal:
        return round2(self.counted_local - self.system_local)

    @property
    def difference_foreign(self) -> Decimal:
        return round2(self.counted_foreign - self.system_foreign)

    def add(self, other: BucketAmounts) -> BucketAmounts:
        return BucketAmounts(
            system_local=round2(self.system_local + other.system_local),
            system_foreign=round2(self.system_foreign + other.system_foreign),
            counted_local=round2(self.counted_local + other.counted_local),
            counted_foreign=round2(self.counted_foreign + other.counted_foreign),
        )


@dataclass(frozen=True)
class CounterRecord:
    """One operator/terminal closing."""

    operator_name: str
    operator_code: str
    register_id: str
    terminal_id: str
    opening_cash_local: Decimal
    opening_cash_foreign: Decimal
    # Opening balances expressed in the other currency
    opening_local_in_foreign: Decimal
    opening_foreign_in_local: Decimal
    buckets: Mapping[PaymentBucket, BucketAmounts]
    total_system_foreign: Decimal = round2(0)
    total_counted_foreign: Decimal = round2(0)
    total_difference_foreign: Decimal = round2(0)
    difference_pct: Decimal = ZERO
    closed_by: str = ""
    batches: tuple[BatchEntry, ...] = ()

    def bucket(self, bucket: PaymentBucket) -> BucketAmounts:
        return self.buckets.get(bucket, BucketAmounts())

    def counted_net(self, bucket: PaymentBucket) -> tuple[Decimal, Decimal]:
        """
        Counted (local, foreign) for ``bucket`` with the opening float
        removed from the two cash buckets.
        """
        amounts = self.bucket(bucket)
        if bucket == PaymentBucket.CASH_FOREIGN:
            return (
                round2(amounts.counted_local - self.opening_foreign_in_local),
                round2(amounts.counted_foreign - self.opening_cash_foreign),
            )
        if bucket == PaymentBucket.CASH_LOCAL:
            return (
                round2(amounts.counted_local - self.opening_cash_local),
                round2(amounts.counted_foreign - self.opening_local_in_foreign),
            )
        return amounts.counted_local, amounts.counted_foreign


@dataclass(frozen=True)
class CounterSet:
    """All closings of one (date, store) with their shared rate."""

    report_date: str
    store_code: str
    rate: Decimal
    records: tuple[CounterRecord, ...] = ()


@dataclass(frozen=True)
class CounterGrandTotals:
    """Store-level sums across every normalized closing."""

    buckets: Mapping[PaymentBucket, BucketAmounts] = field(default_factory=dict)
    total_system_foreign: Decimal = round2(0)
    total_counted_foreign: Decimal = round2(0)
    # Sum of each till's own reported difference
    total_difference_foreign: Decimal = round2(0)
    # system - counted: positive means money is missing
    variance_foreign: Decimal = round2(0)


# (system_local, system_foreign, counted_local, counted_foreign) payload keys.
# None marks a side the till does not report; it is derived via the rate.
_BUCKET_KEYS: Mapping[PaymentBucket, tuple[str | None, str | None, str | None, str | None]] = {
    PaymentBucket.POINT_OF_SALE: ("puntoSis", "puntoSisUsd", "puntoConteoBs", "puntoConteoUsd"),
    PaymentBucket.MOBILE_TRANSFER: ("movilSis", "movilSisUsd", "movilConteoBs", "movilConteoUsd"),
    PaymentBucket.CASH_FOREIGN: (None, "usdSis", None, "usdConteo"),
    PaymentBucket.CASH_LOCAL: ("vesSis", "vesSisUsd", "vesConteo", "vesConteoUsd"),
    PaymentBucket.PEER_TRANSFER: (None, "zelleSis", None, "zelleConteo"),
}


def _amount(payload: Mapping[str, Any], key: str | None) -> Decimal:
    return round2(to_decimal(payload.get(key))) if key else round2(ZERO)


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return "" if value is None else str(value).strip()


def extract_batches(payload: Mapping[str, Any]) -> tuple[BatchEntry, ...]:
    """Flatten the nested ``puntosConteo`` breakdown into BatchEntries."""
    breakdown = payload.get("puntosConteo")
    if not isinstance(breakdown, Mapping):
        return ()

    batches: list[BatchEntry] = []
    for terminal, detail in breakdown.items():
        if not isinstance(detail, Mapping):
            continue
        entries = detail.get("lotes")
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            amount = round2(to_decimal(entry.get("monto")))
            if amount == ZERO:
                continue
            batches.append(BatchEntry(
                terminal=terminal_method_name(str(terminal).strip()),
                batch_id=_text(entry, "lote"),
                amount_local=amount,
            ))
    return tuple(batches)


class CounterNormalizer:
    """
    Pure normalizer of register closing payloads.

    Contract:
        No I/O, fully deterministic.
    """

    def normalize_record(self, payload: Mapping[str, Any], rate: Decimal) -> CounterRecord:
        """Normalize one operator payload with the report's shared rate."""
        buckets: dict[PaymentBucket, BucketAmounts] = {}
        for bucket in BUCKET_ORDER:
            sys_local_key, sys_foreign_key, cnt_local_key, cnt_foreign_key = _BUCKET_KEYS[bucket]
            system_foreign = _amount(payload, sys_foreign_key)
            counted_foreign = _amount(payload, cnt_foreign_key)
            buckets[bucket] = BucketAmounts(
                system_local=(
                    _amount(payload, sys_local_key)
                    if sys_local_key else round2(system_foreign * rate)
                ),
                system_foreign=system_foreign,
                counted_local=(
                    _amount(payload, cnt_local_key)
                    if cnt_local_key else round2(counted_foreign * rate)
                ),
                counted_foreign=counted_foreign,
            )

        opening_local = _amount(payload, "efectivoBs")
        opening_foreign = _amount(payload, "efectivoUsd")
        return CounterRecord(
            operator_name=_text(payload, "operatorName"),
            operator_code=_text(payload, "operatorCode"),
            register_id=_text(payload, "caja"),
            terminal_id=_text(payload, "punto"),
            opening_cash_local=opening_local,
            opening_cash_foreign=opening_foreign,
            opening_local_in_foreign=divide2(opening_local, rate),
            opening_foreign_in_local=round2(opening_foreign * rate),
            buckets=buckets,
            total_system_foreign=_amount(payload, "totalSisUsd"),
            total_counted_foreign=_amount(payload, "totalConteoUsd"),
            total_difference_foreign=_amount(payload, "totalDif"),
            difference_pct=to_decimal(payload.get("porcentajeDiferencia")),
            closed_by=_text(payload, "cerradoPor"),
            batches=extract_batches(payload),
        )

    @traced_engine("counters", "1.0", fingerprint_fields=("payloads",))
    def normalize(
        self,
        payloads: Sequence[Mapping[str, Any]],
        report_date: str = "",
        store_code: str = "",
    ) -> CounterSet:
        """Normalize every closing of a report under the first declared rate."""
        valid = [p for p in payloads if isinstance(p, Mapping)]
        if len(valid) != len(payloads):
            logger.warning("counter_payloads_skipped", extra={
                "skipped": len(payloads) - len(valid),
            })

        rate = to_decimal(valid[0].get("rate")) if valid else ZERO
        if rate == ZERO:
            logger.warning("counter_rate_missing", extra={"record_count": len(valid)})

        records = tuple(self.normalize_record(p, rate) for p in valid)
        logger.info("counters_normalized", extra={
            "record_count": len(records),
            "batch_count": sum(len(r.batches) for r in records),
            "rate": str(rate),
        })
        return CounterSet(
            report_date=report_date,
            store_code=store_code,
            rate=rate,
            records=records,
        )

    @traced_engine("counters", "1.0", fingerprint_fields=("records",))
    def grand_totals(self, records: Sequence[CounterRecord]) -> CounterGrandTotals:
        """Sum every bucket and the till-reported totals across records."""
        buckets = {bucket: BucketAmounts() for bucket in BUCKET_ORDER}
        total_system = round2(ZERO)
        total_counted = round2(ZERO)
        total_difference = round2(ZERO)
        for record in records:
            for bucket in BUCKET_ORDER:
                buckets[bucket] = buckets[bucket].add(record.bucket(bucket))
            total_system = round2(total_system + record.total_system_foreign)
            total_counted = round2(total_counted + record.total_counted_foreign)
            total_difference = round2(total_difference + record.total_difference_foreign)

        return CounterGrandTotals(
            buckets=buckets,
            total_system_foreign=total_system,
            total_counted_foreign=total_counted,
            total_difference_foreign=total_difference,
            variance_foreign=round2(total_system - total_counted),
        )
