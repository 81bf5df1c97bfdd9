"""
till_services.report_service -- Daily audit orchestration per store.

Responsibility:
    Runs the orders pipeline (rate, decomposition, aggregation, totals),
    the counters pipeline (normalization, grand totals) and the
    reconciliation for each requested store of a report date.

Architecture position:
    Services -- imperative shell.  Owns all I/O (through the injected
    TillDataSource) and reads configuration once at construction; the
    engines it composes stay pure.

Invariants enforced:
    - Each store is an independent unit of work: a TillAuditError aborts
      only that store and is reported as a StoreFailure.
    - Stores are returned in resolved input order.
    - Orders and counters of one store are fetched concurrently; the
      engines start only after both fetches returned.

Failure modes:
    - NoDataForPeriodError: a required dataset came back empty.
    - RateUndeterminableError: no order carries a usable rate.
    - DataSourceError: the collaborator could not deliver a dataset;
      any exception a custom source raises while fetching is wrapped
      into one.
    All three are captured per store.  Any other exception raised
    outside the fetch propagates to the caller.

Usage:
    from till_ingestion.adapters import JsonDirectorySource
    from till_services import DailyAuditService

    service = DailyAuditService(JsonDirectorySource("data"))
    result = service.full_report("2024-03-15", ["FQ01", "FQ28"])
    for outcome in result.outcomes:
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from uuid import uuid4

from till_config import ReportConfig, get_active_config
from till_engines.aggregation import LineAggregator
from till_engines.counters import CounterGrandTotals, CounterNormalizer, CounterSet
from till_engines.decomposition import PaymentDecomposer
from till_engines.rate import derive_rate
from till_engines.reconciliation import ReconciliationEngine, ReconciliationResult
from till_engines.totals import SalesSummary, TotalsCalculator
from till_ingestion.mapping import orders_from_payloads
from till_ingestion.sources import TillDataSource
from till_kernel.exceptions import DataSourceError, NoDataForPeriodError, TillAuditError
from till_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.report")

T = TypeVar("T")


@dataclass(frozen=True)
class SalesReport:
    """Orders-side result for one store."""

    report_date: str
    store_code: str
    store_name: str
    order_count: int
    summary: SalesSummary


@dataclass(frozen=True)
class CounterReport:
    """Till-side result for one store."""

    report_date: str
    store_code: str
    store_name: str
    counters: CounterSet
    grand_totals: CounterGrandTotals


@dataclass(frozen=True)
class FullReport:
    """Everything a rendering layer needs for one store."""

    sales: SalesReport
    counters: CounterReport
    reconciliation: ReconciliationResult


@dataclass(frozen=True)
class StoreFailure:
    code: str
    message: str


@dataclass(frozen=True)
class StoreOutcome(Generic[T]):
    """Result or failure of one (date, store) unit of work."""

    store_code: str
    store_name: str
    result: T | None = None
    failure: StoreFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class MultiStoreResult(Generic[T]):
    report_date: str
    operation: str
    outcomes: tuple[StoreOutcome[T], ...]

    @property
    def succeeded(self) -> tuple[StoreOutcome[T], ...]:
        return tuple(o for o in self.outcomes if o.ok)

    @property
    def failed(self) -> tuple[StoreOutcome[T], ...]:
        return tuple(o for o in self.outcomes if not o.ok)

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not self.succeeded


class DailyAuditService:
    """
    Orchestrates the daily audit for one or more stores.

    Contract:
        Every public operation takes a report date and a store selection
        (empty or ``["all"]`` for every configured store) and returns a
        MultiStoreResult with one outcome per resolved store.

    Non-goals:
        - Does NOT render spreadsheets; callers consume the dataclasses
          or ``till_services.serialization``.
        - Does NOT retry failed fetches.
    """

    def __init__(
        self,
        source: TillDataSource,
        config: ReportConfig | None = None,
        max_workers: int = 2,
    ) -> None:
        self._source = source
        self._config = config or get_active_config()
        self._max_workers = max_workers

        methods = self._config.methods
        self._decomposer = PaymentDecomposer()
        self._aggregator = LineAggregator()
        self._calculator = TotalsCalculator(ordering=methods, tax=self._config.tax)
        self._normalizer = CounterNormalizer()
        self._reconciler = ReconciliationEngine(
            sort_first=methods.sort_first,
            sort_last=methods.sort_last,
            warning_threshold_pct=self._config.thresholds.warning_threshold_pct,
            bucket_tolerance=self._config.thresholds.bucket_tolerance,
        )

    @property
    def config(self) -> ReportConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def sales_report(
        self, report_date: str, stores: Sequence[str] | None = None,
    ) -> MultiStoreResult[SalesReport]:
        def unit(store_code: str) -> SalesReport:
            orders, _ = self._fetch(report_date, store_code, orders=True, counters=False)
            return self._build_sales(report_date, store_code, orders)

        return self._run("sales", report_date, stores, unit)

    def counters_report(
        self, report_date: str, stores: Sequence[str] | None = None,
    ) -> MultiStoreResult[CounterReport]:
        def unit(store_code: str) -> CounterReport:
            _, counters = self._fetch(report_date, store_code, orders=False, counters=True)
            return self._build_counters(report_date, store_code, counters)

        return self._run("counters", report_date, stores, unit)

    def reconcile(
        self, report_date: str, stores: Sequence[str] | None = None,
    ) -> MultiStoreResult[ReconciliationResult]:
        def unit(store_code: str) -> ReconciliationResult:
            return self._build_full(report_date, store_code).reconciliation

        return self._run("reconcile", report_date, stores, unit)

    def full_report(
        self, report_date: str, stores: Sequence[str] | None = None,
    ) -> MultiStoreResult[FullReport]:
        def unit(store_code: str) -> FullReport:
            return self._build_full(report_date, store_code)

        return self._run("full", report_date, stores, unit)

    # ------------------------------------------------------------------
    # Units of work
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        report_date: str,
        stores: Sequence[str] | None,
        unit: Callable[[str], T],
    ) -> MultiStoreResult[T]:
        store_codes = self._config.resolve_stores(list(stores) if stores else None)
        correlation_id = str(uuid4())
        outcomes: list[StoreOutcome[T]] = []

        for store_code in store_codes:
            store_name = self._config.store_name(store_code)
            with LogContext.bind(
                correlation_id=correlation_id,
                report_date=report_date,
                store_code=store_code,
                operation=operation,
            ):
                try:
                    result = unit(store_code)
                except TillAuditError as exc:
                    logger.warning("store_unit_failed", extra={
                        "error_code": exc.code,
                        "error_message": str(exc),
                    })
                    outcomes.append(StoreOutcome(
                        store_code=store_code,
                        store_name=store_name,
                        failure=StoreFailure(code=exc.code, message=str(exc)),
                    ))
                    continue

                logger.info("store_unit_completed")
                outcomes.append(StoreOutcome(
                    store_code=store_code,
                    store_name=store_name,
                    result=result,
                ))

        result = MultiStoreResult(
            report_date=report_date,
            operation=operation,
            outcomes=tuple(outcomes),
        )
        logger.info("audit_run_completed", extra={
            "correlation_id": correlation_id,
            "operation": operation,
            "report_date": report_date,
            "store_count": len(outcomes),
            "failed_count": len(result.failed),
        })
        return result

    def _fetch(
        self,
        report_date: str,
        store_code: str,
        orders: bool,
        counters: bool,
    ) -> tuple[Sequence[Any], Sequence[Any]]:
        """Fetch the requested datasets concurrently; empty ones raise."""
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            orders_future = (
                pool.submit(self._source.fetch_orders, report_date, store_code)
                if orders else None
            )
            counters_future = (
                pool.submit(self._source.fetch_counters, report_date, store_code)
                if counters else None
            )
            order_payloads = self._collect(orders_future, "orders", report_date, store_code)
            counter_payloads = self._collect(
                counters_future, "counters", report_date, store_code,
            )

        if orders and not order_payloads:
            raise NoDataForPeriodError("orders", report_date, store_code)
        if counters and not counter_payloads:
            raise NoDataForPeriodError("counters", report_date, store_code)
        return order_payloads, counter_payloads

    @staticmethod
    def _collect(
        future: Future[Sequence[Any]] | None,
        dataset: str,
        report_date: str,
        store_code: str,
    ) -> Sequence[Any]:
        """Result of one fetch; collaborator failures become DataSourceError."""
        if future is None:
            return []
        try:
            return future.result()
        except TillAuditError:
            raise
        except Exception as exc:
            logger.warning("data_fetch_failed", extra={
                "dataset": dataset,
                "exc_type": type(exc).__name__,
                "error_message": str(exc),
            })
            raise DataSourceError(dataset, report_date, store_code, str(exc)) from exc

    def _build_sales(
        self, report_date: str, store_code: str, payloads: Sequence[Any],
    ) -> SalesReport:
        orders = orders_from_payloads(payloads)
        rate = derive_rate(orders, store_code=store_code)
        lines = self._decomposer.decompose(orders, rate)
        groups = self._aggregator.aggregate(lines)
        summary = self._calculator.calculate(
            groups, rate, self._config.is_withholding_agent(store_code),
        )
        return SalesReport(
            report_date=report_date,
            store_code=store_code,
            store_name=self._config.store_name(store_code),
            order_count=len(orders),
            summary=summary,
        )

    def _build_counters(
        self, report_date: str, store_code: str, payloads: Sequence[Any],
    ) -> CounterReport:
        counter_set = self._normalizer.normalize(
            payloads, report_date=report_date, store_code=store_code,
        )
        return CounterReport(
            report_date=report_date,
            store_code=store_code,
            store_name=self._config.store_name(store_code),
            counters=counter_set,
            grand_totals=self._normalizer.grand_totals(counter_set.records),
        )

    def _build_full(self, report_date: str, store_code: str) -> FullReport:
        orders, counters = self._fetch(report_date, store_code, orders=True, counters=True)
        sales = self._build_sales(report_date, store_code, orders)
        counter_report = self._build_counters(report_date, store_code, counters)
        reconciliation = self._reconciler.reconcile(
            sales.summary.cash_basis,
            sales.summary.credit_basis,
            counter_report.counters,
        )
        return FullReport(
            sales=sales,
            counters=counter_report,
            reconciliation=reconciliation,
        )
