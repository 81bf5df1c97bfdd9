"""
Tests for DailyAuditService.

Covers:
- Sales, counters, reconcile and full operations end to end
- Per-store failure isolation and ordering
- Store selection
- LogContext binding per unit of work
"""

from decimal import Decimal

from till_kernel.domain.methods import CASH_FOREIGN_LABEL
from till_kernel.exceptions import DataSourceError
from till_services import DailyAuditService
from tests.factories import SAMPLE_DATE, order_payload, sample_source


class TestSalesReport:

    def setup_method(self):
        self.source = sample_source()

    def test_sales_pipeline(self, report_config):
        service = DailyAuditService(self.source, config=report_config)

        result = service.sales_report(SAMPLE_DATE, ["FQ01"])

        outcome = result.outcomes[0]
        assert outcome.ok
        report = outcome.result
        assert report.store_name == "FQ01 - Test Agent"
        assert report.order_count == 4
        assert report.summary.rate == Decimal("100.00")
        cash_foreign = report.summary.cash_basis.method(CASH_FOREIGN_LABEL)
        assert cash_foreign.withholding_tax == Decimal("24.00")
        assert report.summary.totals.amount_local == Decimal("2300.00")

    def test_non_agent_store_withholds_nothing(self, report_config):
        service = DailyAuditService(self.source, config=report_config)

        report = service.sales_report(SAMPLE_DATE, ["FQ28"]).outcomes[0].result

        assert report.summary.totals.withholding_tax == Decimal("0.00")

    def test_sales_does_not_fetch_counters(self, report_config):
        DailyAuditService(self.source, config=report_config).sales_report(SAMPLE_DATE, ["FQ01"])

        assert [call[0] for call in self.source.calls] == ["orders"]


class TestCountersReport:

    def test_counters_pipeline(self, report_config):
        source = sample_source()
        service = DailyAuditService(source, config=report_config)

        report = service.counters_report(SAMPLE_DATE, ["FQ01"]).outcomes[0].result

        assert report.counters.rate == Decimal("100")
        assert len(report.counters.records) == 1
        assert report.grand_totals.total_system_foreign == Decimal("0.00")
        assert [call[0] for call in source.calls] == ["counters"]


class TestReconcile:

    def test_reconciliation_balances(self, report_config):
        """Batches match orders, so the adjustment is zero."""
        service = DailyAuditService(sample_source(), config=report_config)

        result = service.reconcile(SAMPLE_DATE, ["FQ01"]).outcomes[0].result

        assert result.rate == Decimal("100")
        assert result.rounding_adjustment == Decimal("0.00")
        assert result.warning is False
        assert all(c.within_tolerance for c in result.bucket_comparison)

    def test_full_report_bundles_everything(self, report_config):
        service = DailyAuditService(sample_source(), config=report_config)

        full = service.full_report(SAMPLE_DATE, ["FQ01"]).outcomes[0].result

        assert full.sales.store_code == "FQ01"
        assert full.counters.store_code == "FQ01"
        assert full.reconciliation.grand_totals.system_foreign == full.sales.summary.totals.amount_foreign


class TestFailureIsolation:
    """One store's failure never prevents the others."""

    def test_missing_orders(self, report_config):
        source = sample_source()
        del source.orders[(SAMPLE_DATE, "FQ28")]
        service = DailyAuditService(source, config=report_config)

        result = service.full_report(SAMPLE_DATE, ["FQ28", "FQ01"])

        assert [o.store_code for o in result.outcomes] == ["FQ28", "FQ01"]
        failed = result.outcomes[0]
        assert failed.failure.code == "NO_DATA_FOR_PERIOD"
        assert "FQ28" in failed.failure.message
        assert SAMPLE_DATE in failed.failure.message
        assert result.outcomes[1].ok
        assert result.all_failed is False

    def test_missing_counters(self, report_config):
        source = sample_source()
        del source.counters[(SAMPLE_DATE, "FQ01")]
        service = DailyAuditService(source, config=report_config)

        outcome = service.reconcile(SAMPLE_DATE, ["FQ01"]).outcomes[0]

        assert outcome.failure.code == "NO_DATA_FOR_PERIOD"
        assert "counters" in outcome.failure.message

    def test_rate_undeterminable(self, report_config):
        source = sample_source()
        source.orders[(SAMPLE_DATE, "FQ01")] = [order_payload("1", cash=5)]
        service = DailyAuditService(source, config=report_config)

        result = service.sales_report(SAMPLE_DATE, ["FQ01"])

        assert result.outcomes[0].failure.code == "RATE_UNDETERMINABLE"
        assert result.all_failed is True

    def test_data_source_error(self, report_config):
        source = sample_source(errors={
            ("counters", "FQ01"): DataSourceError("counters", SAMPLE_DATE, "FQ01", "timeout"),
        })
        service = DailyAuditService(source, config=report_config)

        result = service.full_report(SAMPLE_DATE, ["FQ01", "FQ28"])

        assert result.outcomes[0].failure.code == "DATA_SOURCE_ERROR"
        assert result.outcomes[1].ok
        assert len(result.failed) == 1
        assert len(result.succeeded) == 1

    def test_source_exception_wrapped_per_store(self, report_config, captured_logs):
        """A raw exception from a custom source only fails its own store."""
        source = sample_source(errors={("orders", "FQ01"): TimeoutError("backend timed out")})
        service = DailyAuditService(source, config=report_config)

        result = service.full_report(SAMPLE_DATE, ["FQ01", "FQ28"])

        failure = result.outcomes[0].failure
        assert failure.code == "DATA_SOURCE_ERROR"
        assert "backend timed out" in failure.message
        assert result.outcomes[1].ok
        fetch_failure = next(r for r in captured_logs() if r["message"] == "data_fetch_failed")
        assert fetch_failure["dataset"] == "orders"
        assert fetch_failure["exc_type"] == "TimeoutError"

    def test_failure_logged_with_context(self, report_config, captured_logs):
        source = sample_source()
        del source.orders[(SAMPLE_DATE, "FQ01")]
        service = DailyAuditService(source, config=report_config)

        service.sales_report(SAMPLE_DATE, ["FQ01"])

        failure = next(r for r in captured_logs() if r["message"] == "store_unit_failed")
        assert failure["store_code"] == "FQ01"
        assert failure["report_date"] == SAMPLE_DATE
        assert failure["operation"] == "sales"
        assert failure["error_code"] == "NO_DATA_FOR_PERIOD"


class TestStoreSelection:

    def test_default_is_every_configured_store(self, report_config):
        service = DailyAuditService(sample_source(), config=report_config)

        result = service.sales_report(SAMPLE_DATE)

        assert [o.store_code for o in result.outcomes] == ["FQ01", "FQ28"]

    def test_codes_upper_cased(self, report_config):
        service = DailyAuditService(sample_source(), config=report_config)

        result = service.sales_report(SAMPLE_DATE, ["fq28"])

        assert [o.store_code for o in result.outcomes] == ["FQ28"]

    def test_default_config_loaded(self):
        service = DailyAuditService(sample_source())

        assert service.config.config_id == "till-audit-default"
