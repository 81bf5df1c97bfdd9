"""
Tests for the tax and totals calculator.

Covers:
- Net-of-tax and consumption tax
- Withholding only for cash-basis dollar methods at agent stores
- Merged and per-register cash-basis views
- Grand totals and the verification cross-check
"""

from decimal import Decimal

from till_engines.aggregation import AggregatedMethod
from till_engines.totals import TotalsCalculator
from till_kernel.domain.dtos import DocumentType
from till_kernel.domain.methods import CASH_FOREIGN_LABEL, PEER_TRANSFER_LABEL
from tests.factories import ORDERING, build_summary, make_order


class TestMethodTotals:
    """Tests for TotalsCalculator.method_totals()."""

    def setup_method(self):
        self.calculator = TotalsCalculator(ordering=ORDERING)

    def group(self, method, local, foreign, doc=DocumentType.CASH_BASIS):
        return AggregatedMethod(
            document_type=doc,
            register_id="1" if doc == DocumentType.CASH_BASIS else None,
            method=method,
            amount_local=Decimal(local),
            amount_foreign=Decimal(foreign),
            count=1,
        )

    def test_net_and_consumption_tax(self):
        """116 local splits into 100 net and 16 tax."""
        row = self.calculator.method_totals(
            self.group("Banesco", "116.00", "1.00"), Decimal("116"), withholding_agent=False,
        )

        assert row.net_of_tax == Decimal("100.00")
        assert row.consumption_tax == Decimal("16.00")
        assert row.withholding_tax == Decimal("0.00")

    def test_withholding_for_agent_dollar_cash_basis(self):
        """8 foreign at rate 100 withholds 24.00 at an agent store."""
        row = self.calculator.method_totals(
            self.group(CASH_FOREIGN_LABEL, "800.00", "8.00"), Decimal("100"), withholding_agent=True,
        )

        assert row.withholding_tax == Decimal("24.00")
        assert row.is_dollar is True

    def test_no_withholding_for_non_agent(self):
        row = self.calculator.method_totals(
            self.group(CASH_FOREIGN_LABEL, "800.00", "8.00"), Decimal("100"), withholding_agent=False,
        )

        assert row.withholding_tax == Decimal("0.00")

    def test_no_withholding_for_credit_basis(self):
        row = self.calculator.method_totals(
            self.group(PEER_TRANSFER_LABEL, "800.00", "8.00", DocumentType.CREDIT_BASIS),
            Decimal("100"),
            withholding_agent=True,
        )

        assert row.withholding_tax == Decimal("0.00")

    def test_no_withholding_for_local_methods(self):
        row = self.calculator.method_totals(
            self.group("Banesco", "800.00", "8.00"), Decimal("100"), withholding_agent=True,
        )

        assert row.withholding_tax == Decimal("0.00")


class TestCalculate:
    """Tests for TotalsCalculator.calculate()."""

    def test_single_point_of_sale_order(self):
        """116 local / 1 foreign at a non-agent store."""
        summary = build_summary(
            [make_order(terminal="banesco", pos_local=116, pos_foreign=1)],
            rate=Decimal("116"),
        )

        row = summary.cash_basis.method("Banesco")
        assert row.amount_local == Decimal("116.00")
        assert row.net_of_tax == Decimal("100.00")
        assert row.consumption_tax == Decimal("16.00")
        assert row.withholding_tax == Decimal("0.00")
        assert summary.credit_basis.methods == ()

    def test_merged_and_register_views_agree(self):
        """Merged view consolidates registers; both give the same totals."""
        summary = build_summary([
            make_order("1", register="1", terminal="banesco", pos_local=100, pos_foreign=1),
            make_order("2", register="2", terminal="banesco", pos_local=300, pos_foreign=3),
            make_order("3", register="2", cash_foreign=2),
        ])

        cash = summary.cash_basis
        assert sorted(cash.registers) == ["1", "2"]
        merged = cash.method("Banesco")
        assert merged.register_id is None
        assert merged.amount_local == Decimal("400.00")
        assert merged.count == 2

        register_local = sum(
            (section.totals.amount_local for section in cash.registers.values()),
            Decimal("0"),
        )
        assert register_local == cash.totals.amount_local == Decimal("600.00")

    def test_credit_basis_has_no_registers(self):
        summary = build_summary([
            make_order("1", doc=DocumentType.CREDIT_BASIS, register="1", mobile_local=100, mobile_foreign=1),
            make_order("2", doc=DocumentType.CREDIT_BASIS, register="2", mobile_local=100, mobile_foreign=1),
        ])

        assert len(summary.credit_basis.methods) == 1
        assert summary.credit_basis.totals.amount_local == Decimal("200.00")
        assert summary.cash_basis.registers == {}

    def test_grand_totals_combine_sections(self):
        summary = build_summary([
            make_order("1", pos_local=100, pos_foreign=1, terminal="a"),
            make_order("2", doc=DocumentType.CREDIT_BASIS, pos_local=200, pos_foreign=2, terminal="a"),
        ])

        assert summary.totals.amount_local == Decimal("300.00")
        assert summary.totals.amount_foreign == Decimal("3.00")
        assert summary.totals.count == 2

    def test_verification_difference(self):
        """Foreign reported versus local converted through the rate."""
        summary = build_summary([
            make_order("1", pos_local=100, pos_foreign="1.05", terminal="a"),
        ])

        assert summary.verification.foreign_via_rate == Decimal("1.00")
        assert summary.verification.foreign_reported == Decimal("1.05")
        assert summary.verification.difference == Decimal("0.05")

    def test_sections_are_sorted(self):
        summary = build_summary([
            make_order("1", peer_transfer=1),
            make_order("2", pos_local=100, pos_foreign=1, terminal="mercantil"),
            make_order("3", cash_foreign=1),
        ])

        assert [m.method for m in summary.cash_basis.methods] == [
            CASH_FOREIGN_LABEL,
            "Mercantil",
            PEER_TRANSFER_LABEL,
        ]
