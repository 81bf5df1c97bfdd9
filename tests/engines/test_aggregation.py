"""
Tests for the line aggregator and method ordering.

Covers:
- Cash-basis groups keyed by register, credit-basis consolidated
- Running sums and counts
- Fixed-priority / dynamic / trailing sort order
"""

from decimal import Decimal

from till_engines.aggregation import LineAggregator, method_rank, sort_methods
from till_engines.decomposition import PaymentLine
from till_kernel.domain.dtos import DocumentType
from tests.factories import ORDERING


def line(doc, register, method, local, foreign, order_id="1"):
    return PaymentLine(
        order_id=order_id,
        document_type=doc,
        register_id=register,
        method=method,
        amount_local=Decimal(local),
        amount_foreign=Decimal(foreign),
    )


class TestLineAggregator:
    """Tests for LineAggregator.aggregate()."""

    def setup_method(self):
        self.aggregator = LineAggregator()

    def test_cash_basis_split_by_register(self):
        """Same method on two registers gives two cash-basis groups."""
        groups = self.aggregator.aggregate([
            line(DocumentType.CASH_BASIS, "1", "Banesco", "100.00", "1.00"),
            line(DocumentType.CASH_BASIS, "2", "Banesco", "200.00", "2.00"),
        ])

        assert [(g.register_id, g.amount_local) for g in groups] == [
            ("1", Decimal("100.00")),
            ("2", Decimal("200.00")),
        ]

    def test_credit_basis_consolidated_across_registers(self):
        """Credit-basis lines merge regardless of register."""
        groups = self.aggregator.aggregate([
            line(DocumentType.CREDIT_BASIS, "1", "Banesco", "100.00", "1.00"),
            line(DocumentType.CREDIT_BASIS, "2", "Banesco", "200.00", "2.00"),
        ])

        assert len(groups) == 1
        assert groups[0].register_id is None
        assert groups[0].amount_local == Decimal("300.00")
        assert groups[0].amount_foreign == Decimal("3.00")
        assert groups[0].count == 2

    def test_classifications_never_mix(self):
        groups = self.aggregator.aggregate([
            line(DocumentType.CASH_BASIS, "1", "Zelle", "100.00", "1.00"),
            line(DocumentType.CREDIT_BASIS, "1", "Zelle", "100.00", "1.00"),
        ])

        assert {g.document_type for g in groups} == {
            DocumentType.CASH_BASIS,
            DocumentType.CREDIT_BASIS,
        }

    def test_count_matches_lines(self):
        lines = [
            line(DocumentType.CASH_BASIS, "1", "Banesco", "0.01", "0.01", str(i))
            for i in range(7)
        ]

        groups = self.aggregator.aggregate(lines)

        assert groups[0].count == 7
        assert groups[0].amount_local == Decimal("0.07")

    def test_first_seen_order(self):
        groups = self.aggregator.aggregate([
            line(DocumentType.CASH_BASIS, "1", "Zelle", "1", "1"),
            line(DocumentType.CASH_BASIS, "1", "Banesco", "1", "1"),
            line(DocumentType.CASH_BASIS, "1", "Zelle", "1", "1"),
        ])

        assert [g.method for g in groups] == ["Zelle", "Banesco"]

    def test_empty_input(self):
        assert self.aggregator.aggregate([]) == ()


class TestMethodOrdering:
    """Tests for method_rank() and sort_methods()."""

    def test_priority_then_dynamic_then_trailing(self):
        """Fixed-priority first, terminals alphabetically, trailing last."""

        class Row:
            def __init__(self, method):
                self.method = method

        rows = [Row(m) for m in (
            "Zelle",
            "Mercantil",
            "Sin nombre",
            "Efectivo Bs Tienda",
            "Banesco",
            "Efectivo $ Tienda",
        )]

        ordered = sort_methods(rows, ORDERING.sort_first, ORDERING.sort_last)

        assert [r.method for r in ordered] == [
            "Efectivo $ Tienda",
            "Efectivo Bs Tienda",
            "Banesco",
            "Mercantil",
            "Zelle",
            "Sin nombre",
        ]

    def test_rank_buckets(self):
        assert method_rank("Efectivo $ Tienda", ORDERING.sort_first, ORDERING.sort_last) == 0
        assert method_rank("Banesco", ORDERING.sort_first, ORDERING.sort_last) == 500
        assert method_rank("Sin nombre", ORDERING.sort_first, ORDERING.sort_last) == 1001
