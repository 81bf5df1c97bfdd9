"""
Tests for the payment decomposer.

Covers:
- One line per non-zero component, in fixed order
- Cash netting against change, conversion through the rate
- Voided orders skipped
- Terminal name normalization
"""

from decimal import Decimal

from till_engines.decomposition import PaymentDecomposer, terminal_method_name
from till_kernel.domain.dtos import DocumentType
from till_kernel.domain.methods import (
    CASH_FOREIGN_LABEL,
    CASH_LOCAL_LABEL,
    MOBILE_TRANSFER_LABEL,
    PEER_TRANSFER_LABEL,
    UNNAMED_TERMINAL_LABEL,
)
from tests.factories import RATE, make_order


class TestTerminalMethodName:

    def test_title_cases_terminal(self):
        """Terminal names are normalized to title case."""
        assert terminal_method_name("BANCO DE VENEZUELA") == "Banco De Venezuela"

    def test_missing_terminal(self):
        """An absent terminal name becomes the unnamed label."""
        assert terminal_method_name("") == UNNAMED_TERMINAL_LABEL
        assert terminal_method_name(None) == UNNAMED_TERMINAL_LABEL


class TestDecomposeOrder:
    """Tests for PaymentDecomposer.decompose_order()."""

    def setup_method(self):
        self.decomposer = PaymentDecomposer()

    def test_point_of_sale_line(self):
        """A card payment yields one non-dollar line under the terminal name."""
        order = make_order(terminal="banesco", pos_local=116, pos_foreign=1)

        lines = self.decomposer.decompose_order(order, Decimal("116"))

        assert len(lines) == 1
        line = lines[0]
        assert line.method == "Banesco"
        assert line.amount_local == Decimal("116.00")
        assert line.amount_foreign == Decimal("1.00")
        assert line.is_dollar is False

    def test_point_of_sale_without_terminal(self):
        order = make_order(pos_local=50, pos_foreign="0.5")

        lines = self.decomposer.decompose_order(order, RATE)

        assert lines[0].method == UNNAMED_TERMINAL_LABEL

    def test_cash_foreign_netted_and_converted(self):
        """Cash 10 with change 2 at rate 100 is 8 foreign, 800 local."""
        order = make_order(cash_foreign=10, cash_foreign_change=2)

        lines = self.decomposer.decompose_order(order, RATE)

        assert len(lines) == 1
        assert lines[0].method == CASH_FOREIGN_LABEL
        assert lines[0].amount_local == Decimal("800.00")
        assert lines[0].amount_foreign == Decimal("8.00")
        assert lines[0].is_dollar is True

    def test_cash_foreign_fully_refunded(self):
        """A non-positive net emits nothing."""
        order = make_order(cash_foreign=5, cash_foreign_change=5)

        assert self.decomposer.decompose_order(order, RATE) == []

    def test_cash_local_converted_to_foreign(self):
        order = make_order(cash_local=350, cash_local_change=50)

        lines = self.decomposer.decompose_order(order, Decimal("36.5"))

        assert lines[0].method == CASH_LOCAL_LABEL
        assert lines[0].amount_local == Decimal("300.00")
        assert lines[0].amount_foreign == Decimal("8.22")
        assert lines[0].is_dollar is False

    def test_peer_transfer(self):
        order = make_order(peer_transfer="12.5")

        lines = self.decomposer.decompose_order(order, RATE)

        assert lines[0].method == PEER_TRANSFER_LABEL
        assert lines[0].amount_local == Decimal("1250.00")
        assert lines[0].amount_foreign == Decimal("12.50")
        assert lines[0].is_dollar is True

    def test_mixed_payment_in_fixed_order(self):
        """Components appear as pos, mobile, cash-foreign, cash-local, peer."""
        order = make_order(
            terminal="mercantil",
            pos_local=100, pos_foreign=1,
            mobile_local=200, mobile_foreign=2,
            cash_foreign=3,
            cash_local=400,
            peer_transfer=5,
        )

        lines = self.decomposer.decompose_order(order, RATE)

        assert [l.method for l in lines] == [
            "Mercantil",
            MOBILE_TRANSFER_LABEL,
            CASH_FOREIGN_LABEL,
            CASH_LOCAL_LABEL,
            PEER_TRANSFER_LABEL,
        ]

    def test_zero_rate_never_faults(self):
        """Cash-local converts to zero foreign under a zero rate."""
        order = make_order(cash_local=100)

        lines = self.decomposer.decompose_order(order, Decimal("0"))

        assert lines[0].amount_foreign == Decimal("0.00")

    def test_lines_carry_order_identity(self):
        order = make_order("X1", doc=DocumentType.CREDIT_BASIS, register="7", mobile_local=10)

        line = self.decomposer.decompose_order(order, RATE)[0]

        assert line.order_id == "X1"
        assert line.document_type == DocumentType.CREDIT_BASIS
        assert line.register_id == "7"


class TestDecompose:
    """Tests for PaymentDecomposer.decompose()."""

    def test_voided_orders_skipped(self, captured_logs):
        """Voided orders contribute no lines."""
        orders = [
            make_order("1", doc=DocumentType.VOIDED, pos_local=100, pos_foreign=1),
            make_order("2", pos_local=100, pos_foreign=1),
        ]

        lines = PaymentDecomposer().decompose(orders, RATE)

        assert [l.order_id for l in lines] == ["2"]
        event = next(r for r in captured_logs() if r["message"] == "payments_decomposed")
        assert event["voided_skipped"] == 1
        assert event["line_count"] == 1

    def test_order_sequence_preserved(self):
        orders = [make_order(str(i), cash_foreign=1) for i in range(5)]

        lines = PaymentDecomposer().decompose(orders, RATE)

        assert [l.order_id for l in lines] == ["0", "1", "2", "3", "4"]
