"""
till_engines.decomposition -- Split orders into atomic payment lines.

Responsibility:
    Turn each RawOrder into zero or more PaymentLine records, one per
    payment component with a positive net amount.  Refunded change is
    netted out of cash payments; foreign-only and local-only components
    are converted with the derived rate.

Invariants enforced:
    - Voided orders never produce lines.
    - Every line amount is rounded to two places at creation time.
    - A component whose net amount is not positive produces no line.
    - Decomposition is lossless: each component appears in at most one line.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from till_engines.tracer import traced_engine
from till_kernel.domain.dtos import DocumentType, RawOrder
from till_kernel.domain.methods import (
    CASH_FOREIGN_LABEL,
    CASH_LOCAL_LABEL,
    MOBILE_TRANSFER_LABEL,
    PEER_TRANSFER_LABEL,
    UNNAMED_TERMINAL_LABEL,
)
from till_kernel.domain.values import ZERO, divide2, round2, title_case
from till_kernel.logging_config import get_logger

logger = get_logger("engines.decomposition")


@dataclass(frozen=True)
class PaymentLine:
    """One payment component of one order."""

    order_id: str
    document_type: DocumentType
    register_id: str
    method: str
    amount_local: Decimal
    amount_foreign: Decimal
    is_dollar: bool = False


def terminal_method_name(terminal_name: str | None) -> str:
    """Method label for a point-of-sale terminal."""
    name = title_case(terminal_name)
    return name if name.strip() else UNNAMED_TERMINAL_LABEL


class PaymentDecomposer:
    """
    Pure decomposer of orders into payment lines.

    Contract:
        No I/O, fully deterministic.  The rate is passed in; it is never
        re-derived here.
    """

    @traced_engine("decomposition", "1.0", fingerprint_fields=("orders", "rate"))
    def decompose(
        self,
        orders: Sequence[RawOrder],
        rate: Decimal,
    ) -> tuple[PaymentLine, ...]:
        """Decompose every non-voided order, preserving order sequence."""
        lines: list[PaymentLine] = []
        skipped = 0
        for order in orders:
            if order.is_voided:
                skipped += 1
                continue
            lines.extend(self.decompose_order(order, rate))

        logger.info("payments_decomposed", extra={
            "order_count": len(orders),
            "voided_skipped": skipped,
            "line_count": len(lines),
        })
        return tuple(lines)

    def decompose_order(self, order: RawOrder, rate: Decimal) -> list[PaymentLine]:
        """Lines for a single order, in fixed component order."""
        if order.is_voided:
            return []

        lines: list[PaymentLine] = []

        def emit(method: str, local: Decimal, foreign: Decimal, is_dollar: bool) -> None:
            lines.append(PaymentLine(
                order_id=order.order_id,
                document_type=order.document_type,
                register_id=order.register_id,
                method=method,
                amount_local=local,
                amount_foreign=foreign,
                is_dollar=is_dollar,
            ))

        if order.pos_local > ZERO or order.pos_foreign > ZERO:
            emit(
                terminal_method_name(order.terminal_name),
                round2(order.pos_local),
                round2(order.pos_foreign),
                False,
            )

        if order.mobile_local > ZERO or order.mobile_foreign > ZERO:
            emit(
                MOBILE_TRANSFER_LABEL,
                round2(order.mobile_local),
                round2(order.mobile_foreign),
                False,
            )

        cash_foreign_net = round2(order.cash_foreign - order.cash_foreign_change)
        if cash_foreign_net > ZERO:
            emit(CASH_FOREIGN_LABEL, round2(cash_foreign_net * rate), cash_foreign_net, True)

        cash_local_net = round2(order.cash_local - order.cash_local_change)
        if cash_local_net > ZERO:
            emit(CASH_LOCAL_LABEL, cash_local_net, divide2(cash_local_net, rate), False)

        if order.peer_transfer > ZERO:
            emit(
                PEER_TRANSFER_LABEL,
                round2(order.peer_transfer * rate),
                round2(order.peer_transfer),
                True,
            )

        return lines
