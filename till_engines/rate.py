"""
till_engines.rate -- Derive the local-per-foreign exchange rate from orders.

The backend does not report the day's rate with the orders, but every
point-of-sale and mobile-transfer payment is recorded in both currencies,
so their ratio is the rate the tills applied.

Failure modes:
    - RateUndeterminableError when no order yields a ratio.  Fatal for the
      report; no default rate is ever substituted.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from till_engines.tracer import traced_engine
from till_kernel.domain.dtos import RawOrder
from till_kernel.domain.values import ZERO, round2
from till_kernel.exceptions import RateUndeterminableError
from till_kernel.logging_config import get_logger

logger = get_logger("engines.rate")


@traced_engine("rate", "1.0", fingerprint_fields=("orders",))
def derive_rate(orders: Sequence[RawOrder], store_code: str | None = None) -> Decimal:
    """
    Return the first usable rate, scanning orders in their original order.

    Point-of-sale amounts are tried first across all orders; mobile
    transfer amounts are the fallback.  Both amounts must be strictly
    positive.

    Raises:
        RateUndeterminableError: if neither source yields a ratio.
    """
    for order in orders:
        if order.pos_local > ZERO and order.pos_foreign > ZERO:
            rate = round2(order.pos_local / order.pos_foreign)
            logger.info("rate_derived", extra={
                "source": "point_of_sale",
                "order_id": order.order_id,
                "rate": str(rate),
            })
            return rate

    for order in orders:
        if order.mobile_local > ZERO and order.mobile_foreign > ZERO:
            rate = round2(order.mobile_local / order.mobile_foreign)
            logger.info("rate_derived", extra={
                "source": "mobile_transfer",
                "order_id": order.order_id,
                "rate": str(rate),
            })
            return rate

    logger.error("rate_undeterminable", extra={"order_count": len(orders)})
    raise RateUndeterminableError(order_count=len(orders), store_code=store_code)
