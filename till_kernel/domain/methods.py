"""
Payment method catalog -- label to bucket lookup.

Every payment method label that appears in orders belongs to exactly one
of five buckets.  Fixed labels are looked up in a single table; any other
label is a dynamic point-of-sale terminal name and falls back to the
point-of-sale bucket.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType


class PaymentBucket(str, Enum):
    """Payment-type bucket shared by orders and till closings."""

    POINT_OF_SALE = "point_of_sale"
    MOBILE_TRANSFER = "mobile_transfer"
    CASH_FOREIGN = "cash_foreign"
    CASH_LOCAL = "cash_local"
    PEER_TRANSFER = "peer_transfer"


MOBILE_TRANSFER_LABEL = "Pago Movil Tienda Venezuela 5187"
CASH_FOREIGN_LABEL = "Efectivo $ Tienda"
CASH_LOCAL_LABEL = "Efectivo Bs Tienda"
PEER_TRANSFER_LABEL = "Zelle"
UNNAMED_TERMINAL_LABEL = "Sin nombre"

# Report order of the buckets
BUCKET_ORDER: tuple[PaymentBucket, ...] = (
    PaymentBucket.POINT_OF_SALE,
    PaymentBucket.MOBILE_TRANSFER,
    PaymentBucket.CASH_FOREIGN,
    PaymentBucket.CASH_LOCAL,
    PaymentBucket.PEER_TRANSFER,
)

_BUCKET_BY_LABEL = MappingProxyType({
    MOBILE_TRANSFER_LABEL: PaymentBucket.MOBILE_TRANSFER,
    CASH_FOREIGN_LABEL: PaymentBucket.CASH_FOREIGN,
    CASH_LOCAL_LABEL: PaymentBucket.CASH_LOCAL,
    PEER_TRANSFER_LABEL: PaymentBucket.PEER_TRANSFER,
})

_LABEL_BY_BUCKET = MappingProxyType({
    bucket: label for label, bucket in _BUCKET_BY_LABEL.items()
})


def bucket_for_method(method: str) -> PaymentBucket:
    """Bucket for a method label; unknown labels are terminals."""
    return _BUCKET_BY_LABEL.get(method, PaymentBucket.POINT_OF_SALE)


def canonical_label(bucket: PaymentBucket) -> str:
    """Label used when a row has to be synthesized for ``bucket``."""
    return _LABEL_BY_BUCKET.get(bucket, UNNAMED_TERMINAL_LABEL)
