"""
Order payload mapping.

Contract:
    order_from_payload() never raises on missing or unparseable numeric
    fields; each one reads as zero.  Identity fields read as empty strings.

Architecture: till_ingestion. Imports till_kernel only.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from till_kernel.domain.dtos import DocumentType, RawOrder
from till_kernel.domain.values import to_decimal
from till_kernel.logging_config import get_logger

logger = get_logger("ingestion.mapping")

# RawOrder field -> backend payload key
AMOUNT_FIELDS: Mapping[str, str] = {
    "pos_local": "pagoPuntoBs",
    "pos_foreign": "pagoPuntoUsd",
    "mobile_local": "pagoMovilBs",
    "mobile_foreign": "pagoMovilUsd",
    "cash_foreign": "cash",
    "cash_foreign_change": "cashVuelto",
    "cash_local": "pagoEfectivoBs",
    "cash_local_change": "pagoEfectivoBsVuelto",
    "peer_transfer": "zelle",
}


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value).strip()


def order_from_payload(payload: Mapping[str, Any]) -> RawOrder:
    """Build a RawOrder from one backend order payload."""
    amounts = {
        field_name: to_decimal(payload.get(key))
        for field_name, key in AMOUNT_FIELDS.items()
    }
    return RawOrder(
        order_id=_text(payload, "orden"),
        document_type=DocumentType.parse(payload.get("doc")),
        register_id=_text(payload, "caja"),
        terminal_name=_text(payload, "punto"),
        **amounts,
    )


def orders_from_payloads(payloads: Sequence[Any]) -> tuple[RawOrder, ...]:
    """Map every dict entry, preserving input order; other entries are skipped."""
    orders = tuple(order_from_payload(p) for p in payloads if isinstance(p, Mapping))
    skipped = len(payloads) - len(orders)
    if skipped:
        logger.warning("order_payloads_skipped", extra={"skipped": skipped})
    return orders
