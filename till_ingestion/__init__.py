"""
till_ingestion -- Boundary between backend payloads and engine inputs.

Maps raw order payloads into ``RawOrder`` DTOs and defines the data-fetch
collaborator protocol (``TillDataSource``) together with a JSON directory
adapter.  Counter payloads are passed through as mappings; the counter
normalizer owns their shape.
"""

from till_ingestion.mapping import order_from_payload, orders_from_payloads
from till_ingestion.sources import TillDataSource

__all__ = [
    "TillDataSource",
    "order_from_payload",
    "orders_from_payloads",
]
