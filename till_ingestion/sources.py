"""
Data-fetch collaborator protocol.

Contract:
    Both fetches return the raw payload list for one (date, store) pair,
    in backend order.  An empty list means "nothing reported"; transport
    or decoding failures raise DataSourceError.

Architecture: till_ingestion. No engine imports.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TillDataSource(Protocol):
    """Protocol for anything that can deliver orders and counters for a day."""

    def fetch_orders(self, report_date: str, store_code: str) -> Sequence[dict[str, Any]]:
        """Raw order payloads for the store on the date."""
        ...

    def fetch_counters(self, report_date: str, store_code: str) -> Sequence[dict[str, Any]]:
        """Raw register closing payloads, one per operator."""
        ...
