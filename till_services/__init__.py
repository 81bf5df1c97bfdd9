"""
till_services -- Imperative shell around the pure engines.

Fetches raw data through a ``TillDataSource``, feeds the engines and
isolates failures per (date, store) unit of work.
"""

from till_services.report_service import (
    CounterReport,
    DailyAuditService,
    FullReport,
    MultiStoreResult,
    SalesReport,
    StoreFailure,
    StoreOutcome,
)
from till_services.serialization import dumps, to_payload

__all__ = [
    "CounterReport",
    "DailyAuditService",
    "FullReport",
    "MultiStoreResult",
    "SalesReport",
    "StoreFailure",
    "StoreOutcome",
    "dumps",
    "to_payload",
]
