"""
JSON directory data source.

Layout: ``<root>/<date>/<store>/orders.json`` and ``counters.json``.  Each
file holds either a bare JSON array or an object whose ``orders`` /
``counters`` key holds the array (the backend's response envelope).

Architecture: till_ingestion/adapters. File I/O only.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from till_kernel.exceptions import DataSourceError
from till_kernel.logging_config import get_logger

logger = get_logger("ingestion.json_adapter")


def _extract_records(data: Any, key: str) -> list[Any] | None:
    """Return the record array of a bare list or an enveloped object."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        records = data.get(key)
        if records is None:
            return []
        if isinstance(records, list):
            return records
    return None


class JsonDirectorySource:
    """Read orders and counters from a dated directory tree of JSON files."""

    def __init__(self, root: Path | str, encoding: str = "utf-8") -> None:
        self.root = Path(root)
        self.encoding = encoding

    def path_for(self, dataset: str, report_date: str, store_code: str) -> Path:
        return self.root / report_date / store_code / f"{dataset}.json"

    def _read(self, dataset: str, report_date: str, store_code: str) -> list[dict[str, Any]]:
        path = self.path_for(dataset, report_date, store_code)
        if not path.exists():
            logger.info("source_file_missing", extra={"path": str(path), "dataset": dataset})
            return []

        try:
            with path.open("r", encoding=self.encoding) as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DataSourceError(dataset, report_date, store_code, str(exc)) from exc

        records = _extract_records(data, dataset)
        if records is None:
            raise DataSourceError(
                dataset, report_date, store_code,
                f"expected a list or an object with a '{dataset}' list in {path.name}",
            )

        logger.debug("source_file_read", extra={
            "path": str(path),
            "dataset": dataset,
            "record_count": len(records),
        })
        return records

    def fetch_orders(self, report_date: str, store_code: str) -> list[dict[str, Any]]:
        return self._read("orders", report_date, store_code)

    def fetch_counters(self, report_date: str, store_code: str) -> list[dict[str, Any]]:
        return self._read("counters", report_date, store_code)
