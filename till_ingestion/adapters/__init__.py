"""Data source adapters."""

from till_ingestion.adapters.json_adapter import JsonDirectorySource

__all__ = ["JsonDirectorySource"]
