#!/usr/bin/env python3
"""
Run the daily till audit for one date over a directory of JSON exports.

Reads ``<data-dir>/<date>/<store>/orders.json`` and ``counters.json`` and
prints the canonical JSON result to stdout.  Logs go to stderr.

Usage:
    python3 scripts/run_daily_audit.py --data-dir <path> --date YYYY-MM-DD [options]

Examples:
    # Full report (sales, counters, reconciliation) for every configured store
    python3 scripts/run_daily_audit.py --data-dir exports --date 2024-03-15

    # Reconciliation only, two stores
    python3 scripts/run_daily_audit.py --data-dir exports --date 2024-03-15 \\
        --operation reconcile --store FQ01 --store FQ28

Exit status is 1 when every requested store failed, 2 on configuration errors.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

OPERATIONS = ("sales", "counters", "reconcile", "full")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Daily audit: orders vs till closings, per store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--data-dir",
        required=True,
        type=Path,
        help="Root directory holding <date>/<store>/orders.json and counters.json.",
    )
    parser.add_argument(
        "--date",
        required=True,
        type=lambda s: date.fromisoformat(s).isoformat(),
        help="Report date (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--store",
        action="append",
        default=[],
        help="Store code; repeat for several. Default: every configured store.",
    )
    parser.add_argument(
        "--operation",
        choices=OPERATIONS,
        default="full",
        help="Which result to produce (default: full).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Alternative YAML configuration file.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level for the JSON log stream on stderr (default: WARNING).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from till_config import get_active_config
    from till_ingestion.adapters import JsonDirectorySource
    from till_kernel.exceptions import ConfigError
    from till_kernel.logging_config import configure_logging
    from till_services import DailyAuditService, dumps

    configure_logging(level=getattr(logging, args.log_level), stream=sys.stderr)

    try:
        config = get_active_config(args.config)
    except (ConfigError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    service = DailyAuditService(JsonDirectorySource(args.data_dir), config=config)
    operation = {
        "sales": service.sales_report,
        "counters": service.counters_report,
        "reconcile": service.reconcile,
        "full": service.full_report,
    }[args.operation]

    result = operation(args.date, args.store)
    print(dumps(result))

    for outcome in result.failed:
        print(
            f"{outcome.store_code}: {outcome.failure.code}: {outcome.failure.message}",
            file=sys.stderr,
        )
    return 1 if result.all_failed else 0


if __name__ == "__main__":
    sys.exit(main())
