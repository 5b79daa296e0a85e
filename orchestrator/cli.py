"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the ledger sync.

- Provides argparse-based CLI
- Configures logging (json or text)
- Loads configuration from the environment, then CLI overrides
- Runs one sync and prints the report

============================================================
USAGE
============================================================
python app.py
python app.py --start-date 2025-01-01 --json
python app.py --dry-run --wallets wallets.csv --log-format text

============================================================
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from core.clock import now_utc, parse_start_date
from core.config import SyncConfig, load_config_from_env
from core.constants import STATUS_HEADER, SYSTEM_NAME, SYSTEM_VERSION
from core.exceptions import SyncError
from ledger.base import LedgerStore
from ledger.exceptions import LedgerError
from ledger.memory import InMemoryLedgerStore
from ledger.sql import SqlLedgerStore
from orchestrator.models import SyncReport
from orchestrator.pipeline import SyncOrchestrator
from source_adapters.models import SourceStatus


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    # stderr keeps stdout clean for --json output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Sync exchange and wallet transactions into the ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                  # Last 7 days into ledger.db
  %(prog)s --start-date 2025-01-01 --json   # Explicit window, JSON report
  %(prog)s --dry-run                        # In-memory ledger, nothing persisted
        """
    )

    # --------------------------------------------------------
    # Run Options
    # --------------------------------------------------------
    run_group = parser.add_argument_group("Run Options")

    run_group.add_argument(
        "--start-date",
        type=str,
        metavar="YYYY-MM-DD",
        help="Inclusive lower bound on transaction time (default: lookback days before now)",
    )

    run_group.add_argument(
        "--wallets",
        type=str,
        metavar="PATH",
        help="Wallet registry CSV (overrides LEDGER_WALLETS_PATH)",
    )

    run_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Use an in-memory ledger - nothing is persisted",
    )

    # --------------------------------------------------------
    # Storage Options
    # --------------------------------------------------------
    storage_group = parser.add_argument_group("Storage Options")

    storage_group.add_argument(
        "--database-url",
        type=str,
        metavar="URL",
        help="SQLAlchemy URL of the ledger (overrides LEDGER_DATABASE_URL)",
    )

    # --------------------------------------------------------
    # Output Options
    # --------------------------------------------------------
    output_group = parser.add_argument_group("Output Options")

    output_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    output_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="json",
        help="Logging format (default: json)",
    )

    output_group.add_argument(
        "--json",
        action="store_true",
        help="Print the full run report as JSON",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """Return a list of validation errors (empty when valid)."""
    errors = []

    if args.start_date:
        try:
            parse_start_date(args.start_date)
        except ValueError as e:
            errors.append(f"Invalid --start-date: {e}")

    if args.dry_run and args.database_url:
        errors.append("--dry-run and --database-url are mutually exclusive")

    return errors


# ============================================================
# CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> SyncConfig:
    """Environment configuration with CLI overrides applied."""
    config = load_config_from_env()
    if args.database_url:
        config.database_url = args.database_url
    if args.wallets:
        config.wallets_path = args.wallets
    return config


def build_store(args: argparse.Namespace, config: SyncConfig) -> LedgerStore:
    if args.dry_run:
        return InMemoryLedgerStore()
    return SqlLedgerStore(config.database_url)


# ============================================================
# OUTPUT
# ============================================================

def format_status_table(statuses: List[SourceStatus]) -> List[str]:
    """Status table lines, header first, columns padded to the widest cell."""
    rows = [list(STATUS_HEADER)] + [status.to_row() for status in statuses]
    widths = [max(len(row[i]) for row in rows) for i in range(len(STATUS_HEADER))]
    return [
        "  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip()
        for row in rows
    ]


def print_report(report: SyncReport) -> None:
    """Print a human-readable run summary."""
    write = report.write
    print()
    print("=" * 60)
    print(f"  {report.message}")
    print("=" * 60)
    if report.start_time:
        print(f"  Since:              {report.start_time.isoformat()}")
    print(f"  Found:              {report.total_found}")
    print(f"  After dedup:        {write.after_dedup} ({write.duplicates_removed} duplicates)")
    print(f"  After value filter: {write.after_filter} ({write.value_filtered} filtered)")
    print(f"  Recycle bin saved:  {write.recycle_bin_saved}")
    for partition, count in write.added.items():
        print(f"  Added to {partition + ':':<10} {count}")
    if write.unknown_currencies:
        print(f"  Unknown currencies: {', '.join(write.unknown_currencies)}")
    for partition, error in write.errors.items():
        print(f"  ERROR {partition}: {error}")
    print("-" * 60)
    for line in format_status_table(list(report.statuses.values())):
        print(f"  {line}")
    print("=" * 60)
    print()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace) -> int:
    """
    Async main entry point.

    Returns:
        Exit code (0 when the pipeline completed)
    """
    try:
        config = build_config(args)
        store = build_store(args, config)
    except (SyncError, LedgerError) as e:
        logging.error(f"Startup failed: {e}")
        return 1

    start_time = parse_start_date(args.start_date) if args.start_date else None

    try:
        report = await SyncOrchestrator(store, config).run(start_time=start_time)
    finally:
        store.close()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print_report(report)
    return 0 if report.success else 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    correlation_id = f"sync_{now_utc().strftime('%Y%m%d_%H%M%S')}"
    setup_logging(args.log_level, args.log_format, correlation_id=correlation_id)

    try:
        return asyncio.run(async_main(args))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
