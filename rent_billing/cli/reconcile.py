"""CLI entry point for the periodic reconciliation scan.

Re-evaluates overdue periods, overdue invoices and expired leases as of a
given date, independently of payment activity. Meant to run daily (cron).

Usage:
    python -m rent_billing.cli.reconcile
    python -m rent_billing.cli.reconcile --date 2024-03-01

Exit Codes:
    0 - Success: Scan completed
    1 - Failure: Error encountered; the lease being scanned was rolled back

Logging:
    LOG_LEVEL (default INFO) to both stdout and the configured log file
"""

import argparse
import sys
from datetime import date

from dotenv import find_dotenv, load_dotenv

from rent_billing.config import get_settings
from rent_billing.services.billing_service import BillingService
from rent_billing.services.db import create_session_factory
from rent_billing.services.logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the billing reconciliation scan")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Scan date as YYYY-MM-DD (default: today)",
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the reconciliation CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    # Exported so LOG_LEVEL in .env reaches get_log_level() too
    load_dotenv(find_dotenv(usecwd=True))
    settings = get_settings()
    logger = setup_logging(settings.log_file, settings.log_level, sql_echo=settings.database_echo)

    scan_date = args.date or date.today()
    logger.info("Starting reconciliation scan for %s...", scan_date)

    try:
        session_factory = create_session_factory(args.database_url)
        db = session_factory()
        try:
            service = BillingService(db, clock=lambda: scan_date, settings=settings)
            summary = service.run_scan()
        finally:
            db.close()
    except KeyboardInterrupt:
        logger.warning("Scan interrupted by user")
        return 1
    except Exception as e:
        logger.error("Scan failed: %s", e, exc_info=True)
        return 1

    logger.info(
        "Scan complete: %d leases, %d invoices, %d status changes, %d conflicts",
        summary.leases_scanned,
        summary.invoices_scanned,
        len(summary.changes),
        summary.conflicts,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
