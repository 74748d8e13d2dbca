"""CLI entry point for the daily billing automation tick.

Evaluates monthly tuition and late fee jobs for one organization. Safe to
run from cron several times a day: a job already run today is a no-op.

Usage:
    python -m tuition_ledger.cli.run_billing --organization 1
    python -m tuition_ledger.cli.run_billing --organization 1 --date 2024-03-10

Exit Codes:
    0 - Success: every due job ran for every member, or nothing was due
    1 - Failure: a member could not be charged (marker not advanced) or error

Logging:
    Level from LOG_LEVEL, to both stdout and LOG_FILE (default logs/ledger.log)
"""

import argparse
import sys
from datetime import date

from tuition_ledger.services.config import load_settings, local_today
from tuition_ledger.services.logging import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run due billing jobs for an organization")
    parser.add_argument("--organization", type=int, required=True, help="Organization ID")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Local date to evaluate as YYYY-MM-DD (default: today)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the billing CLI.

    Returns:
        Exit code: 0 for success, 1 for failure
    """
    args = parse_args(argv)
    logger = None
    try:
        settings = load_settings()
        logger = setup_logging(settings.log_file, settings.log_level)

        today = args.date or local_today(settings)
        logger.info(f"Running billing jobs for organization {args.organization} on {today}")

        from tuition_ledger.services.billing_service import BillingService
        from tuition_ledger.services.db import create_session

        for db in create_session(settings.database_url):
            result = BillingService(db, settings).run_due_jobs(args.organization, today)

        for name, job in (("monthly billing", result.monthly), ("late fees", result.late_fees)):
            if not job.ran:
                logger.info(f"{name}: not due")
                continue
            logger.info(
                f"{name}: {len(job.created)} charged, {len(job.skipped)} skipped, "
                f"{len(job.failures)} failed"
            )
            for member_id, error in job.failures:
                logger.error(f"{name}: member {member_id} failed: {error}")

        return 1 if result.failed else 0

    except KeyboardInterrupt:
        if logger:
            logger.warning("Billing run interrupted by user")
        return 1
    except Exception as e:
        if logger:
            logger.error(f"Billing run failed: {e}", exc_info=True)
        else:
            print(f"Billing run failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
