#!/usr/bin/env python
"""Archive and roll up aged snapshot and transaction rows.

Runs the same retention pass as ``POST /api/cron/retention``, for use from a
system scheduler without going through HTTP.

Usage:
    python -m scripts.run_retention
    python -m scripts.run_retention --dry-run
    python -m scripts.run_retention --date 2026-03-01 --archive-dir /backups/ledgerline
"""

import argparse
import sys
from datetime import date
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from database import get_session_local
from logging_config import setup_logging
from services.archive_service import ArchiveService
from services.retention_service import RetentionResult, RetentionService


def run(today: date, archive_dir: Path, dry_run: bool = False) -> RetentionResult:
    """Run one retention pass and print what happened."""
    SessionLocal = get_session_local()
    db = SessionLocal()
    try:
        service = RetentionService(archive=ArchiveService(archive_dir))
        result = service.run(db, today=today, dry_run=dry_run)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    prefix = "[DRY RUN] Due" if dry_run else "Rolled up"
    print(f"{prefix} daily months:       {', '.join(result.daily_months_rolled) or '-'}")
    print(f"{prefix} years:              {', '.join(str(y) for y in result.years_rolled) or '-'}")
    print(f"{prefix} transaction months: {', '.join(result.transaction_months_rolled) or '-'}")
    if not dry_run:
        print(f"\nMonthly rows written: {result.monthly_rows_written}")
        print(f"Yearly rows written:  {result.yearly_rows_written}")
        print(f"Summary rows written: {result.summary_rows_written}")
        print(f"Rows deleted:         {result.rows_deleted}")
        for path in result.archives:
            print(f"  archived {path}")
    for error in result.errors:
        print(f"  ! {error}")
    return result


def main():
    parser = argparse.ArgumentParser(description="Archive and roll up aged rows")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date for the retention windows (default: today)",
    )
    parser.add_argument(
        "--archive-dir",
        type=Path,
        default=Path(settings.ARCHIVE_DIR),
        help=f"Directory for CSV exports (default: {settings.ARCHIVE_DIR})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show which months and years are due without changing anything",
    )
    args = parser.parse_args()

    setup_logging()
    result = run(args.date or date.today(), args.archive_dir, dry_run=args.dry_run)
    sys.exit(1 if result.errors else 0)


if __name__ == "__main__":
    main()
