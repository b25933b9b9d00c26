#!/usr/bin/env python3
"""Dispatch birthday reminders once, outside the in-process scheduler.

Intended usage: cron on hosts that do not run the API, or an admin re-running a
day by hand.

Example:
    python tooling/scripts/run_birthday_reminders.py --church grace-central --date 2025-07-03

Use `--dry-run` to resolve recipients and record the ledger without sending
real emails (messages are captured by the in-memory backend). `--force`
re-delivers reminders that were already recorded for the day.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path
from typing import Any

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Dispatch birthday reminders")
    parser.add_argument("--church", default=None, help="Only process this church id (default: every church).")
    parser.add_argument("--force", action="store_true", help="Bypass the duplicate check and re-deliver.")
    parser.add_argument("--actor", default=None, help="Admin user id the run is attributed to.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date as YYYY-MM-DD (default: today).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the in-memory email backend instead of real delivery.",
    )
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> dict[str, Any]:
    repo_root = Path(__file__).resolve().parents[2]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

    from bacenta_reminders.db.session import async_session  # type: ignore import-position
    from bacenta_reminders.jobs.birthdays import dispatch_birthday_reminders  # type: ignore import-position
    from bacenta_reminders.services.notifications import InMemoryEmailBackend  # type: ignore import-position

    return await dispatch_birthday_reminders(
        session_factory=async_session,
        church_id=args.church,
        reference_date=args.date,
        force=args.force,
        actor_id=args.actor,
        email_backend=InMemoryEmailBackend() if args.dry_run else None,
    )


def main() -> int:
    args = parse_args()
    summary = asyncio.run(_run(args))
    logger.success(
        "Birthday reminder run completed",
        churches=summary["churches"],
        processed=summary["processed"],
        sent=summary["sent"],
        failed=summary["failed"],
        skipped=summary["skipped"],
        dry_run=args.dry_run,
    )
    for error in summary["errors"]:
        logger.warning("Birthday reminder error", error=error)
    return 1 if summary["failed_churches"] else 0


if __name__ == "__main__":
    sys.exit(main())
