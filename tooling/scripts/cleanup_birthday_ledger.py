#!/usr/bin/env python3
"""Purge birthday ledger entries older than the retention window.

Example:
    python tooling/scripts/cleanup_birthday_ledger.py --retention-days 90
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from loguru import logger


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete stale birthday ledger entries")
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="Keep entries from the last N days (default: BIRTHDAY_LEDGER_RETENTION_DAYS).",
    )
    parser.add_argument("--church", default=None, help="Only clean this church id.")
    return parser.parse_args()


async def _run(retention_days: int | None, church_id: str | None) -> dict[str, Any]:
    repo_root = Path(__file__).resolve().parents[2]
    src = repo_root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))

    from bacenta_reminders.db.session import async_session  # type: ignore import-position
    from bacenta_reminders.jobs.birthdays import cleanup_birthday_notifications  # type: ignore import-position

    return await cleanup_birthday_notifications(
        session_factory=async_session,
        church_id=church_id,
        retention_days=retention_days,
    )


def main() -> int:
    args = parse_args()
    if args.retention_days is not None and args.retention_days < 0:
        logger.error("Retention must be non-negative", retention_days=args.retention_days)
        return 2
    summary = asyncio.run(_run(args.retention_days, args.church))
    logger.success(
        "Birthday ledger cleanup completed",
        churches=summary["churches"],
        deleted=summary["deleted"],
        retention_days=summary["retention_days"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
