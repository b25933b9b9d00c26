"""Scheduled jobs for birthday reminders and ledger maintenance."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.core.settings import settings
from bacenta_reminders.observability.birthdays import get_birthday_store
from bacenta_reminders.observability.tracing import job_span
from bacenta_reminders.services.birthdays.engine import BirthdayReminderEngine
from bacenta_reminders.services.birthdays.factory import build_birthday_engine
from bacenta_reminders.services.birthdays.roster import list_church_ids, load_church_roster
from bacenta_reminders.services.notifications.backend import EmailBackend, build_email_backend

SessionFactory = Callable[[], AsyncSession] | Callable[[], Awaitable[AsyncSession]]


async def _open_session(session_factory: SessionFactory) -> AsyncSession:
    maybe_session = session_factory()
    if isinstance(maybe_session, AsyncSession):
        return maybe_session
    return await maybe_session


async def _target_churches(session: AsyncSession, church_id: str | None) -> list[str]:
    if church_id:
        return [church_id]
    return await list_church_ids(session)


def _maintenance_engine(session: AsyncSession) -> BirthdayReminderEngine:
    # stats and cleanup never send mail
    return build_birthday_engine(session, settings, email_enabled=False)


def _parse_reference_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


async def dispatch_birthday_reminders(
    *,
    session_factory: SessionFactory,
    church_id: str | None = None,
    reference_date: date | str | None = None,
    force: bool = False,
    actor_id: str | None = None,
    offsets: Sequence[int] | None = None,
    email_backend: EmailBackend | None = None,
) -> Dict[str, Any]:
    """Run the reminder engine for every church (or just ``church_id``)."""

    reference = _parse_reference_date(reference_date)
    backend = email_backend or build_email_backend(settings)
    store = get_birthday_store()
    summary: Dict[str, Any] = {
        "churches": 0,
        "skipped_churches": 0,
        "failed_churches": 0,
        "processed": 0,
        "sent": 0,
        "failed": 0,
        "skipped": 0,
        "errors": [],
        "reports": [],
    }

    session = await _open_session(session_factory)
    async with session as managed_session:
        for cid in await _target_churches(managed_session, church_id):
            roster = await load_church_roster(
                managed_session,
                cid,
                default_offsets=settings.birthday_default_offsets,
            )
            if roster is None:
                logger.warning("Skipping birthday reminders for unknown church", church_id=cid)
                summary["skipped_churches"] += 1
                continue
            if not roster.birthday_notifications_enabled:
                logger.info("Birthday notifications disabled for church", church_id=cid)
                summary["skipped_churches"] += 1
                continue
            if not roster.has_birthdays:
                logger.debug("No member birthdays recorded for church", church_id=cid)
                summary["skipped_churches"] += 1
                continue

            engine = build_birthday_engine(
                managed_session,
                settings,
                email_backend=backend,
                email_enabled=roster.email_notifications_enabled,
            )
            try:
                with job_span("birthday.dispatch", church_id=cid, forced=force):
                    report = await engine.run(
                        cid,
                        roster.members,
                        roster.users,
                        roster.units,
                        offsets if offsets is not None else roster.offsets,
                        reference,
                        force=force,
                        actor_id=actor_id,
                    )
            except Exception as exc:
                await managed_session.rollback()
                logger.exception("Birthday reminder run failed for church", church_id=cid, error=str(exc))
                summary["failed_churches"] += 1
                summary["errors"].append(f"{cid}: {exc}")
                continue

            store.record_run(report)
            summary["churches"] += 1
            for key in ("processed", "sent", "failed", "skipped"):
                summary[key] += getattr(report, key)
            summary["errors"].extend(report.errors)
            if report.fatal:
                summary["failed_churches"] += 1
            summary["reports"].append(report.as_dict())

    logger.bind(summary={k: v for k, v in summary.items() if k != "reports"}).info(
        "Birthday reminder dispatch completed"
    )
    return summary


async def capture_birthday_notification_stats(
    *,
    session_factory: SessionFactory,
    church_id: str | None = None,
    window_days: int | None = None,
) -> Dict[str, Any]:
    """Snapshot ledger statistics over the trailing window for each church."""

    window = window_days if window_days is not None else settings.birthday_stats_window_days
    end = date.today()
    start = end - timedelta(days=window)
    store = get_birthday_store()
    stats_by_church: Dict[str, Dict[str, int]] = {}

    session = await _open_session(session_factory)
    async with session as managed_session:
        for cid in await _target_churches(managed_session, church_id):
            engine = _maintenance_engine(managed_session)
            with job_span("birthday.stats", church_id=cid, window_days=window):
                stats = (await engine.get_stats(cid, start, end)).as_dict()
            store.record_stats(cid, stats)
            stats_by_church[cid] = stats
            logger.info("Captured birthday notification stats", church_id=cid, **stats)

    return {
        "churches": len(stats_by_church),
        "start": start.isoformat(),
        "end": end.isoformat(),
        "stats": stats_by_church,
    }


async def cleanup_birthday_notifications(
    *,
    session_factory: SessionFactory,
    church_id: str | None = None,
    retention_days: int | None = None,
    batch_size: int | None = None,
) -> Dict[str, Any]:
    """Delete ledger entries past the retention window for each church."""

    retention = retention_days if retention_days is not None else settings.birthday_ledger_retention_days
    batch = batch_size if batch_size is not None else settings.birthday_cleanup_batch_size
    store = get_birthday_store()
    deleted_by_church: Dict[str, int] = {}

    session = await _open_session(session_factory)
    async with session as managed_session:
        for cid in await _target_churches(managed_session, church_id):
            engine = _maintenance_engine(managed_session)
            with job_span("birthday.cleanup", church_id=cid, retention_days=retention):
                deleted = await engine.cleanup(cid, retention_days=retention, batch_size=batch)
            store.record_cleanup(cid, deleted)
            deleted_by_church[cid] = deleted

    summary = {
        "churches": len(deleted_by_church),
        "deleted": sum(deleted_by_church.values()),
        "retention_days": retention,
        "by_church": deleted_by_church,
    }
    logger.bind(summary=summary).info("Birthday ledger cleanup completed")
    return summary


__all__ = [
    "capture_birthday_notification_stats",
    "cleanup_birthday_notifications",
    "dispatch_birthday_reminders",
]
