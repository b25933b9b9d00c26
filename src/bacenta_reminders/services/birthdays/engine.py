"""Birthday reminder orchestration for a single church."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, Iterable, Sequence

from loguru import logger

from bacenta_reminders.models.notification import NotificationStatusEnum
from bacenta_reminders.models.roster import ChurchUserRoleEnum
from bacenta_reminders.services.notifications.backend import EmailBackend
from bacenta_reminders.services.notifications.in_app import InAppNotifier

from .dispatcher import BirthdayDispatcher, TemplateRenderer
from .domain import (
    SYSTEM_IDENTITY,
    ActingIdentity,
    LedgerEntry,
    LedgerStats,
    MemberOutcome,
    MemberRecord,
    OutcomeStatus,
    RunReport,
    SkipReason,
    UnitRecord,
    UserRecord,
)
from .exceptions import LedgerUnavailableError
from .ledger import LedgerStore, dedup_window, has_recent_entry
from .recipients import resolve_recipients
from .scanner import scan
from .templates import render_birthday_reminder


def resolve_acting_identity(users: Sequence[UserRecord], actor_id: str | None) -> ActingIdentity:
    """The named actor when known, else the first active admin, else the system identity."""

    if actor_id:
        for user in users:
            if user.id == actor_id:
                return ActingIdentity(user_id=user.id, display_name=user.name)
    for user in users:
        if user.role == ChurchUserRoleEnum.ADMIN and user.is_active:
            return ActingIdentity(user_id=user.id, display_name=user.name)
    return SYSTEM_IDENTITY


class BirthdayReminderEngine:
    """Scans a roster, resolves recipients and dispatches reminders at most once.

    The engine holds no tenant state: every call receives the church id and the
    roster it should work on.
    """

    def __init__(
        self,
        *,
        ledger: LedgerStore,
        email_backend: EmailBackend,
        in_app_notifier: InAppNotifier,
        renderer: TemplateRenderer = render_birthday_reminder,
        email_enabled: bool = True,
        batch_timeout_seconds: float = 20.0,
        pacing_seconds: float = 0.1,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._ledger = ledger
        self._today = today
        self._dispatcher = BirthdayDispatcher(
            ledger=ledger,
            email_backend=email_backend,
            in_app_notifier=in_app_notifier,
            renderer=renderer,
            email_enabled=email_enabled,
            batch_timeout_seconds=batch_timeout_seconds,
            pacing_seconds=pacing_seconds,
        )

    async def run(
        self,
        church_id: str,
        members: Sequence[MemberRecord],
        users: Sequence[UserRecord],
        units: Sequence[UnitRecord],
        offsets: Iterable[int],
        reference_date: date | None = None,
        *,
        force: bool = False,
        actor_id: str | None = None,
    ) -> RunReport:
        reference_date = reference_date or self._today()
        report = RunReport(church_id=church_id, reference_date=reference_date, forced=force)

        qualifying = scan(members, offsets, reference_date)
        if not qualifying:
            logger.debug("No birthdays at configured offsets", church_id=church_id, reference_date=reference_date)
            return report

        try:
            window_start, window_end = dedup_window(reference_date)
            recent_entries = await self._ledger.list_between(church_id, window_start, window_end)
        except LedgerUnavailableError as exc:
            logger.error("Birthday ledger unavailable; aborting run", church_id=church_id, error=str(exc))
            report.record_fatal(f"ledger unavailable: {exc}")
            return report

        acting = resolve_acting_identity(users, actor_id)
        units_by_id = {unit.id: unit for unit in units}

        for member, days in qualifying:
            report.processed += 1
            try:
                outcome = await self._process_member(
                    church_id=church_id,
                    member=member,
                    days_until_birthday=days,
                    users=users,
                    units=units,
                    unit=units_by_id.get(member.unit_id) if member.unit_id else None,
                    recent_entries=recent_entries,
                    acting=acting,
                    reference_date=reference_date,
                    force=force,
                    actor_id=actor_id,
                )
            except Exception as exc:
                logger.exception(
                    "Birthday reminder processing failed",
                    church_id=church_id,
                    member_id=member.id,
                )
                outcome = MemberOutcome(
                    member_id=member.id,
                    member_name=member.full_name,
                    days_until_birthday=days,
                    status=OutcomeStatus.FAILED,
                    reason=str(exc),
                    error=f"{member.full_name}: {exc}",
                )
            report.record(outcome)

        logger.bind(summary=report.summary()).info(
            "Birthday reminder run completed",
            church_id=church_id,
            reference_date=reference_date,
            forced=force,
        )
        return report

    async def _process_member(
        self,
        *,
        church_id: str,
        member: MemberRecord,
        days_until_birthday: int,
        users: Sequence[UserRecord],
        units: Sequence[UnitRecord],
        unit: UnitRecord | None,
        recent_entries: Sequence[LedgerEntry],
        acting: ActingIdentity,
        reference_date: date,
        force: bool,
        actor_id: str | None,
    ) -> MemberOutcome:
        recipients = resolve_recipients(member, users, units, actor_id=actor_id)
        if not recipients:
            logger.debug("No birthday recipients for member", church_id=church_id, member_id=member.id)
            return self._skipped(member, days_until_birthday, SkipReason.NO_RECIPIENTS)

        if not force and has_recent_entry(recent_entries, member.id, days_until_birthday, reference_date):
            logger.debug(
                "Birthday reminder already recorded",
                church_id=church_id,
                member_id=member.id,
                days_until_birthday=days_until_birthday,
            )
            return self._skipped(member, days_until_birthday, SkipReason.DUPLICATE)

        return await self._dispatcher.dispatch(
            church_id=church_id,
            member=member,
            days_until_birthday=days_until_birthday,
            recipients=recipients,
            unit=unit,
            acting=acting,
            reference_date=reference_date,
            force=force,
        )

    @staticmethod
    def _skipped(member: MemberRecord, days_until_birthday: int, reason: SkipReason) -> MemberOutcome:
        return MemberOutcome(
            member_id=member.id,
            member_name=member.full_name,
            days_until_birthday=days_until_birthday,
            status=OutcomeStatus.SKIPPED,
            reason=reason.value,
        )

    async def list_ledger(self, church_id: str, start: date, end: date) -> list[LedgerEntry]:
        return await self._ledger.list_between(church_id, start, end)

    async def get_stats(self, church_id: str, start: date, end: date) -> LedgerStats:
        entries = await self._ledger.list_between(church_id, start, end)
        return LedgerStats(
            total=len(entries),
            sent=sum(1 for entry in entries if entry.status is NotificationStatusEnum.SENT),
            failed=sum(1 for entry in entries if entry.status is NotificationStatusEnum.FAILED),
            pending=sum(1 for entry in entries if entry.status is NotificationStatusEnum.PENDING),
            unique_members=len({entry.member_id for entry in entries}),
        )

    async def cleanup(self, church_id: str, retention_days: int = 90, batch_size: int = 100) -> int:
        """Delete entries older than ``retention_days`` in batches of ``batch_size``."""

        if retention_days < 0:
            raise ValueError("retention_days must be non-negative")
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        cutoff = self._today() - timedelta(days=retention_days)
        deleted = 0
        while True:
            removed = await self._ledger.delete_older_than(church_id, cutoff, limit=batch_size)
            deleted += removed
            if removed < batch_size:
                break
        logger.info("Birthday ledger cleanup finished", church_id=church_id, cutoff=cutoff, deleted=deleted)
        return deleted


__all__ = ["BirthdayReminderEngine", "resolve_acting_identity"]
