"""Deduplication ledger for birthday reminders."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Protocol
from uuid import uuid4

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.models.notification import BirthdayNotification, NotificationStatusEnum

from .domain import ChannelDetails, LedgerEntry
from .exceptions import LedgerTransitionError, LedgerUnavailableError

# Entries within this many days of the reference date count as the same reminder.
DEDUP_WINDOW_DAYS = 1

_EFFECTIVE_STATUSES = (NotificationStatusEnum.PENDING, NotificationStatusEnum.SENT)


def dedup_window(reference_date: date) -> tuple[date, date]:
    delta = timedelta(days=DEDUP_WINDOW_DAYS)
    return reference_date - delta, reference_date + delta


def has_recent_entry(
    entries: Iterable[LedgerEntry],
    member_id: str,
    days_until_birthday: int,
    reference_date: date,
) -> bool:
    """True when a pending or sent entry for the member/offset falls inside the window."""

    start, end = dedup_window(reference_date)
    return any(
        entry.member_id == member_id
        and entry.days_until_birthday == days_until_birthday
        and entry.status in _EFFECTIVE_STATUSES
        and start <= entry.notification_date <= end
        for entry in entries
    )


class LedgerStore(Protocol):
    """Storage for ledger entries; every call is scoped to one church."""

    async def exists(self, church_id: str, member_id: str, days_until_birthday: int, reference_date: date) -> bool:
        ...

    async def create(self, entry: LedgerEntry) -> str:
        ...

    async def claim(self, entry: LedgerEntry) -> str | None:
        ...

    async def mark_terminal(
        self,
        church_id: str,
        entry_id: str,
        status: NotificationStatusEnum,
        channel_details: ChannelDetails,
    ) -> None:
        ...

    async def list_between(self, church_id: str, start: date, end: date) -> List[LedgerEntry]:
        ...

    async def delete_older_than(self, church_id: str, cutoff: date, *, limit: int) -> int:
        ...


def _check_terminal_status(status: NotificationStatusEnum) -> NotificationStatusEnum:
    status = NotificationStatusEnum(status)
    if status is NotificationStatusEnum.PENDING:
        raise LedgerTransitionError("Ledger entries can only transition to sent or failed")
    return status


class SqlAlchemyLedgerStore:
    """Ledger persisted in ``birthday_notifications``.

    The ``(church_id, claim_key)`` unique constraint turns :meth:`claim` into an
    atomic create-if-absent across concurrent runs.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(self, church_id: str, member_id: str, days_until_birthday: int, reference_date: date) -> bool:
        start, end = dedup_window(reference_date)
        stmt = select(func.count(BirthdayNotification.id)).where(
            BirthdayNotification.church_id == church_id,
            BirthdayNotification.member_id == member_id,
            BirthdayNotification.days_until_birthday == days_until_birthday,
            BirthdayNotification.status.in_(_EFFECTIVE_STATUSES),
            BirthdayNotification.notification_date >= start,
            BirthdayNotification.notification_date <= end,
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise LedgerUnavailableError(f"Ledger lookup failed: {exc}") from exc
        return (result.scalar_one() or 0) > 0

    async def create(self, entry: LedgerEntry) -> str:
        row = self._build_row(entry, claim_key=None)
        entry_id = row.id
        self._session.add(row)
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise LedgerUnavailableError(f"Ledger insert failed: {exc}") from exc
        return entry_id

    async def claim(self, entry: LedgerEntry) -> str | None:
        row = self._build_row(entry, claim_key=entry.claim_key)
        entry_id = row.id
        self._session.add(row)
        try:
            await self._session.commit()
        except IntegrityError:
            await self._session.rollback()
            logger.debug(
                "Birthday ledger claim already held",
                church_id=entry.church_id,
                claim_key=entry.claim_key,
            )
            return None
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise LedgerUnavailableError(f"Ledger claim failed: {exc}") from exc
        return entry_id

    async def mark_terminal(
        self,
        church_id: str,
        entry_id: str,
        status: NotificationStatusEnum,
        channel_details: ChannelDetails,
    ) -> None:
        status = _check_terminal_status(status)
        values: Dict[str, object] = {
            "status": status,
            "subject": channel_details.subject,
            "sent_at": channel_details.sent_at,
            "failure_reason": channel_details.failure_reason,
            "provider_message_id": channel_details.provider_message_id,
        }
        if status is NotificationStatusEnum.FAILED:
            values["claim_key"] = None
        stmt = (
            update(BirthdayNotification)
            .where(
                BirthdayNotification.church_id == church_id,
                BirthdayNotification.id == entry_id,
                BirthdayNotification.status == NotificationStatusEnum.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise LedgerUnavailableError(f"Ledger update failed: {exc}") from exc
        if result.rowcount == 0:
            raise LedgerTransitionError(f"Ledger entry {entry_id} is unknown or already terminal")

    async def list_between(self, church_id: str, start: date, end: date) -> List[LedgerEntry]:
        stmt = (
            select(BirthdayNotification)
            .where(
                BirthdayNotification.church_id == church_id,
                BirthdayNotification.notification_date >= start,
                BirthdayNotification.notification_date <= end,
            )
            .order_by(BirthdayNotification.notification_date, BirthdayNotification.created_at)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise LedgerUnavailableError(f"Ledger query failed: {exc}") from exc
        return [self._to_entry(row) for row in result.scalars().all()]

    async def delete_older_than(self, church_id: str, cutoff: date, *, limit: int) -> int:
        ids_stmt = (
            select(BirthdayNotification.id)
            .where(
                BirthdayNotification.church_id == church_id,
                BirthdayNotification.notification_date < cutoff,
            )
            .limit(limit)
        )
        try:
            ids = list((await self._session.execute(ids_stmt)).scalars().all())
            if not ids:
                return 0
            await self._session.execute(
                delete(BirthdayNotification)
                .where(BirthdayNotification.id.in_(ids))
                .execution_options(synchronize_session=False)
            )
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise LedgerUnavailableError(f"Ledger cleanup failed: {exc}") from exc
        return len(ids)

    @staticmethod
    def _build_row(entry: LedgerEntry, *, claim_key: str | None) -> BirthdayNotification:
        return BirthdayNotification(
            id=entry.id or str(uuid4()),
            church_id=entry.church_id,
            member_id=entry.member_id,
            member_name=entry.member_name,
            bacenta_id=entry.unit_id,
            bacenta_name=entry.unit_name,
            notification_date=entry.notification_date,
            days_until_birthday=entry.days_until_birthday,
            recipient_ids=list(entry.recipient_ids),
            status=NotificationStatusEnum.PENDING,
            forced=entry.forced,
            claim_key=claim_key,
        )

    @staticmethod
    def _to_entry(row: BirthdayNotification) -> LedgerEntry:
        details = None
        if row.subject is not None and row.sent_at is not None:
            details = ChannelDetails(
                subject=row.subject,
                sent_at=row.sent_at,
                failure_reason=row.failure_reason,
                provider_message_id=row.provider_message_id,
            )
        return LedgerEntry(
            id=row.id,
            church_id=row.church_id,
            member_id=row.member_id,
            member_name=row.member_name,
            unit_id=row.bacenta_id,
            unit_name=row.bacenta_name,
            notification_date=row.notification_date,
            days_until_birthday=row.days_until_birthday,
            recipient_ids=tuple(row.recipient_ids or ()),
            status=row.status,
            forced=bool(row.forced),
            channel_details=details,
            created_at=row.created_at,
        )


class InMemoryLedgerStore:
    """Process-local ledger used by tests and dry runs."""

    def __init__(self) -> None:
        self.entries: Dict[str, LedgerEntry] = {}
        self._claims: Dict[tuple[str, str], str] = {}
        self.unavailable = False

    def _ensure_available(self) -> None:
        if self.unavailable:
            raise LedgerUnavailableError("In-memory ledger marked unavailable")

    def _church_entries(self, church_id: str) -> List[LedgerEntry]:
        return [entry for entry in self.entries.values() if entry.church_id == church_id]

    async def exists(self, church_id: str, member_id: str, days_until_birthday: int, reference_date: date) -> bool:
        self._ensure_available()
        return has_recent_entry(self._church_entries(church_id), member_id, days_until_birthday, reference_date)

    async def create(self, entry: LedgerEntry) -> str:
        self._ensure_available()
        return self._insert(entry)

    async def claim(self, entry: LedgerEntry) -> str | None:
        self._ensure_available()
        key = (entry.church_id, entry.claim_key or "")
        if entry.claim_key is None or key in self._claims:
            return None
        entry_id = self._insert(entry)
        self._claims[key] = entry_id
        return entry_id

    async def mark_terminal(
        self,
        church_id: str,
        entry_id: str,
        status: NotificationStatusEnum,
        channel_details: ChannelDetails,
    ) -> None:
        self._ensure_available()
        status = _check_terminal_status(status)
        entry = self.entries.get(entry_id)
        if entry is None or entry.church_id != church_id or entry.is_terminal:
            raise LedgerTransitionError(f"Ledger entry {entry_id} is unknown or already terminal")
        self.entries[entry_id] = replace(entry, status=status, channel_details=channel_details)
        if status is NotificationStatusEnum.FAILED:
            self._claims = {key: value for key, value in self._claims.items() if value != entry_id}

    async def list_between(self, church_id: str, start: date, end: date) -> List[LedgerEntry]:
        self._ensure_available()
        matches = [entry for entry in self._church_entries(church_id) if start <= entry.notification_date <= end]
        return sorted(matches, key=lambda entry: entry.notification_date)

    async def delete_older_than(self, church_id: str, cutoff: date, *, limit: int) -> int:
        self._ensure_available()
        stale = [
            entry.id
            for entry in self._church_entries(church_id)
            if entry.notification_date < cutoff and entry.id is not None
        ][:limit]
        for entry_id in stale:
            del self.entries[entry_id]
        self._claims = {key: value for key, value in self._claims.items() if value not in stale}
        return len(stale)

    def _insert(self, entry: LedgerEntry) -> str:
        entry_id = entry.id or str(uuid4())
        self.entries[entry_id] = replace(
            entry,
            id=entry_id,
            status=NotificationStatusEnum.PENDING,
            created_at=entry.created_at or datetime.now(timezone.utc),
        )
        return entry_id


__all__ = [
    "DEDUP_WINDOW_DAYS",
    "InMemoryLedgerStore",
    "LedgerStore",
    "SqlAlchemyLedgerStore",
    "dedup_window",
    "has_recent_entry",
]
