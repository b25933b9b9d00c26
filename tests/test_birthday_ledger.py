from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from bacenta_reminders.models.notification import BirthdayNotification, NotificationStatusEnum
from bacenta_reminders.services.birthdays.domain import ChannelDetails, LedgerEntry
from bacenta_reminders.services.birthdays.exceptions import LedgerTransitionError, LedgerUnavailableError
from bacenta_reminders.services.birthdays.ledger import (
    InMemoryLedgerStore,
    SqlAlchemyLedgerStore,
    dedup_window,
    has_recent_entry,
)

REFERENCE = date(2025, 7, 3)
SENT = NotificationStatusEnum.SENT
FAILED = NotificationStatusEnum.FAILED


def _entry(member_id: str = "m-1", *, church_id: str = "church-1", on: date = REFERENCE, days: int = 7, **kwargs):
    return LedgerEntry(
        church_id=church_id,
        member_id=member_id,
        notification_date=on,
        days_until_birthday=days,
        recipient_ids=("leader", "admin"),
        member_name="Ama Mensah",
        **kwargs,
    )


def _details(reason: str | None = None) -> ChannelDetails:
    return ChannelDetails(
        subject="🎈 Upcoming Birthday - Ama Mensah (7 days)",
        sent_at=datetime(2025, 7, 3, 9, 0, tzinfo=timezone.utc),
        failure_reason=reason,
    )


def test_ledger_entry_validates_required_fields():
    with pytest.raises(ValueError):
        _entry(church_id="")
    with pytest.raises(ValueError):
        _entry(member_id="")
    with pytest.raises(ValueError):
        _entry(days=-1)


def test_claim_key_is_absent_for_forced_entries():
    assert _entry().claim_key == "m-1:7:2025-07-03"
    assert _entry(forced=True).claim_key is None


def test_has_recent_entry_honours_window_status_and_offset():
    entries = [
        _entry(on=REFERENCE - timedelta(days=1)),
        _entry("m-2", status=FAILED),
        _entry("m-3", on=REFERENCE - timedelta(days=2)),
    ]

    assert dedup_window(REFERENCE) == (date(2025, 7, 2), date(2025, 7, 4))
    assert has_recent_entry(entries, "m-1", 7, REFERENCE)
    assert not has_recent_entry(entries, "m-1", 3, REFERENCE)
    assert not has_recent_entry(entries, "m-2", 7, REFERENCE)
    assert not has_recent_entry(entries, "m-3", 7, REFERENCE)


@pytest.mark.asyncio
async def test_in_memory_claim_is_exclusive_until_failure_releases_it():
    ledger = InMemoryLedgerStore()

    entry_id = await ledger.claim(_entry())
    assert entry_id is not None
    assert await ledger.claim(_entry()) is None
    assert await ledger.exists("church-1", "m-1", 7, REFERENCE)

    await ledger.mark_terminal("church-1", entry_id, FAILED, _details("timeout"))

    assert not await ledger.exists("church-1", "m-1", 7, REFERENCE)
    retry_id = await ledger.claim(_entry())
    assert retry_id is not None and retry_id != entry_id


@pytest.mark.asyncio
async def test_in_memory_terminal_transition_happens_once():
    ledger = InMemoryLedgerStore()
    entry_id = await ledger.claim(_entry())

    await ledger.mark_terminal("church-1", entry_id, SENT, _details())

    with pytest.raises(LedgerTransitionError):
        await ledger.mark_terminal("church-1", entry_id, FAILED, _details("late"))
    with pytest.raises(LedgerTransitionError):
        await ledger.mark_terminal("church-1", entry_id, NotificationStatusEnum.PENDING, _details())
    assert ledger.entries[entry_id].status is SENT


@pytest.mark.asyncio
async def test_in_memory_ledger_is_scoped_per_church():
    ledger = InMemoryLedgerStore()
    entry_id = await ledger.claim(_entry())

    assert await ledger.claim(_entry(church_id="church-2")) is not None
    assert len(await ledger.list_between("church-1", REFERENCE, REFERENCE)) == 1
    with pytest.raises(LedgerTransitionError):
        await ledger.mark_terminal("church-2", entry_id, SENT, _details())


@pytest.mark.asyncio
async def test_in_memory_ledger_reports_unavailability():
    ledger = InMemoryLedgerStore()
    ledger.unavailable = True

    with pytest.raises(LedgerUnavailableError):
        await ledger.list_between("church-1", REFERENCE, REFERENCE)


@pytest.mark.asyncio
async def test_sqlalchemy_claim_conflict_returns_none(session_factory):
    async with session_factory() as session:
        ledger = SqlAlchemyLedgerStore(session)

        entry_id = await ledger.claim(_entry())
        duplicate = await ledger.claim(_entry())
        forced_id = await ledger.create(_entry(forced=True))

        assert entry_id is not None
        assert duplicate is None
        assert forced_id not in (None, entry_id)
        entries = await ledger.list_between("church-1", REFERENCE, REFERENCE)
        assert {entry.id for entry in entries} == {entry_id, forced_id}
        assert all(entry.status is NotificationStatusEnum.PENDING for entry in entries)


@pytest.mark.asyncio
async def test_sqlalchemy_mark_terminal_persists_channel_details(session_factory):
    async with session_factory() as session:
        ledger = SqlAlchemyLedgerStore(session)
        entry_id = await ledger.claim(_entry())

        await ledger.mark_terminal("church-1", entry_id, SENT, _details())
        with pytest.raises(LedgerTransitionError):
            await ledger.mark_terminal("church-1", entry_id, FAILED, _details("again"))

        [entry] = await ledger.list_between("church-1", REFERENCE, REFERENCE)
        assert entry.status is SENT
        assert entry.recipient_ids == ("leader", "admin")
        assert entry.channel_details is not None
        assert entry.channel_details.subject.endswith("(7 days)")
        assert await ledger.exists("church-1", "m-1", 7, REFERENCE + timedelta(days=1))


@pytest.mark.asyncio
async def test_sqlalchemy_failed_entry_releases_claim(session_factory):
    async with session_factory() as session:
        ledger = SqlAlchemyLedgerStore(session)
        entry_id = await ledger.claim(_entry())

        await ledger.mark_terminal("church-1", entry_id, FAILED, _details("timeout"))

        stmt = (
            select(BirthdayNotification)
            .where(BirthdayNotification.id == entry_id)
            .execution_options(populate_existing=True)
        )
        row = (await session.execute(stmt)).scalar_one()
        assert row.claim_key is None
        assert row.failure_reason == "timeout"
        assert not await ledger.exists("church-1", "m-1", 7, REFERENCE)
        assert await ledger.claim(_entry()) is not None


@pytest.mark.asyncio
async def test_sqlalchemy_delete_older_than_respects_limit_and_church(session_factory):
    async with session_factory() as session:
        ledger = SqlAlchemyLedgerStore(session)
        for offset in range(3):
            await ledger.create(_entry(f"old-{offset}", on=REFERENCE - timedelta(days=120)))
        await ledger.create(_entry("recent"))
        await ledger.create(_entry("other", church_id="church-2", on=REFERENCE - timedelta(days=120)))

        cutoff = REFERENCE - timedelta(days=90)
        assert await ledger.delete_older_than("church-1", cutoff, limit=2) == 2
        assert await ledger.delete_older_than("church-1", cutoff, limit=2) == 1
        assert await ledger.delete_older_than("church-1", cutoff, limit=2) == 0

        remaining = await ledger.list_between("church-1", date(2000, 1, 1), REFERENCE)
        assert [entry.member_id for entry in remaining] == ["recent"]
        assert len(await ledger.list_between("church-2", date(2000, 1, 1), REFERENCE)) == 1
