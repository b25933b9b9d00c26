from __future__ import annotations

from datetime import date, timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.api.dependencies.security import require_birthday_admin_api_key
from bacenta_reminders.core.settings import settings
from bacenta_reminders.db.session import get_session
from bacenta_reminders.models.roster import Church
from bacenta_reminders.observability.birthdays import get_birthday_store
from bacenta_reminders.services.birthdays.factory import build_birthday_engine
from bacenta_reminders.services.birthdays.roster import load_church_roster
from bacenta_reminders.services.notifications.backend import EmailBackend, build_email_backend

router = APIRouter(
    prefix="/birthdays",
    tags=["Birthdays"],
    dependencies=[Depends(require_birthday_admin_api_key)],
)


def get_email_backend() -> EmailBackend:
    return build_email_backend(settings)


class BirthdayRunRequest(BaseModel):
    actor_id: str | None = Field(default=None, description="Admin triggering the run; attributed on in-app notifications")
    force: bool = Field(default=False, description="Re-deliver even when a reminder was already recorded")
    reference_date: date | None = Field(default=None, description="Day to evaluate; defaults to today")
    offsets: List[int] | None = Field(default=None, description="Override the church's configured offsets")


class MemberOutcomeResponse(BaseModel):
    member_id: str
    member_name: str
    days_until_birthday: int
    status: str
    reason: str | None = None
    error: str | None = None
    ledger_id: str | None = None


class BirthdayRunResponse(BaseModel):
    church_id: str
    reference_date: date
    forced: bool
    processed: int
    sent: int
    failed: int
    skipped: int
    errors: List[str]
    fatal: bool
    outcomes: List[MemberOutcomeResponse]


class BirthdayStatsResponse(BaseModel):
    church_id: str
    start: date
    end: date
    total: int
    sent: int
    failed: int
    pending: int
    unique_members: int


class BirthdayCleanupRequest(BaseModel):
    retention_days: int | None = Field(default=None, ge=0)


class BirthdayCleanupResponse(BaseModel):
    church_id: str
    retention_days: int
    deleted: int


class ChannelDetailsResponse(BaseModel):
    subject: str
    sent_at: str
    failure_reason: str | None = None
    provider_message_id: str | None = None


class LedgerEntryResponse(BaseModel):
    id: str | None
    member_id: str
    member_name: str | None = None
    notification_date: date
    days_until_birthday: int
    recipients: List[str]
    status: str
    forced: bool
    channel_details: ChannelDetailsResponse | None = None


async def _require_church(session: AsyncSession, church_id: str) -> Church:
    church = await session.get(Church, church_id)
    if church is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Church not found")
    return church


def _window(start: date | None, end: date | None) -> tuple[date, date]:
    end = end or date.today()
    start = start or end - timedelta(days=settings.birthday_stats_window_days)
    if start > end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end")
    return start, end


@router.post(
    "/churches/{church_id}/run",
    response_model=BirthdayRunResponse,
    status_code=status.HTTP_200_OK,
)
async def run_birthday_reminders(
    church_id: str,
    payload: BirthdayRunRequest,
    session: AsyncSession = Depends(get_session),
    email_backend: EmailBackend = Depends(get_email_backend),
) -> BirthdayRunResponse:
    """Manually trigger reminders for one church."""

    roster = await load_church_roster(session, church_id, default_offsets=settings.birthday_default_offsets)
    if roster is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Church not found")
    if not roster.birthday_notifications_enabled:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Birthday notifications are disabled for this church",
        )

    engine = build_birthday_engine(
        session,
        settings,
        email_backend=email_backend,
        email_enabled=roster.email_notifications_enabled,
    )
    report = await engine.run(
        church_id,
        roster.members,
        roster.users,
        roster.units,
        payload.offsets if payload.offsets is not None else roster.offsets,
        payload.reference_date,
        force=payload.force,
        actor_id=payload.actor_id,
    )
    get_birthday_store().record_run(report)
    logger.info(
        "Manual birthday reminder run",
        church_id=church_id,
        actor_id=payload.actor_id,
        forced=payload.force,
        **report.summary(),
    )
    if report.fatal:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=report.as_dict())
    return BirthdayRunResponse.model_validate(report.as_dict())


@router.get("/churches/{church_id}/stats", response_model=BirthdayStatsResponse)
async def get_birthday_stats(
    church_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> BirthdayStatsResponse:
    await _require_church(session, church_id)
    window_start, window_end = _window(start, end)
    engine = build_birthday_engine(session, settings, email_enabled=False)
    stats = await engine.get_stats(church_id, window_start, window_end)
    return BirthdayStatsResponse(church_id=church_id, start=window_start, end=window_end, **stats.as_dict())


@router.post("/churches/{church_id}/cleanup", response_model=BirthdayCleanupResponse)
async def cleanup_birthday_ledger(
    church_id: str,
    payload: BirthdayCleanupRequest,
    session: AsyncSession = Depends(get_session),
) -> BirthdayCleanupResponse:
    await _require_church(session, church_id)
    retention_days = (
        payload.retention_days if payload.retention_days is not None else settings.birthday_ledger_retention_days
    )
    engine = build_birthday_engine(session, settings, email_enabled=False)
    deleted = await engine.cleanup(
        church_id,
        retention_days=retention_days,
        batch_size=settings.birthday_cleanup_batch_size,
    )
    get_birthday_store().record_cleanup(church_id, deleted)
    return BirthdayCleanupResponse(church_id=church_id, retention_days=retention_days, deleted=deleted)


@router.get("/churches/{church_id}/ledger", response_model=List[LedgerEntryResponse])
async def list_birthday_ledger(
    church_id: str,
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> List[LedgerEntryResponse]:
    await _require_church(session, church_id)
    window_start, window_end = _window(start, end)
    engine = build_birthday_engine(session, settings, email_enabled=False)
    entries = await engine.list_ledger(church_id, window_start, window_end)
    return [LedgerEntryResponse.model_validate(entry.as_record()) for entry in entries]
