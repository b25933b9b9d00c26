"""Load church rosters from the database into engine records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.models.roster import Bacenta, Church, ChurchUser, ChurchUserRoleEnum, Member

from .domain import Birthday, MemberRecord, UnitRecord, UserRecord
from .exceptions import InvalidBirthdayError
from .scanner import normalize_offsets


@dataclass(slots=True)
class ChurchRoster:
    church_id: str
    name: str
    birthday_notifications_enabled: bool
    email_notifications_enabled: bool
    offsets: tuple[int, ...]
    members: List[MemberRecord] = field(default_factory=list)
    users: List[UserRecord] = field(default_factory=list)
    units: List[UnitRecord] = field(default_factory=list)

    @property
    def has_birthdays(self) -> bool:
        return any(member.birthday is not None for member in self.members)


def _member_record(row: Member) -> MemberRecord:
    try:
        birthday = Birthday.parse(row.birthday)
    except InvalidBirthdayError as exc:
        logger.warning("Ignoring unparseable member birthday", member_id=row.id, error=str(exc))
        birthday = None
    return MemberRecord(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        birthday=birthday,
        unit_id=row.bacenta_id,
        role=row.role or "Member",
        phone_number=row.phone_number,
    )


def _user_record(row: ChurchUser) -> UserRecord:
    try:
        role = ChurchUserRoleEnum(row.role)
    except ValueError:
        role = ChurchUserRoleEnum.UNIT_LEADER
    return UserRecord(
        id=row.id,
        role=role,
        email=row.email,
        display_name=row.display_name,
        unit_ids=tuple(row.bacenta_ids or ()),
        supervisor_id=row.supervisor_id,
        invited_by_admin_id=row.invited_by_admin_id,
        is_active=bool(row.is_active),
        birthday_notifications_enabled=bool(row.birthday_notifications_enabled),
        email_notifications_enabled=bool(row.email_notifications_enabled),
    )


async def list_church_ids(session: AsyncSession) -> list[str]:
    result = await session.execute(select(Church.id).order_by(Church.id))
    return list(result.scalars().all())


async def load_church_roster(
    session: AsyncSession,
    church_id: str,
    *,
    default_offsets: Sequence[int] = (7, 3, 1, 0),
) -> ChurchRoster | None:
    """Roster for ``church_id`` or ``None`` when the church does not exist."""

    church = await session.get(Church, church_id)
    if church is None:
        return None

    members = (
        await session.execute(select(Member).where(Member.church_id == church_id).order_by(Member.created_at, Member.id))
    ).scalars().all()
    users = (
        await session.execute(
            select(ChurchUser).where(ChurchUser.church_id == church_id).order_by(ChurchUser.created_at, ChurchUser.id)
        )
    ).scalars().all()
    units = (
        await session.execute(select(Bacenta).where(Bacenta.church_id == church_id).order_by(Bacenta.id))
    ).scalars().all()

    offsets = church.notification_offsets if church.notification_offsets else default_offsets
    return ChurchRoster(
        church_id=church.id,
        name=church.name,
        birthday_notifications_enabled=bool(church.birthday_notifications_enabled),
        email_notifications_enabled=bool(church.email_notifications_enabled),
        offsets=normalize_offsets(offsets),
        members=[_member_record(row) for row in members],
        users=[_user_record(row) for row in users],
        units=[UnitRecord(id=row.id, name=row.name, leader_ids=tuple(row.leader_ids or ())) for row in units],
    )


__all__ = ["ChurchRoster", "list_church_ids", "load_church_roster"]
