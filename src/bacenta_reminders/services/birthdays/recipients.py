"""Resolve who is told about a member's upcoming birthday."""

from __future__ import annotations

from typing import Dict, Iterable, Sequence

from loguru import logger

from bacenta_reminders.models.roster import ChurchUserRoleEnum

from .domain import MemberRecord, Recipient, RecipientRelationship, UnitRecord, UserRecord


def _is_eligible(user: UserRecord) -> bool:
    return user.is_active and user.birthday_notifications_enabled


def _leader_relationship(user: UserRecord) -> RecipientRelationship:
    if user.role == ChurchUserRoleEnum.SUB_LEADER:
        return RecipientRelationship.SUB_LEADER
    return RecipientRelationship.UNIT_LEADER


def _unit_leaders(unit: UnitRecord, users: Sequence[UserRecord], users_by_id: Dict[str, UserRecord]) -> list[UserRecord]:
    leaders: list[UserRecord] = []
    seen: set[str] = set()
    for leader_id in unit.leader_ids:
        user = users_by_id.get(leader_id)
        if user is not None and user.id not in seen:
            leaders.append(user)
            seen.add(user.id)
    for user in users:
        if unit.id in user.unit_ids and user.id not in seen:
            leaders.append(user)
            seen.add(user.id)
    return leaders


def resolve_recipients(
    member: MemberRecord,
    users: Sequence[UserRecord],
    units: Iterable[UnitRecord],
    *,
    actor_id: str | None = None,
) -> list[Recipient]:
    """Deduplicated recipients for ``member``; empty when nobody qualifies.

    Leaders of the member's unit, their supervisors and every admin form the
    default set. Users assigned to the member's unit are reached even when
    ``units`` holds no record for it. A manual run by ``actor_id`` also includes
    the actor, tagged ``acting_admin`` only when they are an admin, and the
    leaders the actor invited. When a user qualifies more than once, the last
    relationship wins while the first position is kept.
    """

    users_by_id = {user.id: user for user in users}
    units_by_id = {unit.id: unit for unit in units}
    resolved: Dict[str, Recipient] = {}

    def add(user: UserRecord, relationship: RecipientRelationship, *, always: bool = False) -> None:
        if not always and not _is_eligible(user):
            logger.debug(
                "Excluding birthday recipient",
                user_id=user.id,
                member_id=member.id,
                relationship=relationship.value,
            )
            return
        resolved[user.id] = Recipient(
            user_id=user.id,
            email=(user.email or None) if user.email_notifications_enabled else None,
            display_name=user.name,
            role=user.role,
            relationship=relationship,
        )

    leaders: list[UserRecord] = []
    if member.unit_id:
        unit = units_by_id.get(member.unit_id) or UnitRecord(id=member.unit_id, name="")
        leaders = _unit_leaders(unit, users, users_by_id)
    for leader in leaders:
        add(leader, _leader_relationship(leader))
    for leader in leaders:
        supervisor = users_by_id.get(leader.supervisor_id) if leader.supervisor_id else None
        if supervisor is not None:
            add(supervisor, RecipientRelationship.SUPERVISOR)
    for user in users:
        if user.role == ChurchUserRoleEnum.ADMIN:
            add(user, RecipientRelationship.ADMIN)

    if actor_id:
        actor = users_by_id.get(actor_id)
        if actor is not None:
            relationship = (
                RecipientRelationship.ACTING_ADMIN
                if actor.role == ChurchUserRoleEnum.ADMIN
                else _leader_relationship(actor)
            )
            add(actor, relationship, always=True)
        for user in users:
            if user.invited_by_admin_id == actor_id and user.id != actor_id:
                add(user, RecipientRelationship.LINKED_LEADER)

    return list(resolved.values())


__all__ = ["resolve_recipients"]
