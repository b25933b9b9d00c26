"""In-app (bell) notification sinks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.models.notification import InAppNotification


class Attribution(Protocol):
    user_id: str
    display_name: str


class InAppNotifier(Protocol):
    """Creates one in-app notification per recipient."""

    async def create_for_recipients(
        self,
        church_id: str,
        recipient_ids: Sequence[str],
        *,
        kind: str,
        description: str,
        payload: Mapping[str, Any],
        attribution: Attribution,
    ) -> int:
        ...


class SqlAlchemyInAppNotifier:
    """Persists notifications into ``in_app_notifications``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_for_recipients(
        self,
        church_id: str,
        recipient_ids: Sequence[str],
        *,
        kind: str,
        description: str,
        payload: Mapping[str, Any],
        attribution: Attribution,
    ) -> int:
        if not recipient_ids:
            return 0
        rows = [
            InAppNotification(
                church_id=church_id,
                recipient_user_id=recipient_id,
                kind=kind,
                description=description,
                payload=dict(payload),
                actor_id=attribution.user_id,
                actor_name=attribution.display_name,
            )
            for recipient_id in recipient_ids
        ]
        self._session.add_all(rows)
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return len(rows)


@dataclass
class InMemoryInAppNotifier:
    """Collects notifications for inspection in tests."""

    notifications: list[dict[str, Any]] = field(default_factory=list)
    fail_for: set[str] = field(default_factory=set)

    async def create_for_recipients(
        self,
        church_id: str,
        recipient_ids: Sequence[str],
        *,
        kind: str,
        description: str,
        payload: Mapping[str, Any],
        attribution: Attribution,
    ) -> int:
        failing = self.fail_for.intersection(recipient_ids)
        if failing:
            raise RuntimeError(f"in-app sink rejected {sorted(failing)}")
        created_at = datetime.now(timezone.utc)
        for recipient_id in recipient_ids:
            self.notifications.append(
                {
                    "church_id": church_id,
                    "recipient_user_id": recipient_id,
                    "kind": kind,
                    "description": description,
                    "payload": dict(payload),
                    "actor_id": attribution.user_id,
                    "actor_name": attribution.display_name,
                    "created_at": created_at,
                }
            )
        return len(recipient_ids)


__all__ = ["Attribution", "InAppNotifier", "InMemoryInAppNotifier", "SqlAlchemyInAppNotifier"]
