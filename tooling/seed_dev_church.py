"""Seed a development church roster so birthday reminders have data to work on."""

from __future__ import annotations

import asyncio
from datetime import date, timedelta
import os

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from bacenta_reminders.core.settings import settings
from bacenta_reminders.db.base import Base
from bacenta_reminders.models import Bacenta, Church, ChurchUser, Member

DEV_CHURCH_ID = os.getenv("DEV_CHURCH_ID", "dev-church")
DEV_ADMIN_EMAIL = os.getenv("DEV_ADMIN_EMAIL", "admin@bacenta.dev").lower()


def _birthday_in(days: int, *, year: int = 1990) -> str:
    upcoming = date.today() + timedelta(days=days)
    return f"{year:04d}-{upcoming.month:02d}-{upcoming.day:02d}"


async def seed_church(session: AsyncSession) -> None:
    # merge() keeps the seed idempotent across runs
    await session.merge(Church(id=DEV_CHURCH_ID, name="Development Church", notification_offsets=[7, 3, 1, 0]))
    await session.merge(
        ChurchUser(
            id="dev-admin",
            church_id=DEV_CHURCH_ID,
            email=DEV_ADMIN_EMAIL,
            display_name="Admin QA",
            role="admin",
            bacenta_ids=[],
        )
    )
    await session.merge(
        ChurchUser(
            id="dev-leader",
            church_id=DEV_CHURCH_ID,
            email="leader@bacenta.dev",
            display_name="Leader QA",
            role="unit_leader",
            bacenta_ids=["dev-bacenta"],
            invited_by_admin_id="dev-admin",
        )
    )
    await session.merge(Bacenta(id="dev-bacenta", church_id=DEV_CHURCH_ID, name="Central", leader_ids=["dev-leader"]))
    for index, days in enumerate((0, 1, 3, 7)):
        await session.merge(
            Member(
                id=f"dev-member-{index}",
                church_id=DEV_CHURCH_ID,
                first_name=f"Member{index}",
                last_name="QA",
                birthday=_birthday_in(days),
                bacenta_id="dev-bacenta",
            )
        )
    await session.commit()


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        async with session_factory() as session:
            await seed_church(session)
        print("Development church roster ready ✅")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
