from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from bacenta_reminders.api.v1.endpoints.birthdays import get_email_backend
from bacenta_reminders.core.settings import settings
from bacenta_reminders.models.notification import BirthdayNotification, NotificationStatusEnum
from bacenta_reminders.services.notifications.backend import InMemoryEmailBackend

from birthday_fixtures import CHURCH_ID, seed_church

RUN_URL = f"/api/v1/birthdays/churches/{CHURCH_ID}/run"


@pytest.fixture
def email_backend(app_with_db, monkeypatch):
    app, _ = app_with_db
    backend = InMemoryEmailBackend()
    app.dependency_overrides[get_email_backend] = lambda: backend
    monkeypatch.setattr(settings, "birthday_email_pacing_seconds", 0)
    return backend


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_manual_run_sends_reminders(app_with_db, email_backend) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory)

    async with _client(app) as client:
        response = await client.post(
            RUN_URL,
            json={"reference_date": "2025-07-03", "actor_id": f"{CHURCH_ID}-admin"},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["processed"] == 1
    assert payload["sent"] == 1
    assert payload["fatal"] is False
    assert payload["outcomes"][0]["member_name"] == "Ama Mensah"
    assert payload["outcomes"][0]["status"] == "sent"
    assert len(email_backend.sent_messages) == 2


@pytest.mark.asyncio
async def test_manual_run_twice_skips_then_force_resends(app_with_db, email_backend) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory)

    async with _client(app) as client:
        await client.post(RUN_URL, json={"reference_date": "2025-07-03"})
        repeat = await client.post(RUN_URL, json={"reference_date": "2025-07-03"})
        forced = await client.post(RUN_URL, json={"reference_date": "2025-07-03", "force": True})

    assert repeat.json()["skipped"] == 1
    assert forced.json()["sent"] == 1
    assert forced.json()["forced"] is True

    async with session_factory() as session:
        rows = (await session.execute(select(BirthdayNotification))).scalars().all()
    assert sorted(row.forced for row in rows) == [False, True]


@pytest.mark.asyncio
async def test_manual_run_unknown_church_returns_404(app_with_db, email_backend) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        response = await client.post("/api/v1/birthdays/churches/missing/run", json={})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_manual_run_disabled_church_returns_409(app_with_db, email_backend) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory, birthday_notifications_enabled=False)

    async with _client(app) as client:
        response = await client.post(RUN_URL, json={})

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_endpoints_require_api_key_when_configured(app_with_db, email_backend, monkeypatch) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory)
    monkeypatch.setattr(settings, "birthday_admin_api_key", "secret")

    async with _client(app) as client:
        missing = await client.post(RUN_URL, json={"reference_date": "2025-07-03"})
        wrong = await client.get(
            f"/api/v1/birthdays/churches/{CHURCH_ID}/stats",
            headers={"X-API-Key": "nope"},
        )
        allowed = await client.post(
            RUN_URL,
            json={"reference_date": "2025-07-03"},
            headers={"X-API-Key": "secret"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert allowed.status_code == 200


@pytest.mark.asyncio
async def test_stats_and_ledger_reflect_runs(app_with_db, email_backend) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory)
    window = {"start": "2025-06-01", "end": "2025-07-31"}

    async with _client(app) as client:
        await client.post(RUN_URL, json={"reference_date": "2025-07-03"})
        stats = await client.get(f"/api/v1/birthdays/churches/{CHURCH_ID}/stats", params=window)
        ledger = await client.get(f"/api/v1/birthdays/churches/{CHURCH_ID}/ledger", params=window)
        inverted = await client.get(
            f"/api/v1/birthdays/churches/{CHURCH_ID}/stats",
            params={"start": "2025-07-31", "end": "2025-06-01"},
        )

    assert stats.status_code == 200
    assert stats.json()["total"] == 1
    assert stats.json()["sent"] == 1
    assert stats.json()["unique_members"] == 1

    entries = ledger.json()
    assert len(entries) == 1
    assert entries[0]["status"] == "sent"
    assert entries[0]["days_until_birthday"] == 7
    assert entries[0]["recipients"] == [f"{CHURCH_ID}-leader", f"{CHURCH_ID}-admin"]
    assert entries[0]["channel_details"]["subject"] == "🎈 Upcoming Birthday - Ama Mensah (7 days)"

    assert inverted.status_code == 400


@pytest.mark.asyncio
async def test_cleanup_endpoint_deletes_old_entries(app_with_db, email_backend) -> None:
    app, session_factory = app_with_db
    await seed_church(session_factory)
    async with session_factory() as session:
        session.add(
            BirthdayNotification(
                church_id=CHURCH_ID,
                member_id="old",
                notification_date=date.today() - timedelta(days=45),
                days_until_birthday=1,
                recipient_ids=[],
                status=NotificationStatusEnum.FAILED,
            )
        )
        await session.commit()

    async with _client(app) as client:
        kept = await client.post(f"/api/v1/birthdays/churches/{CHURCH_ID}/cleanup", json={})
        purged = await client.post(f"/api/v1/birthdays/churches/{CHURCH_ID}/cleanup", json={"retention_days": 30})
        invalid = await client.post(f"/api/v1/birthdays/churches/{CHURCH_ID}/cleanup", json={"retention_days": -1})

    assert kept.json() == {"church_id": CHURCH_ID, "retention_days": 90, "deleted": 0}
    assert purged.json()["deleted"] == 1
    assert invalid.status_code == 422
