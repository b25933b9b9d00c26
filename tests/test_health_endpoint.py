import pytest
from httpx import ASGITransport, AsyncClient


@pytest.mark.asyncio
async def test_readyz_reports_component_statuses(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/api/v1/readyz")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] in {"ready", "degraded", "error"}
    components = payload["components"]
    assert components["database"]["status"] == "ready"
    assert components["birthday_scheduler"]["status"] == "disabled"
    assert components["birthday_reminders"]["metrics"] == {"runs": 0, "sent": 0, "failed": 0, "skipped": 0}


@pytest.mark.asyncio
async def test_healthz_reports_environment(app_with_db) -> None:
    app, _ = app_with_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        root = await client.get("/healthz")
        versioned = await client.get("/api/v1/healthz")

    assert root.status_code == 200
    assert root.json()["status"] == "ok"
    assert "version" in root.json()
    assert versioned.json() == {"status": "ok"}
