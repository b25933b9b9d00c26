from __future__ import annotations

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.core.settings import settings
from bacenta_reminders.db.session import get_session
from bacenta_reminders.observability.birthdays import get_birthday_store
from bacenta_reminders.observability.scheduler import get_scheduler_store

router = APIRouter()

ComponentState = Literal["ready", "starting", "disabled", "error", "degraded"]


class ComponentStatus(BaseModel):
    status: ComponentState
    detail: str | None = Field(default=None, description="Human readable status detail")
    metrics: Dict[str, Any] | None = Field(default=None, description="Component counters, when tracked")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok"}


async def _database_component(session: AsyncSession) -> ComponentStatus:
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Readiness database probe failed", error=str(exc))
        return ComponentStatus(status="error", detail=f"Database unreachable ({exc})")
    return ComponentStatus(status="ready")


def _scheduler_component(request: Request) -> ComponentStatus:
    scheduler = getattr(request.app.state, "birthday_job_scheduler", None)
    if not settings.birthday_scheduler_enabled or scheduler is None:
        return ComponentStatus(status="disabled", detail="Birthday scheduler disabled via settings")

    snapshot = get_scheduler_store().snapshot()
    failing = [
        job_id
        for job_id, job in snapshot["jobs"].items()
        if job["totals"]["consecutive_failures"] > 0
    ]
    if failing:
        return ComponentStatus(status="error", detail=f"Jobs failing: {', '.join(failing)}", metrics=snapshot["totals"])
    if not scheduler.is_running:
        return ComponentStatus(status="starting", detail="Birthday scheduler not running", metrics=snapshot["totals"])
    return ComponentStatus(status="ready", metrics=snapshot["totals"])


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(
    request: Request,
    session: AsyncSession = Depends(get_session),
) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {
        "database": await _database_component(session),
        "birthday_scheduler": _scheduler_component(request),
        "birthday_reminders": ComponentStatus(status="ready", metrics=get_birthday_store().snapshot()["totals"]),
    }

    status: Literal["ready", "degraded", "error"] = "ready"
    if any(component.status == "error" for component in components.values()):
        status = "error"
    elif any(component.status in ("starting", "degraded") for component in components.values()):
        status = "degraded"
    return ReadinessPayload(status=status, components=components)
