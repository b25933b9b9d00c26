from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from loguru import logger

from bacenta_reminders.core.settings import settings
from bacenta_reminders.db.session import async_session
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .scheduling import BirthdayJobScheduler


APP_VERSION = "0.1.0"
SERVICE_NAME = "bacenta-reminders"


def _session_factory():
    return async_session()


def resolve_schedule_path(raw_path: str) -> Path:
    schedule_path = Path(raw_path)
    if not schedule_path.is_absolute():
        schedule_path = Path(__file__).resolve().parent.parent.parent / schedule_path
    return schedule_path


@asynccontextmanager
async def lifespan(app: FastAPI):
    schedule_path = resolve_schedule_path(settings.birthday_job_schedule_path)
    job_scheduler = BirthdayJobScheduler(
        session_factory=_session_factory,
        config_path=schedule_path,
    )
    app.state.birthday_job_scheduler = job_scheduler

    scheduler_enabled = settings.birthday_scheduler_enabled
    if scheduler_enabled:
        try:
            job_scheduler.start()
        except FileNotFoundError as exc:
            logger.exception("Birthday job scheduler failed to start", error=str(exc))
        else:
            logger.info("Birthday job scheduler enabled", schedule_path=str(schedule_path))
    else:
        logger.info(
            "Birthday job scheduler disabled",
            reason="birthday_scheduler_enabled is false",
        )

    try:
        yield
    finally:
        if job_scheduler.is_running:
            await job_scheduler.stop()


def create_app() -> FastAPI:
    """Application factory for the birthday reminder service."""
    configure_logging(
        service_name=SERVICE_NAME,
        environment=settings.environment,
        version=APP_VERSION,
    )

    app = FastAPI(
        title="Bacenta Reminders API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name=SERVICE_NAME,
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
