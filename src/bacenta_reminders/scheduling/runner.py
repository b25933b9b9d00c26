"""Scheduler runtime for birthday reminder jobs."""

from __future__ import annotations

import asyncio
import inspect
import random
import time
from importlib import import_module
from pathlib import Path
from typing import Any, Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger
from zoneinfo import ZoneInfo

from bacenta_reminders.observability.scheduler import get_scheduler_store

from .config import JobDefinition, ScheduleConfig, load_job_definitions

SessionFactory = Callable[[], Awaitable[Any]] | Callable[[], Any]
JobCallable = Callable[..., Awaitable[Any]]


def resolve_task(task: str) -> JobCallable:
    """Import ``package.module.function`` and check it is a coroutine function."""

    module_name, _, attr = task.rpartition(".")
    if not module_name:
        raise ValueError(f"Invalid task path: {task}")
    func = getattr(import_module(module_name), attr, None)
    if func is None:
        raise AttributeError(f"Task {task} not found")
    if not inspect.iscoroutinefunction(func):
        raise TypeError(f"Task {task} must be an async function")
    return func


class BirthdayJobScheduler:
    """Register birthday jobs on an APScheduler cron and run them with retries."""

    def __init__(
        self,
        *,
        session_factory: SessionFactory,
        config_path: Path,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self._config_path = config_path
        self._sleep = sleep
        self._config: ScheduleConfig | None = None
        self._scheduler: AsyncIOScheduler | None = None
        self._observability = get_scheduler_store()

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    def start(self) -> None:
        config = load_job_definitions(self._config_path)
        timezone = ZoneInfo(config.timezone)
        scheduler = AsyncIOScheduler(timezone=timezone)

        for job in config.jobs:
            if not job.enabled:
                logger.info("Skipping disabled birthday job", job_id=job.id)
                continue
            func = resolve_task(job.task)
            scheduler.add_job(
                self.run_job,
                trigger=CronTrigger.from_crontab(job.cron, timezone=timezone),
                args=[job, func],
                id=job.id,
                replace_existing=True,
            )
            logger.info("Registered birthday job", job_id=job.id, task=job.task, cron=job.cron)

        scheduler.start()
        self._config = config
        self._scheduler = scheduler
        logger.info("Birthday job scheduler started", jobs=len(config.jobs))

    async def stop(self) -> None:
        if not self._scheduler:
            return
        result = self._scheduler.shutdown(wait=False)
        if inspect.isawaitable(result):
            await result
        self._scheduler = None
        logger.info("Birthday job scheduler stopped")

    async def run_job(self, job: JobDefinition, func: JobCallable | None = None) -> Any:
        """Run ``job`` once, retrying with exponential backoff and jitter.

        Returns the job result, or ``None`` once every attempt has failed.
        """

        func = func or resolve_task(job.task)
        policy = job.retry
        self._observability.record_started(job.id, job.task)
        started_at = time.perf_counter()

        for attempt in range(1, policy.max_attempts + 1):
            try:
                result = await func(session_factory=self._session_factory, **job.kwargs)
            except Exception as exc:
                error = str(exc)
                self._observability.record_attempt_failed(job.id, job.task, attempt=attempt, error=error)
                if attempt >= policy.max_attempts:
                    self._observability.record_finished(
                        job.id,
                        job.task,
                        success=False,
                        attempts=attempt,
                        runtime_seconds=time.perf_counter() - started_at,
                        error=error,
                    )
                    logger.exception("Scheduled job failed after retries", job_id=job.id, attempts=attempt)
                    return None
                delay = policy.delay_for(attempt)
                if policy.jitter_seconds:
                    delay += random.uniform(0, policy.jitter_seconds)
                self._observability.record_retry(job.id, job.task, delay_seconds=delay)
                logger.warning("Scheduled job retrying", job_id=job.id, attempt=attempt + 1, delay_seconds=delay)
                if delay:
                    await self._sleep(delay)
            else:
                runtime_seconds = time.perf_counter() - started_at
                self._observability.record_finished(
                    job.id,
                    job.task,
                    success=True,
                    attempts=attempt,
                    runtime_seconds=runtime_seconds,
                )
                logger.info(
                    "Scheduled job completed",
                    job_id=job.id,
                    attempts=attempt,
                    runtime_seconds=runtime_seconds,
                )
                return result
        return None

    def health(self) -> dict[str, object]:
        snapshot = self._observability.snapshot()
        job_metrics = snapshot["jobs"]
        jobs = [
            {
                "id": job.id,
                "task": job.task,
                "cron": job.cron,
                "enabled": job.enabled,
                "max_attempts": job.retry.max_attempts,
                "metrics": job_metrics.get(job.id),
            }
            for job in (self._config.jobs if self._config else [])
        ]
        return {
            "running": self.is_running,
            "configured_jobs": len(jobs),
            "totals": snapshot["totals"],
            "jobs": jobs,
        }


__all__ = ["BirthdayJobScheduler", "resolve_task"]
