"""Configuration loader for recurring birthday job schedules."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import tomllib


@dataclass(slots=True)
class RetryPolicy:
    max_attempts: int = 1
    base_backoff_seconds: float = 5.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 60.0
    jitter_seconds: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after failed ``attempt`` (1-based), without jitter."""

        delay = self.base_backoff_seconds * (self.backoff_multiplier ** (attempt - 1))
        if self.max_backoff_seconds:
            delay = min(delay, self.max_backoff_seconds)
        return max(delay, 0.0)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RetryPolicy":
        return cls(
            max_attempts=max(int(payload.get("max_attempts", 1) or 1), 1),
            base_backoff_seconds=max(float(payload.get("base_backoff_seconds", 5.0) or 0), 0.0),
            backoff_multiplier=max(float(payload.get("backoff_multiplier", 2.0) or 1), 1.0),
            max_backoff_seconds=max(float(payload.get("max_backoff_seconds", 60.0) or 0), 0.0),
            jitter_seconds=max(float(payload.get("jitter_seconds", 1.0) or 0), 0.0),
        )


@dataclass(slots=True)
class JobDefinition:
    """Describe a scheduled job."""

    id: str
    task: str
    cron: str
    kwargs: dict[str, Any] = field(default_factory=dict)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    enabled: bool = True
    description: str | None = None


@dataclass(slots=True)
class ScheduleConfig:
    """Root schedule configuration."""

    timezone: str
    jobs: list[JobDefinition]

    def get(self, job_id: str) -> JobDefinition | None:
        return next((job for job in self.jobs if job.id == job_id), None)


def _parse_job(key: str, payload: Mapping[str, Any]) -> JobDefinition | None:
    task = payload.get("task")
    cron = payload.get("cron")
    if not isinstance(task, str) or not isinstance(cron, str):
        return None
    kwargs = payload.get("kwargs", {})
    description = payload.get("description")
    return JobDefinition(
        id=str(payload.get("id") or key),
        task=task,
        cron=cron,
        kwargs=dict(kwargs) if isinstance(kwargs, dict) else {},
        retry=RetryPolicy.from_mapping(payload),
        enabled=bool(payload.get("enabled", True)),
        description=description if isinstance(description, str) else None,
    )


def load_job_definitions(config_path: Path) -> ScheduleConfig:
    """Load job definitions from a TOML schedule file; malformed entries are ignored."""

    if not config_path.exists():
        raise FileNotFoundError(f"Schedule config not found: {config_path}")

    data = tomllib.loads(config_path.read_text())
    jobs: list[JobDefinition] = []
    for key, payload in (data.get("jobs") or {}).items():
        if isinstance(payload, dict):
            job = _parse_job(key, payload)
            if job is not None:
                jobs.append(job)
    return ScheduleConfig(timezone=str(data.get("timezone", "UTC")), jobs=jobs)


__all__ = ["JobDefinition", "RetryPolicy", "ScheduleConfig", "load_job_definitions"]
