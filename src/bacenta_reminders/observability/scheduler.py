"""In-process metrics for the birthday job scheduler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class JobRunState:
    job_id: str
    task: str
    runs: int = 0
    successes: int = 0
    run_failures: int = 0
    attempt_failures: int = 0
    retries: int = 0
    consecutive_failures: int = 0
    runtime_seconds: float = 0.0
    last_started_at: datetime | None = None
    last_finished_at: datetime | None = None
    last_success_at: datetime | None = None
    last_error: str | None = None
    last_attempts: int = 0
    last_retry_delay_seconds: float | None = None

    def as_dict(self) -> Dict[str, object]:
        return {
            "job_id": self.job_id,
            "task": self.task,
            "totals": {
                "runs": self.runs,
                "success": self.successes,
                "run_failures": self.run_failures,
                "attempt_failures": self.attempt_failures,
                "retries": self.retries,
                "consecutive_failures": self.consecutive_failures,
            },
            "runtime_seconds": self.runtime_seconds,
            "last_started_at": _iso(self.last_started_at),
            "last_finished_at": _iso(self.last_finished_at),
            "last_success_at": _iso(self.last_success_at),
            "last_error": self.last_error,
            "last_attempts": self.last_attempts,
            "last_retry_delay_seconds": self.last_retry_delay_seconds,
        }


class SchedulerObservabilityStore:
    """Thread-safe counters for scheduled job runs, attempts and retries."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._jobs: Dict[str, JobRunState] = {}

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()

    def _state(self, job_id: str, task: str) -> JobRunState:
        state = self._jobs.setdefault(job_id, JobRunState(job_id=job_id, task=task))
        state.task = task
        return state

    def record_started(self, job_id: str, task: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.runs += 1
            state.last_started_at = _utcnow()
            state.last_attempts = 0
            state.last_retry_delay_seconds = None

    def record_attempt_failed(self, job_id: str, task: str, *, attempt: int, error: str) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.attempt_failures += 1
            state.last_attempts = attempt
            state.last_error = error

    def record_retry(self, job_id: str, task: str, *, delay_seconds: float) -> None:
        with self._lock:
            state = self._state(job_id, task)
            state.retries += 1
            state.last_retry_delay_seconds = delay_seconds

    def record_finished(
        self,
        job_id: str,
        task: str,
        *,
        success: bool,
        attempts: int,
        runtime_seconds: float,
        error: str | None = None,
    ) -> None:
        with self._lock:
            state = self._state(job_id, task)
            now = _utcnow()
            state.last_finished_at = now
            state.last_attempts = attempts
            state.runtime_seconds += runtime_seconds
            if success:
                state.successes += 1
                state.consecutive_failures = 0
                state.last_success_at = now
                state.last_error = None
            else:
                state.run_failures += 1
                state.consecutive_failures += 1
                state.last_error = error

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            jobs = {job_id: state.as_dict() for job_id, state in self._jobs.items()}
            totals = {
                "runs": sum(state.runs for state in self._jobs.values()),
                "success": sum(state.successes for state in self._jobs.values()),
                "run_failures": sum(state.run_failures for state in self._jobs.values()),
                "retries": sum(state.retries for state in self._jobs.values()),
            }
        return {"totals": totals, "jobs": jobs}


_SCHEDULER_STORE = SchedulerObservabilityStore()


def get_scheduler_store() -> SchedulerObservabilityStore:
    return _SCHEDULER_STORE


__all__ = ["JobRunState", "SchedulerObservabilityStore", "get_scheduler_store"]
