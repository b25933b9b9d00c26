from pathlib import Path

import pytest

from bacenta_reminders.observability.scheduler import get_scheduler_store
from bacenta_reminders.scheduling.config import JobDefinition, RetryPolicy, ScheduleConfig, load_job_definitions
from bacenta_reminders.scheduling.runner import BirthdayJobScheduler, resolve_task

REPO_ROOT = Path(__file__).resolve().parents[1]

NO_BACKOFF = RetryPolicy(
    max_attempts=3,
    base_backoff_seconds=0.0,
    backoff_multiplier=1.0,
    max_backoff_seconds=0.0,
    jitter_seconds=0.0,
)


def _scheduler(tmp_path: Path) -> BirthdayJobScheduler:
    return BirthdayJobScheduler(session_factory=lambda: None, config_path=tmp_path / "noop.toml")


@pytest.mark.asyncio
async def test_scheduler_retries_and_records_metrics(tmp_path: Path) -> None:
    scheduler = _scheduler(tmp_path)
    attempts = 0

    async def flaky_job(*, session_factory, window_days) -> dict:
        nonlocal attempts
        attempts += 1
        if attempts < 2:
            raise RuntimeError("boom")
        return {"window_days": window_days}

    job = JobDefinition(id="job-alpha", task="tests.flaky", cron="* * * * *", kwargs={"window_days": 7}, retry=NO_BACKOFF)

    result = await scheduler.run_job(job, flaky_job)

    assert result == {"window_days": 7}
    assert attempts == 2
    snapshot = get_scheduler_store().snapshot()
    assert snapshot["totals"] == {"runs": 1, "success": 1, "run_failures": 0, "retries": 1}
    job_snapshot = snapshot["jobs"][job.id]
    assert job_snapshot["totals"]["attempt_failures"] == 1
    assert job_snapshot["last_success_at"] is not None
    assert job_snapshot["last_error"] is None


@pytest.mark.asyncio
async def test_scheduler_records_final_failure(tmp_path: Path) -> None:
    scheduler = _scheduler(tmp_path)

    async def failing_job(*, session_factory) -> None:
        raise RuntimeError("boom")

    job = JobDefinition(
        id="job-failure",
        task="tests.failing",
        cron="* * * * *",
        retry=RetryPolicy(max_attempts=2, base_backoff_seconds=0.0, jitter_seconds=0.0),
    )

    assert await scheduler.run_job(job, failing_job) is None

    snapshot = get_scheduler_store().snapshot()
    assert snapshot["totals"]["run_failures"] == 1
    job_snapshot = snapshot["jobs"][job.id]
    assert job_snapshot["totals"]["attempt_failures"] == 2
    assert job_snapshot["totals"]["consecutive_failures"] == 1
    assert job_snapshot["last_error"] == "boom"


@pytest.mark.asyncio
async def test_scheduler_sleeps_with_exponential_backoff(tmp_path: Path) -> None:
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    scheduler = BirthdayJobScheduler(session_factory=lambda: None, config_path=tmp_path / "noop.toml", sleep=fake_sleep)

    async def failing_job(*, session_factory) -> None:
        raise RuntimeError("down")

    job = JobDefinition(
        id="job-backoff",
        task="tests.failing",
        cron="* * * * *",
        retry=RetryPolicy(
            max_attempts=4,
            base_backoff_seconds=5.0,
            backoff_multiplier=2.0,
            max_backoff_seconds=15.0,
            jitter_seconds=0.0,
        ),
    )

    await scheduler.run_job(job, failing_job)

    assert delays == [5.0, 10.0, 15.0]


@pytest.mark.asyncio
async def test_scheduler_tracks_consecutive_failures_and_resets(tmp_path: Path) -> None:
    scheduler = _scheduler(tmp_path)
    run_count = 0

    async def sometimes_failing_job(*, session_factory) -> None:
        nonlocal run_count
        run_count += 1
        if run_count < 3:
            raise RuntimeError("boom")

    job = JobDefinition(
        id="job-consecutive",
        task="tests.sometimes_failing",
        cron="* * * * *",
        retry=RetryPolicy(max_attempts=1, jitter_seconds=0.0),
    )

    await scheduler.run_job(job, sometimes_failing_job)
    await scheduler.run_job(job, sometimes_failing_job)

    job_snapshot = get_scheduler_store().snapshot()["jobs"][job.id]
    assert job_snapshot["totals"]["consecutive_failures"] == 2
    assert job_snapshot["last_success_at"] is None

    await scheduler.run_job(job, sometimes_failing_job)

    snapshot = get_scheduler_store().snapshot()
    job_snapshot = snapshot["jobs"][job.id]
    assert snapshot["totals"]["runs"] == 3
    assert snapshot["totals"]["success"] == 1
    assert job_snapshot["totals"]["consecutive_failures"] == 0
    assert job_snapshot["last_error"] is None


@pytest.mark.asyncio
async def test_scheduler_health_snapshot(tmp_path: Path) -> None:
    scheduler = _scheduler(tmp_path)

    async def successful_job(*, session_factory) -> None:
        return None

    job = JobDefinition(id="job-health", task="tests.success", cron="* * * * *", retry=RetryPolicy(jitter_seconds=0.0))
    await scheduler.run_job(job, successful_job)
    scheduler._config = ScheduleConfig(timezone="UTC", jobs=[job])

    health = scheduler.health()
    assert health["running"] is False
    assert health["configured_jobs"] == 1
    assert health["totals"]["runs"] == 1
    assert health["jobs"][0]["metrics"]["totals"]["runs"] == 1


def test_start_requires_schedule_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        _scheduler(tmp_path).start()


def test_load_job_definitions_parses_retry_fields(tmp_path: Path) -> None:
    config_path = tmp_path / "schedules.toml"
    config_path.write_text(
        """
        timezone = "Africa/Accra"

        [jobs.sample]
        task = "module.task"
        cron = "*/5 * * * *"
        max_attempts = 5
        base_backoff_seconds = 2
        backoff_multiplier = 3
        max_backoff_seconds = 30
        jitter_seconds = 1.5

        [jobs.sample.kwargs]
        church_id = "church-1"

        [jobs.broken]
        cron = "* * * * *"
        """
    )

    config = load_job_definitions(config_path)
    assert config.timezone == "Africa/Accra"
    assert [job.id for job in config.jobs] == ["sample"]
    job = config.get("sample")
    assert job.kwargs == {"church_id": "church-1"}
    assert job.retry.max_attempts == 5
    assert job.retry.base_backoff_seconds == 2.0
    assert job.retry.backoff_multiplier == 3.0
    assert job.retry.max_backoff_seconds == 30.0
    assert job.retry.jitter_seconds == 1.5
    assert job.retry.delay_for(3) == 18.0


def test_shipped_schedule_resolves_every_task() -> None:
    config = load_job_definitions(REPO_ROOT / "config" / "schedules.toml")

    assert {job.id for job in config.jobs} == {
        "birthday_reminders",
        "birthday_notification_stats",
        "birthday_ledger_cleanup",
    }
    for job in config.jobs:
        assert callable(resolve_task(job.task))
    assert config.get("birthday_reminders").cron == "0 9 * * *"
    assert config.get("birthday_ledger_cleanup").kwargs == {"retention_days": 90, "batch_size": 100}


def test_resolve_task_rejects_sync_callables() -> None:
    with pytest.raises(TypeError):
        resolve_task("bacenta_reminders.scheduling.config.load_job_definitions")
    with pytest.raises(ValueError):
        resolve_task("no_module_path")
