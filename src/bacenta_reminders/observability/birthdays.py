"""In-process aggregates of birthday reminder runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Mapping

from bacenta_reminders.services.birthdays.domain import RunReport


@dataclass
class ChurchReminderState:
    church_id: str
    runs: int = 0
    fatal_runs: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    cleaned_up: int = 0
    last_run_at: datetime | None = None
    last_summary: Dict[str, int] = field(default_factory=dict)
    last_stats: Dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "church_id": self.church_id,
            "runs": self.runs,
            "fatal_runs": self.fatal_runs,
            "sent": self.sent,
            "failed": self.failed,
            "skipped": self.skipped,
            "cleaned_up": self.cleaned_up,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_summary": dict(self.last_summary),
            "last_stats": dict(self.last_stats),
        }


class BirthdayReminderStore:
    """Tracks per-church reminder outcomes for diagnostics."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._churches: Dict[str, ChurchReminderState] = {}

    def reset(self) -> None:
        with self._lock:
            self._churches.clear()

    def _state(self, church_id: str) -> ChurchReminderState:
        return self._churches.setdefault(church_id, ChurchReminderState(church_id=church_id))

    def record_run(self, report: RunReport) -> None:
        with self._lock:
            state = self._state(report.church_id)
            state.runs += 1
            state.fatal_runs += int(report.fatal)
            state.sent += report.sent
            state.failed += report.failed
            state.skipped += report.skipped
            state.last_run_at = datetime.now(timezone.utc)
            state.last_summary = report.summary()

    def record_stats(self, church_id: str, stats: Mapping[str, int]) -> None:
        with self._lock:
            self._state(church_id).last_stats = dict(stats)

    def record_cleanup(self, church_id: str, deleted: int) -> None:
        with self._lock:
            self._state(church_id).cleaned_up += deleted

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            churches = {church_id: state.as_dict() for church_id, state in self._churches.items()}
        return {
            "totals": {
                "runs": sum(item["runs"] for item in churches.values()),
                "sent": sum(item["sent"] for item in churches.values()),
                "failed": sum(item["failed"] for item in churches.values()),
                "skipped": sum(item["skipped"] for item in churches.values()),
            },
            "churches": churches,
        }


_BIRTHDAY_STORE = BirthdayReminderStore()


def get_birthday_store() -> BirthdayReminderStore:
    return _BIRTHDAY_STORE


__all__ = ["BirthdayReminderStore", "ChurchReminderState", "get_birthday_store"]
