"""Errors raised by the birthday reminder engine."""

from __future__ import annotations


class BirthdayReminderError(Exception):
    """Base class for birthday reminder failures."""


class InvalidBirthdayError(BirthdayReminderError, ValueError):
    """Raised when a birthday string or month/day pair cannot be parsed."""


class LedgerUnavailableError(BirthdayReminderError):
    """The ledger store could not be read or written."""


class LedgerTransitionError(BirthdayReminderError):
    """A ledger entry was asked to leave a terminal state or does not exist."""


class BatchDeadlineExceeded(BirthdayReminderError):
    """An email batch did not finish before its deadline."""

    def __init__(self, timeout_seconds: float, completed: int, total: int) -> None:
        super().__init__(f"timeout after {timeout_seconds:g}s ({completed}/{total} sent)")
        self.timeout_seconds = timeout_seconds
        self.completed = completed
        self.total = total


__all__ = [
    "BatchDeadlineExceeded",
    "BirthdayReminderError",
    "InvalidBirthdayError",
    "LedgerTransitionError",
    "LedgerUnavailableError",
]
