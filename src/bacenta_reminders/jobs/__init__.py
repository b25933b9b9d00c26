"""Recurring job entrypoints for birthday reminders."""

__all__ = ["birthdays"]
