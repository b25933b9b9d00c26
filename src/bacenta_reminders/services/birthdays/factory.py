"""Wire a database-backed engine from application settings."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from bacenta_reminders.core.settings import Settings
from bacenta_reminders.services.notifications.backend import EmailBackend, InMemoryEmailBackend, build_email_backend
from bacenta_reminders.services.notifications.in_app import SqlAlchemyInAppNotifier

from .engine import BirthdayReminderEngine
from .ledger import SqlAlchemyLedgerStore


def build_birthday_engine(
    session: AsyncSession,
    app_settings: Settings,
    *,
    email_backend: EmailBackend | None = None,
    email_enabled: bool = True,
) -> BirthdayReminderEngine:
    if email_backend is None:
        email_backend = build_email_backend(app_settings) if email_enabled else InMemoryEmailBackend()
    return BirthdayReminderEngine(
        ledger=SqlAlchemyLedgerStore(session),
        email_backend=email_backend,
        in_app_notifier=SqlAlchemyInAppNotifier(session),
        email_enabled=app_settings.birthday_email_enabled and email_enabled,
        batch_timeout_seconds=app_settings.birthday_email_batch_timeout_seconds,
        pacing_seconds=app_settings.birthday_email_pacing_seconds,
    )


__all__ = ["build_birthday_engine"]
