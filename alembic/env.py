from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from bacenta_reminders.core.settings import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

_SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql",
    "sqlite+aiosqlite": "sqlite",
}


def get_metadata():
    from bacenta_reminders.db.base import Base  # noqa: WPS433 (late import)
    import bacenta_reminders.models  # noqa: F401 (register tables)

    return Base.metadata


def sync_database_url(database_url: str) -> str:
    """Alembic runs synchronously, so swap async drivers for their sync equivalents."""

    for async_prefix, sync_prefix in _SYNC_DRIVERS.items():
        if database_url.startswith(async_prefix):
            return sync_prefix + database_url[len(async_prefix):]
    return database_url


def run_migrations_offline():
    """Run migrations in 'offline' mode."""
    context.configure(
        url=sync_database_url(settings.database_url),
        target_metadata=get_metadata(),
        literal_binds=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations in 'online' mode."""
    connectable = create_engine(sync_database_url(settings.database_url), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=get_metadata(), render_as_batch=True)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
