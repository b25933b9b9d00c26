from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./bacenta_reminders.db"

    # Email / notification settings
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_sender_email: str | None = None
    sendgrid_api_key: str | None = None
    sendgrid_sender_email: str | None = None

    # Birthday reminders
    birthday_email_enabled: bool = True
    birthday_default_offsets: Annotated[list[int], NoDecode] = Field(default_factory=lambda: [7, 3, 1, 0])
    birthday_email_batch_timeout_seconds: float = 20.0
    birthday_email_pacing_seconds: float = 0.1
    birthday_ledger_retention_days: int = 90
    birthday_cleanup_batch_size: int = 100
    birthday_stats_window_days: int = 30
    birthday_dry_run: bool = False

    # Manual trigger / maintenance API
    birthday_admin_api_key: str = ""

    # Job scheduler
    birthday_scheduler_enabled: bool = False
    birthday_job_schedule_path: str = "config/schedules.toml"

    @field_validator("birthday_default_offsets", mode="before")
    @classmethod
    def _parse_offsets(cls, value: object) -> list[int]:
        if value is None:
            return [7, 3, 1, 0]
        if isinstance(value, str):
            items: list[object] = [item.strip() for item in value.split(",") if item.strip()]
        elif isinstance(value, (list, tuple, set)):
            items = list(value)
        else:
            return [7, 3, 1, 0]
        offsets: list[int] = []
        for item in items:
            try:
                parsed = int(item)  # type: ignore[arg-type]
            except (TypeError, ValueError):
                continue
            if parsed >= 0 and parsed not in offsets:
                offsets.append(parsed)
        return offsets


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
