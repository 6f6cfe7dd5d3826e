from __future__ import annotations

import functools
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.secrets import get_secret


def _default_cron_secret() -> Optional[str]:
    return get_secret("CRON_SECRET")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    cron_secret: Optional[str] = Field(
        default_factory=_default_cron_secret,
        description="Bearer credential expected from the external timer; unset rejects every call",
    )
    payment_timeout_minutes: int = Field(120, gt=0)
    monitor_window_minutes: int = Field(5, gt=0)
    daily_window_hours: int = Field(24, gt=0)
    archive_after_days: int = Field(30, gt=0)
    sweep_batch_size: int = Field(500, gt=0)


@functools.lru_cache
def get_settings() -> Settings:
    return Settings()
