from __future__ import annotations

import functools
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from libs.env import get_redis_url


def _default_redis_url() -> str:
    return get_redis_url(env_var="AUTH_REDIS_URL")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    rate_limit_backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Counter store backing the login and signup rate limits",
    )
    redis_url: str = Field(default_factory=_default_redis_url)
    redis_timeout_seconds: float = 0.5
    session_cookie_secure: bool = True
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
    )
    public_base_url: str = Field(
        "http://localhost:8000",
        description="Origin placed in front of the /auth/callback links sent after signup",
    )


@functools.lru_cache
def get_settings() -> Settings:
    return Settings()
