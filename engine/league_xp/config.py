"""
Typed settings for the league XP engine.

Uses Pydantic Settings to load configuration from environment variables
with validation and type safety. Settings are loaded from the root .env
file so the engine shares one configuration with the web tier that calls it.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .validate_env import validate_env
from .xp_table import XPRateTable


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Nested models (the XP rate table) can be overridden with the
    double-underscore syntax, e.g. ``XP_TABLE__WINNING_TEAM=35``.
    """
    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        env_nested_delimiter="__",
        extra="allow",
    )

    database_url: str = Field(..., alias="DATABASE_URL")

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_async_to_sync(cls, v: str) -> str:
        """
        Convert asyncpg URL to psycopg URL for synchronous SQLAlchemy.

        The web tier may share a DATABASE_URL that uses asyncpg; the engine
        runs synchronous transactions so it needs psycopg.
        """
        if isinstance(v, str) and "asyncpg" in v:
            return v.replace("asyncpg", "psycopg")
        return v

    redis_url: str = Field("redis://localhost:6379/2", alias="REDIS_URL")
    redis_host: str = Field("localhost", alias="REDIS_HOST")
    redis_password: str | None = Field(None, alias="REDIS_PASSWORD")
    redis_db: int = Field(2, alias="REDIS_DB")

    @model_validator(mode="after")
    def _build_redis_url(self) -> Settings:
        """Build the Redis URL from components when REDIS_HOST is not localhost."""
        if self.redis_host != "localhost":
            if self.redis_password:
                self.redis_url = f"redis://:{self.redis_password}@{self.redis_host}:6379/{self.redis_db}"
            else:
                self.redis_url = f"redis://{self.redis_host}:6379/{self.redis_db}"
        return self

    environment: str = Field("development", alias="ENVIRONMENT")
    log_level: str | None = Field(None, alias="LOG_LEVEL")
    sql_echo: bool = Field(False, alias="SQL_ECHO")

    # Response cache entries written through the cache hook
    cache_ttl_seconds: int = Field(300, alias="CACHE_TTL_SECONDS")
    cache_key_prefix: str = Field("league-xp", alias="CACHE_KEY_PREFIX")
    # Pub/sub channel the realtime hook publishes match events on
    realtime_channel: str = Field("league-xp:events", alias="REALTIME_CHANNEL")

    xp_table: XPRateTable = Field(default_factory=XPRateTable)
    # Per-badge XP overrides, keyed by badge id
    achievement_xp: dict[str, int] = Field(default_factory=dict)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Settings are cached to avoid re-parsing environment variables
    on every access.
    """
    validate_env()
    return Settings()


settings = get_settings()
