"""Application settings and configuration management."""
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Reservation engine tunables."""

    hold_ttl_minutes: int = 15  # Proposed bookings expire after this many minutes
    max_advance_days: int = 730  # Bookings cannot start more than ~2 years ahead
    allow_past_dates: bool = False

    # Christmas access rules: cutoff is <month>/<day> of the period's year
    christmas_cutoff_month: int = 10
    christmas_cutoff_day: int = 1
    resident_christmas_room_limit: int = 2

    model_config = SettingsConfigDict(env_prefix="ENGINE_")


class RedisSettings(BaseSettings):
    """Redis configuration for the shared reservation store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    ssl: bool = False
    decode_responses: bool = True
    socket_timeout: int = 5
    socket_connect_timeout: int = 5
    key_prefix: str = "chalet"

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "json"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    """Main application settings."""

    environment: Literal["dev", "staging", "prod"] = "dev"
    debug: bool = False

    store_backend: Literal["memory", "redis"] = "memory"

    # Sub-settings
    engine: EngineSettings = EngineSettings()
    redis: RedisSettings = RedisSettings()
    logging: LoggingSettings = LoggingSettings()

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def redis_key_prefix(self) -> str:
        """Key prefix namespaced by environment."""
        return f"{self.environment}:{self.redis.key_prefix}"


# Global settings instance
settings = Settings()
