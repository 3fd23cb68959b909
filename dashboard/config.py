"""Application configuration pulled from environment variables via pydantic."""
from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")

DEFAULT_REMINDER_EXPIRE_WINDOW_MINUTES = 15


class Settings(BaseSettings):
    """Environment-driven configuration for the dashboard API.

    Field names map to the upper-cased environment variable of the same name
    (``ROUTE_CACHE_TTL_SECONDS`` for ``route_cache_ttl_seconds``).
    """
    model_config = SettingsConfigDict(extra="ignore")

    redis_url: str | None = "redis://127.0.0.1:6379"
    redis_socket_timeout_seconds: float = 2.0

    route_cache_ttl_seconds: int = 600
    route_cache_stale_grace_seconds: int = 900
    route_cache_peak_hour_ttl_seconds: int = 300
    route_cache_peak_hour_stale_grace_seconds: int = 420
    weather_cache_ttl_seconds: int = 1800
    weather_cache_stale_grace_seconds: int = 300
    discord_cache_ttl_seconds: int = 300
    discord_cache_stale_grace_seconds: int = 60
    reminder_cache_ttl_seconds: int = 300
    reminder_cache_stale_grace_seconds: int = 60
    peak_hour: int | None = 18
    peak_hour_timezone: str = "America/Los_Angeles"
    cache_single_flight: bool = True

    reminder_expire_window_minutes: int = DEFAULT_REMINDER_EXPIRE_WINDOW_MINUTES
    auto_mode_timezone: str = "America/Los_Angeles"

    google_weather_api_key: str | None = None
    weather_latitude: float = 47.3809335
    weather_longitude: float = -122.2348431
    google_directions_api_key: str | None = None
    discord_bot_token: str | None = None
    discord_guild_id: str | None = None
    provider_timeout_seconds: float = 10.0
    provider_retries: int = 2

    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: int = 60

    scheduler_enabled: bool = True
    reminder_seed_on_startup: bool = True

    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 4000

    @field_validator(
        "route_cache_ttl_seconds",
        "route_cache_stale_grace_seconds",
        "route_cache_peak_hour_ttl_seconds",
        "route_cache_peak_hour_stale_grace_seconds",
        "weather_cache_ttl_seconds",
        "weather_cache_stale_grace_seconds",
        "discord_cache_ttl_seconds",
        "discord_cache_stale_grace_seconds",
        "reminder_cache_ttl_seconds",
        "reminder_cache_stale_grace_seconds",
        mode="after",
    )
    @classmethod
    def require_non_negative(cls, v: int, info: ValidationInfo) -> int:
        """Cache windows are seconds and cannot run backwards."""
        if v < 0:
            raise ValueError(f"{info.field_name} must be a non-negative integer")
        return v

    @field_validator("reminder_expire_window_minutes", mode="before")
    @classmethod
    def default_bad_expire_window(cls, v):
        """Fall back to the default window instead of refusing to start."""
        try:
            parsed = int(v)
        except (TypeError, ValueError):
            parsed = -1
        if parsed < 0:
            logger.warning(
                f"Invalid REMINDER_EXPIRE_WINDOW_MINUTES: {v}. Using default: {DEFAULT_REMINDER_EXPIRE_WINDOW_MINUTES}"
            )
            return DEFAULT_REMINDER_EXPIRE_WINDOW_MINUTES
        return parsed

    @field_validator("peak_hour", mode="after")
    @classmethod
    def check_peak_hour(cls, v: int | None) -> int | None:
        if v is not None and not 0 <= v <= 23:
            raise ValueError("peak_hour must be between 0 and 23")
        return v

    @field_validator("rate_limit_max_requests", "rate_limit_window_seconds", mode="after")
    @classmethod
    def require_positive(cls, v: int, info: ValidationInfo) -> int:
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
