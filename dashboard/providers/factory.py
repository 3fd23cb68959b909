"""Bind the upstream adapters to configuration at startup."""

from __future__ import annotations

from functools import partial

from dashboard import config
from dashboard.providers.base import CallableProviders
from dashboard.providers.discord import fetch_guild_status
from dashboard.providers.google_directions import fetch_directions
from dashboard.providers.google_weather import fetch_hourly_weather
from dashboard.providers.http import build_session
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/factory")


def build_providers(settings: config.Settings | None = None) -> CallableProviders:
    """One retrying HTTP session shared by the weather, directions and Discord adapters."""
    settings = settings or config.settings
    session = build_session(retries=settings.provider_retries)
    timeout = settings.provider_timeout_seconds

    for name, value in (
        ("GOOGLE_WEATHER_API_KEY", settings.google_weather_api_key),
        ("GOOGLE_DIRECTIONS_API_KEY", settings.google_directions_api_key),
        ("DISCORD_BOT_TOKEN", settings.discord_bot_token),
    ):
        if not value:
            logger.warning(f"{name} is not set; the matching route will answer with provider errors")

    return CallableProviders(
        weather=partial(
            fetch_hourly_weather,
            api_key=settings.google_weather_api_key,
            latitude=settings.weather_latitude,
            longitude=settings.weather_longitude,
            session=session,
            timeout=timeout,
        ),
        directions=partial(
            fetch_directions,
            api_key=settings.google_directions_api_key,
            session=session,
            timeout=timeout,
        ),
        discord=partial(
            fetch_guild_status,
            bot_token=settings.discord_bot_token,
            guild_id=settings.discord_guild_id,
            session=session,
            timeout=timeout,
        ),
    )
