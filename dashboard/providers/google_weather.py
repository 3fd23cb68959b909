"""Hourly forecast from the Google Weather API."""
from __future__ import annotations

import math
from typing import Any, List, Optional

import requests

from dashboard.providers.base import HourlyWeather, ProviderCallError
from dashboard.providers.http import get_json
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="google_weather")

GOOGLE_WEATHER_URL = "https://weather.googleapis.com/v1/forecast/hours:lookup"
FORECAST_HOURS = 24


def _round1(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _parse_hour(entry: dict[str, Any]) -> HourlyWeather:
    celsius = float(entry["temperature"]["degrees"])
    condition = ((entry.get("weatherCondition") or {}).get("description") or {}).get("text") or "unknown"

    wind_speed: Optional[float] = None
    speed = (entry.get("wind") or {}).get("speed") or {}
    if speed.get("unit") == "KILOMETERS_PER_HOUR" and speed.get("value") is not None:
        wind_speed = _round1(float(speed["value"]))

    return HourlyWeather(
        timestamp=entry["interval"]["startTime"],
        temperature_celsius=_round1(celsius),
        temperature_fahrenheit=_round1(celsius * 9 / 5 + 32),
        condition=condition,
        humidity_percent=entry.get("relativeHumidity"),
        wind_speed_kph=wind_speed,
        precipitation_probability=((entry.get("precipitation") or {}).get("probability") or {}).get("percent"),
    )


def fetch_hourly_weather(
    location: str,
    *,
    api_key: Optional[str],
    latitude: float,
    longitude: float,
    session: requests.Session,
    timeout: float = 10.0,
    hours: int = FORECAST_HOURS,
) -> List[HourlyWeather]:
    """
    Fetch the next ``hours`` forecast hours for the configured coordinates.

    ``location`` is the label the dashboard shows and caches under; the
    lookup itself always uses ``latitude``/``longitude``.
    """
    if not api_key:
        raise ProviderCallError("GOOGLE_WEATHER_API_KEY is not configured.")

    params = {
        "key": api_key,
        "location.latitude": latitude,
        "location.longitude": longitude,
        "hours": hours,
    }
    logger.debug(f"Requesting {hours}h forecast for '{location}' at ({latitude}, {longitude})")
    data = get_json(session, GOOGLE_WEATHER_URL, provider="Google Weather API", timeout=timeout, params=params)

    forecast_hours = data.get("forecastHours") if isinstance(data, dict) else None
    if not isinstance(forecast_hours, list):
        raise ProviderCallError("Invalid weather data response from Google Weather API")

    try:
        return [_parse_hour(entry) for entry in forecast_hours]
    except (KeyError, TypeError, ValueError) as exc:
        raise ProviderCallError("Invalid weather data response from Google Weather API") from exc
