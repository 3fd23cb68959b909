"""GET /weather: hourly forecast through the stale-while-revalidate cache."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dashboard.cache.keys import weather_key
from dashboard.dependencies import Services, get_services
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api/weather")

router = APIRouter(tags=["weather"])


@router.get("/weather")
def get_weather(
    location: str = Query(min_length=1),
    freshness_seconds: Optional[int] = Query(default=None, alias="freshnessSeconds", ge=60, le=3600),
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    def fetch(produced_at_iso: str) -> dict:
        hours = services.providers.fetch_hourly(location)
        return {
            "hourlyData": [hour.to_dict() for hour in hours],
            "provider": "google-weather",
            "lastUpdatedIso": produced_at_iso,
        }

    result = services.cached_fetch.serve(
        weather_key(location),
        services.policies.weather,
        fetch,
        force_refresh=force_refresh,
        freshness_seconds=freshness_seconds,
        resource="weather",
        error_message="Failed to fetch weather information from provider.",
    )
    return result.to_response()
