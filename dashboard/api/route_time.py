"""GET /route-time: travel duration between two places."""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from dashboard.cache.keys import route_key
from dashboard.dependencies import Services, get_services

router = APIRouter(tags=["route"])


@router.get("/route-time")
def get_route_time(
    origin: str = Query(alias="from", min_length=1),
    destination: str = Query(alias="to", min_length=1),
    mode: Literal["driving", "walking", "transit"] = "driving",
    freshness_seconds: Optional[int] = Query(default=None, alias="freshnessSeconds", ge=60, le=900),
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    def fetch(produced_at_iso: str) -> dict:
        directions = services.providers.fetch_directions(origin, destination, mode)
        return {
            "durationMinutes": directions.duration_minutes,
            "distanceKm": directions.distance_km,
            "provider": "google-directions",
            "mode": mode,
            "lastUpdatedIso": produced_at_iso,
        }

    result = services.cached_fetch.serve(
        route_key(origin, destination, mode),
        services.policies.route,
        fetch,
        force_refresh=force_refresh,
        freshness_seconds=freshness_seconds,
        resource="route",
        error_message="Failed to fetch route information from provider.",
    )
    return result.to_response()
