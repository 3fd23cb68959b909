"""Travel time and distance from the Google Directions API."""
from __future__ import annotations

import time
from typing import Optional

import requests

from dashboard.providers.base import DirectionsResult, ProviderCallError
from dashboard.providers.http import get_json
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="google_directions")

GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
ROUTE_MODES = ("driving", "walking", "transit")


def fetch_directions(
    origin: str,
    destination: str,
    mode: str,
    *,
    api_key: Optional[str],
    session: requests.Session,
    timeout: float = 10.0,
) -> DirectionsResult:
    """Return the first route's duration (minutes) and distance (km), both to one decimal."""
    if not api_key:
        raise ProviderCallError("GOOGLE_DIRECTIONS_API_KEY is not configured.")
    if mode not in ROUTE_MODES:
        raise ProviderCallError(f"Unsupported travel mode '{mode}'")

    params = {"origin": origin, "destination": destination, "mode": mode, "key": api_key}
    if mode in ("driving", "transit"):
        # Needed for duration_in_traffic and for transit schedules.
        params["departure_time"] = str(int(time.time()))

    data = get_json(session, GOOGLE_DIRECTIONS_URL, provider="Google Directions API", timeout=timeout, params=params)
    status = data.get("status") if isinstance(data, dict) else None
    if status != "OK":
        raise ProviderCallError(
            f"Google Directions API returned status {status or 'UNKNOWN'}",
            provider_status={"status": status, "errorMessage": (data or {}).get("error_message")},
        )

    try:
        leg = data["routes"][0]["legs"][0]
        seconds = (leg.get("duration_in_traffic") or leg["duration"])["value"]
        meters = leg["distance"]["value"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderCallError("Invalid directions response from Google Directions API") from exc

    result = DirectionsResult(
        duration_minutes=round(float(seconds) / 60, 1),
        distance_km=round(float(meters) / 1000, 1),
    )
    logger.debug(f"Directions {mode} '{origin}' -> '{destination}': {result.duration_minutes} min")
    return result
