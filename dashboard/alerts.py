"""
Travel-time alerts against a cache-backed threshold.

The threshold is a single number of minutes kept at ``alert:threshold:current``.
Reading it re-stores it for an hour; an explicit update keeps it for a day.

Alerts are not stored. Each ``/alerts/route`` call derives at most one alert
from the route measurement it is given. Acknowledging an alert writes
``alert:acknowledged:{lastUpdatedIso}:{threshold}:{duration to one decimal}``, so an
acknowledgement only silences that exact measurement; a new route reading or
a threshold change brings the alert back.
"""
from __future__ import annotations

import json
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Union

from dashboard.errors import validation_error
from dashboard.store.base import KeyValueStore, StoreError
from dashboard.timestamps import Clock, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="alerts")

MIN_THRESHOLD_MINUTES = 5
MAX_THRESHOLD_MINUTES = 1440
DEFAULT_THRESHOLD_MINUTES = 45

THRESHOLD_KEY = "alert:threshold:current"
ACK_KEY_PREFIX = "alert:acknowledged:"
THRESHOLD_READ_TTL_SECONDS = 3600
THRESHOLD_WRITE_TTL_SECONDS = 86400
ACK_TTL_SECONDS = 86400

Number = Union[int, float]


def normalize_minutes(value: Number) -> Number:
    """Integral floats become ints so 45.0 renders as ``45``."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def in_bounds(value: Number) -> bool:
    return MIN_THRESHOLD_MINUTES <= value <= MAX_THRESHOLD_MINUTES


def format_tenths(value: Number) -> str:
    """One decimal place, rounding ties away from zero on the exact binary value like ``toFixed(1)``."""
    return str(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def alert_signature(last_updated_iso: str, threshold: Number, duration_minutes: Number) -> str:
    return f"{last_updated_iso}:{normalize_minutes(threshold)}:{format_tenths(duration_minutes)}"


def alert_message(duration_minutes: Number, threshold: Number) -> str:
    return f"Travel time {format_tenths(duration_minutes)} min exceeds threshold of {normalize_minutes(threshold)} min."


def parse_route_data(raw: Optional[str]) -> dict[str, Any]:
    """Decode the ``routeData`` query parameter or raise a 400."""
    if not raw:
        raise validation_error("Missing required routeData parameter")
    try:
        route_data = json.loads(raw)
    except ValueError:
        raise validation_error("Invalid routeData JSON format") from None

    if not isinstance(route_data, dict):
        raise validation_error("Invalid routeData structure: missing required fields")
    duration = route_data.get("durationMinutes")
    if isinstance(duration, bool) or not isinstance(duration, (int, float)) or not duration or not math.isfinite(duration):
        raise validation_error("Invalid routeData structure: missing required fields")
    if not route_data.get("lastUpdatedIso"):
        raise validation_error("Invalid routeData structure: missing required fields")
    return route_data


def check_threshold_override(value: Optional[float]) -> Optional[Number]:
    if value is None:
        return None
    if math.isnan(value) or not in_bounds(value):
        raise validation_error(
            f"Threshold must be between {MIN_THRESHOLD_MINUTES} and {MAX_THRESHOLD_MINUTES} minutes"
        )
    return normalize_minutes(value)


class AlertService:
    def __init__(self, store: KeyValueStore, *, clock: Clock = utc_now) -> None:
        self.store = store
        self._clock = clock

    def _stored_threshold(self) -> Optional[Number]:
        """The stored threshold if it is a number within bounds. May raise StoreError."""
        raw = self.store.get(THRESHOLD_KEY)
        if raw is None:
            return None
        try:
            value = float(raw)
        except ValueError:
            logger.warning(f"Ignoring non-numeric stored alert threshold: {raw!r}")
            return None
        if math.isnan(value) or not in_bounds(value):
            logger.warning(f"Ignoring out-of-range stored alert threshold: {raw!r}")
            return None
        return normalize_minutes(value)

    def current_threshold(self) -> Number:
        """Stored threshold, else the default; a store failure reads as the default."""
        try:
            stored = self._stored_threshold()
        except StoreError as exc:
            logger.warning(f"Failed to read alert threshold, using default: {exc}")
            return DEFAULT_THRESHOLD_MINUTES
        return DEFAULT_THRESHOLD_MINUTES if stored is None else stored

    def read_threshold(self, force_refresh: bool = False) -> dict[str, Any]:
        threshold = DEFAULT_THRESHOLD_MINUTES if force_refresh else self.current_threshold()

        try:
            self.store.set(THRESHOLD_KEY, str(threshold), ex=THRESHOLD_READ_TTL_SECONDS)
        except StoreError as exc:
            logger.warning(f"Failed to persist alert threshold: {exc}")

        logger.info(f"Retrieved alert threshold: {threshold} minutes")
        return {
            "thresholdMinutes": threshold,
            "defaultThresholdMinutes": DEFAULT_THRESHOLD_MINUTES,
            "minThresholdMinutes": MIN_THRESHOLD_MINUTES,
            "maxThresholdMinutes": MAX_THRESHOLD_MINUTES,
            "lastUpdatedIso": to_iso(self._clock()),
        }

    def update_threshold(self, minutes: Number) -> dict[str, Any]:
        threshold = normalize_minutes(minutes)
        try:
            self.store.set(THRESHOLD_KEY, str(threshold), ex=THRESHOLD_WRITE_TTL_SECONDS)
        except StoreError as exc:
            logger.warning(f"Failed to persist alert threshold update: {exc}")

        logger.info(f"Updated alert threshold to {threshold} minutes")
        return {
            "success": True,
            "message": "Alert threshold updated successfully",
            "thresholdMinutes": threshold,
            "lastUpdatedIso": to_iso(self._clock()),
        }

    def _is_acknowledged(self, signature: str) -> bool:
        try:
            return self.store.get(f"{ACK_KEY_PREFIX}{signature}") == "true"
        except StoreError as exc:
            logger.warning(f"Failed to read alert acknowledgement: {exc}")
            return False

    def evaluate_route(
        self,
        route_data: dict[str, Any],
        threshold_override: Optional[Number] = None,
        compact_mode: bool = False,
    ) -> dict[str, Any]:
        """At most one alert for the measurement, minus it if already acknowledged."""
        threshold = threshold_override if threshold_override is not None else self.current_threshold()
        duration = route_data["durationMinutes"]
        now = self._clock()
        now_iso = to_iso(now)
        signature = alert_signature(route_data["lastUpdatedIso"], threshold, duration)

        alerts = []
        if duration > threshold:
            # Compact and full layouts currently share the same wording.
            alerts.append({
                "id": int(now.timestamp() * 1000),
                "message": alert_message(duration, threshold),
                "routeData": route_data,
                "thresholdMinutes": threshold,
                "acknowledged": False,
                "createdAtIso": now_iso,
                "alertKey": signature,
            })

        unacknowledged = alerts
        if alerts and self._is_acknowledged(signature):
            unacknowledged = []

        logger.info(
            f"Route alerts generated: {len(unacknowledged)} unacknowledged out of {len(alerts)} total",
            extra={"compact_mode": compact_mode},
        )
        return {
            "alerts": unacknowledged,
            "totalCount": len(alerts),
            "unacknowledgedCount": len(unacknowledged),
            "lastUpdatedIso": now_iso,
        }

    def _mark(self, keys: Iterable[str]) -> int:
        count = 0
        for key in keys:
            try:
                self.store.set(key, "true", ex=ACK_TTL_SECONDS)
                count += 1
            except StoreError as exc:
                logger.warning(f"Failed to acknowledge {key}: {exc}")
        return count

    def acknowledge(
        self,
        alert_ids: Optional[list[int]] = None,
        alert_keys: Optional[list[str]] = None,
        acknowledge_all: bool = False,
    ) -> dict[str, Any]:
        """
        Record acknowledgements.

        ``acknowledge_all`` clears every stored acknowledgement and reports how
        many were removed. ``alert_ids`` marks ``generic:{id}`` entries, which
        the route evaluator never consults; ``alert_keys`` marks the measurement
        signatures returned as ``alertKey`` and does silence those alerts.
        """
        if not acknowledge_all and not alert_ids and not alert_keys:
            raise validation_error("Either alertIds or acknowledgeAll must be provided")

        count = 0
        if acknowledge_all:
            try:
                keys = self.store.keys(f"{ACK_KEY_PREFIX}*")
                count = self.store.delete(*keys) if keys else 0
            except StoreError as exc:
                logger.warning(f"Failed to clear alert acknowledgements: {exc}")
        else:
            count += self._mark(f"{ACK_KEY_PREFIX}generic:{alert_id}" for alert_id in alert_ids or [])
            count += self._mark(f"{ACK_KEY_PREFIX}{signature}" for signature in alert_keys or [])

        logger.info(f"Acknowledged {count} alerts")
        return {
            "success": True,
            "message": f"Successfully acknowledged {count} alerts",
            "acknowledgedCount": count,
            "lastUpdatedIso": to_iso(self._clock()),
        }
