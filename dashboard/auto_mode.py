"""
Compact/Nav display mode from recurring local-time windows.

Windows are evaluated in the dashboard's display time zone. A window covers
``[start, end)`` on each listed weekday (0 = Sunday); when ``start > end`` it
runs past midnight. The first matching window in list order wins, otherwise
the config's ``defaultMode`` applies.
"""
from __future__ import annotations

import datetime as dt
import json
from typing import Any, List, Optional
from zoneinfo import ZoneInfo

from pydantic import ValidationError

from dashboard.models import AutoModeConfig, Mode, TimeWindow
from dashboard.store.base import KeyValueStore, StoreError
from dashboard.timestamps import Clock, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="auto_mode")

CONFIG_KEY = "auto-mode:config:current"
CONFIG_READ_TTL_SECONDS = 3600
CONFIG_WRITE_TTL_SECONDS = 86400
MODES = ("Compact", "Nav")

DEFAULT_CONFIG = AutoModeConfig.model_validate({
    "enabled": True,
    "timeWindows": [
        {
            "name": "morning-commute",
            "mode": "Nav",
            "startTime": {"hour": 8, "minute": 30},
            "endTime": {"hour": 9, "minute": 30},
            "daysOfWeek": [1, 2, 3, 4, 5],
            "description": "Morning commute window",
        },
        {
            "name": "evening-commute",
            "mode": "Nav",
            "startTime": {"hour": 17, "minute": 0},
            "endTime": {"hour": 20, "minute": 0},
            "daysOfWeek": [1, 2, 3, 4, 5],
            "description": "Evening commute window",
        },
    ],
    "defaultMode": "Compact",
    "navModeRefreshSeconds": 300,
})


def weekday(moment: dt.datetime) -> int:
    """Day of week with 0 = Sunday."""
    return (moment.weekday() + 1) % 7


def to_local(now: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def in_window(window: TimeWindow, local: dt.datetime) -> bool:
    if weekday(local) not in window.days_of_week:
        return False
    current = local.hour * 60 + local.minute
    start, end = window.start_time.minutes, window.end_time.minutes
    if start > end:
        return current >= start or current < end
    return start <= current < end


def resolve_mode(config: AutoModeConfig, now: dt.datetime, tz: dt.tzinfo = dt.timezone.utc) -> Mode:
    if not config.enabled:
        return config.default_mode
    local = to_local(now, tz)
    for window in config.time_windows:
        if in_window(window, local):
            return window.mode
    return config.default_mode


def _at(day: dt.datetime, hour: int, minute: int) -> dt.datetime:
    return day.replace(hour=hour, minute=minute, second=0, microsecond=0)


def next_boundary(config: AutoModeConfig, now: dt.datetime, tz: dt.tzinfo = dt.timezone.utc) -> Optional[dt.datetime]:
    """
    Earliest window start or end still ahead of ``now``.

    Only today's windows are considered, then tomorrow's starts if nothing is
    left today. A disabled config reports ``now + 1 day``.
    """
    if not config.enabled:
        return now + dt.timedelta(days=1)

    local = to_local(now, tz)
    boundaries: List[dt.datetime] = []
    for window in config.time_windows:
        if weekday(local) not in window.days_of_week:
            continue
        for point in (window.start_time, window.end_time):
            candidate = _at(local, point.hour, point.minute)
            if candidate > local:
                boundaries.append(candidate)

    if not boundaries:
        tomorrow = local + dt.timedelta(days=1)
        boundaries = [
            _at(tomorrow, w.start_time.hour, w.start_time.minute)
            for w in config.time_windows
            if weekday(tomorrow) in w.days_of_week
        ]

    return min(boundaries) if boundaries else None


def validate_config(config: Any) -> List[str]:
    """Structural checks on a raw (camelCase) config document; empty list when valid."""
    if not isinstance(config, dict):
        return ["config must be an object"]

    errors = []
    if not isinstance(config.get("enabled"), bool):
        errors.append("enabled must be a boolean")

    windows = config.get("timeWindows")
    if not isinstance(windows, list):
        errors.append("timeWindows must be an array")
    else:
        for index, window in enumerate(windows):
            window = window if isinstance(window, dict) else {}
            name = window.get("name")
            if not name or not isinstance(name, str):
                errors.append(f"timeWindows[{index}].name must be a non-empty string")
            if window.get("mode") not in MODES:
                errors.append(f"timeWindows[{index}].mode must be 'Compact' or 'Nav'")
            for field in ("startTime", "endTime"):
                point = window.get(field)
                if not isinstance(point, dict) or not _is_number(point.get("hour")) or not _is_number(point.get("minute")):
                    errors.append(f"timeWindows[{index}].{field} must have valid hour and minute")
            if not isinstance(window.get("daysOfWeek"), list):
                errors.append(f"timeWindows[{index}].daysOfWeek must be an array")

    if config.get("defaultMode") not in MODES:
        errors.append("defaultMode must be 'Compact' or 'Nav'")

    refresh = config.get("navModeRefreshSeconds")
    if not _is_number(refresh) or not 60 <= refresh <= 3600:
        errors.append("navModeRefreshSeconds must be between 60 and 3600")

    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AutoModeService:
    """Stored auto-mode config plus the resolver, in the configured display time zone."""

    def __init__(self, store: KeyValueStore, *, timezone: str = "America/Los_Angeles", clock: Clock = utc_now) -> None:
        self.store = store
        self.tz = ZoneInfo(timezone)
        self._clock = clock

    def _stored_config(self) -> Optional[AutoModeConfig]:
        try:
            raw = self.store.get(CONFIG_KEY)
        except StoreError as exc:
            logger.warning(f"Failed to read auto-mode config, using default: {exc}")
            return None
        if not raw:
            return None
        try:
            document = json.loads(raw)
        except ValueError:
            logger.warning("Stored auto-mode config is not valid JSON, using default")
            return None
        errors = validate_config(document)
        if errors:
            logger.warning(f"Stored auto-mode config is invalid, using default: {errors}")
            return None
        try:
            return AutoModeConfig.model_validate(document)
        except ValidationError as exc:
            logger.warning(f"Stored auto-mode config is invalid, using default: {exc}")
            return None

    def _persist(self, config: AutoModeConfig, ttl_seconds: int) -> None:
        try:
            self.store.set(CONFIG_KEY, json.dumps(config.to_wire()), ex=ttl_seconds)
        except StoreError as exc:
            logger.warning(f"Failed to persist auto-mode config: {exc}")

    def get_config(self, force_refresh: bool = False) -> AutoModeConfig:
        """Stored config or the default; the result is written back for an hour."""
        config = None if force_refresh else self._stored_config()
        config = config or DEFAULT_CONFIG
        self._persist(config, CONFIG_READ_TTL_SECONDS)
        return config

    def status(self, force_refresh: bool = False) -> dict[str, Any]:
        config = self.get_config(force_refresh)
        now = self._clock()
        mode = resolve_mode(config, now, self.tz)
        boundary = next_boundary(config, now, self.tz)

        logger.info(f"Retrieved auto-mode status: {mode} mode")
        response = {
            "currentMode": mode,
            "config": config.to_wire(),
            "lastUpdatedIso": to_iso(now),
        }
        if boundary is not None:
            response["nextBoundaryIso"] = to_iso(boundary)
        return response

    def update_config(self, config: AutoModeConfig) -> dict[str, Any]:
        self._persist(config, CONFIG_WRITE_TTL_SECONDS)
        logger.info(f"Updated auto-mode config: enabled={config.enabled}, timeWindows={len(config.time_windows)}")
        return {
            "success": True,
            "message": "Auto-mode configuration updated successfully",
            "config": config.to_wire(),
            "lastUpdatedIso": to_iso(self._clock()),
        }
