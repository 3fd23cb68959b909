"""Dashboard-wide settings document kept at ``app:config:current``."""
from __future__ import annotations

import copy
import json
from typing import Any, Dict, List, Mapping, Optional

from dashboard.auto_mode import DEFAULT_CONFIG as DEFAULT_AUTO_MODE_CONFIG
from dashboard.errors import validation_error
from dashboard.store.base import KeyValueStore, StoreError
from dashboard.timestamps import Clock, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="app_config")

CONFIG_KEY = "app:config:current"
CONFIG_READ_TTL_SECONDS = 3600
CONFIG_WRITE_TTL_SECONDS = 86400
SECTIONS = ("weather", "discord", "autoMode", "ui")

_UI_SETTINGS = {"compactMode": False, "showCacheInfo": True, "autoRefresh": True}

DEFAULT_APP_CONFIG: Dict[str, Any] = {
    "weather": {
        "defaultLocation": "Kent, WA",
        "defaultRefreshSeconds": 300,
        "minRefreshSeconds": 60,
        "maxRefreshSeconds": 3600,
        "displaySettings": {
            "showHourlyForecast": True,
            "hourlyForecastHours": 24,
            "hourlyForecastPastHours": 2,
            "hourlyForecastFutureHours": 5,
            "currentHourHighlight": True,
            "showHumidity": True,
            "showWindSpeed": True,
            "showPrecipitation": False,
            "temperatureUnit": "both",
        },
        "uiSettings": dict(_UI_SETTINGS),
    },
    "discord": {
        "defaultRefreshSeconds": 300,
        "minRefreshSeconds": 60,
        "maxRefreshSeconds": 3600,
        "displaySettings": {
            "showBots": False,
            "showOfflineMembers": True,
            "sortBy": "status",
            "groupByStatus": True,
            "maxMembersToShow": 50,
            "showAvatars": True,
            "compactMode": False,
        },
        "uiSettings": dict(_UI_SETTINGS),
    },
    "autoMode": DEFAULT_AUTO_MODE_CONFIG.to_wire(),
    "ui": {"compactMode": True, "widgetCompactModes": {}},
}


def default_config() -> Dict[str, Any]:
    return copy.deepcopy(DEFAULT_APP_CONFIG)


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge ``source`` into a copy of ``target``.

    Nested objects merge key by key; lists and scalars from ``source`` replace
    the target's value outright. ``None`` in ``source`` is written through.
    """
    result = copy.deepcopy(dict(target))
    for key, value in source.items():
        if isinstance(value, Mapping):
            base = result.get(key)
            result[key] = deep_merge(base if isinstance(base, Mapping) else {}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge_configs(existing: Mapping[str, Any], updates: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(dict(existing))
    for section in SECTIONS:
        patch = updates.get(section)
        if patch:
            merged[section] = deep_merge(merged.get(section) or {}, patch)
    return merged


def _check_refresh_bounds(section: str, block: Mapping[str, Any], errors: List[str]) -> None:
    low, high, default = block.get("minRefreshSeconds"), block.get("maxRefreshSeconds"), block.get("defaultRefreshSeconds")
    if low is None or high is None or default is None:
        return
    if low > high:
        errors.append(f"{section}.minRefreshSeconds must not exceed {section}.maxRefreshSeconds")
    elif not low <= default <= high:
        errors.append(f"{section}.defaultRefreshSeconds must be between minRefreshSeconds and maxRefreshSeconds")


def validate_config(config: Mapping[str, Any]) -> List[str]:
    """Cross-field consistency checks on a merged document. Empty list when valid."""
    errors: List[str] = []
    _check_refresh_bounds("weather", config.get("weather") or {}, errors)
    _check_refresh_bounds("discord", config.get("discord") or {}, errors)

    auto_mode = config.get("autoMode") or {}
    refresh = auto_mode.get("navModeRefreshSeconds")
    if refresh is not None and not 60 <= refresh <= 3600:
        errors.append("autoMode.navModeRefreshSeconds must be between 60 and 3600")

    for index, window in enumerate(auto_mode.get("timeWindows") or []):
        if any(day < 0 or day > 6 for day in window.get("daysOfWeek", [])):
            errors.append(f"autoMode.timeWindows[{index}].daysOfWeek values must be between 0 and 6")
        for field in ("startTime", "endTime"):
            point = window.get(field) or {}
            if not 0 <= point.get("hour", -1) <= 23 or not 0 <= point.get("minute", -1) <= 59:
                errors.append(f"autoMode.timeWindows[{index}].{field} is not a valid time of day")
    return errors


class ConfigService:
    def __init__(self, store: KeyValueStore, *, clock: Clock = utc_now) -> None:
        self.store = store
        self._clock = clock

    def _stored(self) -> Optional[Dict[str, Any]]:
        try:
            raw = self.store.get(CONFIG_KEY)
        except StoreError as exc:
            logger.warning(f"Failed to read app config, using defaults: {exc}")
            return None
        if not raw:
            return None
        try:
            document = json.loads(raw)
        except ValueError:
            logger.warning("Stored app config is not valid JSON, using defaults")
            return None
        if not isinstance(document, dict) or not all(document.get(section) for section in SECTIONS):
            logger.warning("Stored app config is missing sections, using defaults")
            return None
        return document

    def _persist(self, config: Mapping[str, Any], ttl_seconds: int) -> None:
        try:
            self.store.set(CONFIG_KEY, json.dumps(config), ex=ttl_seconds)
        except StoreError as exc:
            logger.warning(f"Failed to persist app config: {exc}")

    def get(self, force_refresh: bool = False) -> Dict[str, Any]:
        config = (None if force_refresh else self._stored()) or default_config()
        self._persist(config, CONFIG_READ_TTL_SECONDS)
        logger.info("Retrieved application configuration")
        return {**config, "lastUpdatedIso": to_iso(self._clock())}

    def update(self, updates: Mapping[str, Any]) -> Dict[str, Any]:
        """Merge a partial update into the stored (or default) config and persist it."""
        merged = merge_configs(self._stored() or default_config(), updates)
        errors = validate_config(merged)
        if errors:
            raise validation_error("Configuration is inconsistent", {"errors": errors})

        self._persist(merged, CONFIG_WRITE_TTL_SECONDS)
        logger.info("Updated application configuration")
        return {
            "success": True,
            "message": "Configuration updated successfully",
            "config": merged,
            "lastUpdatedIso": to_iso(self._clock()),
        }
