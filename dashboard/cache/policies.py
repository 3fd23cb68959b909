"""
Freshness windows per cached resource.

A policy gives a record two lifetimes: ``base_ttl_seconds`` during which it is
served without asking the provider, and a further ``stale_grace_seconds``
during which it is only served if the provider call fails. The store entry
itself expires exactly when the grace window closes.

The route-time resource tightens both windows during the evening peak hour
(18:00 America/Los_Angeles by default) when traffic changes quickly.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Optional
from zoneinfo import ZoneInfo

from dashboard import config


def is_peak_hour(now: dt.datetime, peak_hour: Optional[int], timezone: str) -> bool:
    """True when ``now`` falls within ``peak_hour`` (0-23) in ``timezone``."""
    if peak_hour is None:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    return now.astimezone(ZoneInfo(timezone)).hour == peak_hour


@dataclass(frozen=True)
class FreshnessPolicy:
    base_ttl_seconds: int
    stale_grace_seconds: int
    peak_ttl_seconds: Optional[int] = None
    peak_stale_grace_seconds: Optional[int] = None
    peak_hour: Optional[int] = None
    peak_timezone: str = "America/Los_Angeles"

    def __post_init__(self) -> None:
        for name in ("base_ttl_seconds", "stale_grace_seconds", "peak_ttl_seconds", "peak_stale_grace_seconds"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def store_expire_seconds(self) -> int:
        return self.base_ttl_seconds + self.stale_grace_seconds

    @property
    def has_peak_override(self) -> bool:
        return self.peak_hour is not None and self.peak_ttl_seconds is not None

    def effective(self, now: dt.datetime) -> "FreshnessPolicy":
        """The plain (ttl, grace) pair in force at ``now``."""
        if self.has_peak_override and is_peak_hour(now, self.peak_hour, self.peak_timezone):
            grace = self.peak_stale_grace_seconds
            return FreshnessPolicy(
                base_ttl_seconds=self.peak_ttl_seconds,
                stale_grace_seconds=self.stale_grace_seconds if grace is None else grace,
            )
        if not self.has_peak_override:
            return self
        return FreshnessPolicy(self.base_ttl_seconds, self.stale_grace_seconds)


@dataclass(frozen=True)
class ResourcePolicies:
    weather: FreshnessPolicy
    route: FreshnessPolicy
    discord: FreshnessPolicy
    reminder: FreshnessPolicy


def build_policies(settings: config.Settings | None = None) -> ResourcePolicies:
    settings = settings or config.settings
    return ResourcePolicies(
        weather=FreshnessPolicy(
            settings.weather_cache_ttl_seconds,
            settings.weather_cache_stale_grace_seconds,
        ),
        route=FreshnessPolicy(
            settings.route_cache_ttl_seconds,
            settings.route_cache_stale_grace_seconds,
            peak_ttl_seconds=settings.route_cache_peak_hour_ttl_seconds,
            peak_stale_grace_seconds=settings.route_cache_peak_hour_stale_grace_seconds,
            peak_hour=settings.peak_hour,
            peak_timezone=settings.peak_hour_timezone,
        ),
        discord=FreshnessPolicy(
            settings.discord_cache_ttl_seconds,
            settings.discord_cache_stale_grace_seconds,
        ),
        reminder=FreshnessPolicy(
            settings.reminder_cache_ttl_seconds,
            settings.reminder_cache_stale_grace_seconds,
        ),
    )
