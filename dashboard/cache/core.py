"""Core cache types: the stored record, the freshness decision, and the response metadata."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from dashboard.cache.policies import FreshnessPolicy
from dashboard.timestamps import parse_iso
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/core")


class Freshness(str, Enum):
    FRESH = "fresh"                # served without calling the provider
    USABLE_STALE = "usable_stale"  # served only when the provider fails
    UNUSABLE = "unusable"


@dataclass(frozen=True)
class CachedRecord:
    """What the orchestrator writes to the store: the payload and when it was produced."""
    payload: dict[str, Any]
    cached_at_iso: str


@dataclass(frozen=True)
class CacheDecision:
    freshness: Freshness
    age_seconds: Optional[int] = None

    @property
    def usable(self) -> bool:
        return self.freshness in (Freshness.FRESH, Freshness.USABLE_STALE)

    @classmethod
    def unusable(cls) -> "CacheDecision":
        return cls(Freshness.UNUSABLE)


@dataclass(frozen=True)
class CacheStatus:
    """The ``cache`` block attached to every cached resource response."""
    hit: bool
    age_seconds: int
    stale_while_revalidate: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "hit": self.hit,
            "ageSeconds": self.age_seconds,
            "staleWhileRevalidate": self.stale_while_revalidate,
        }


def age_in_seconds(cached_at: dt.datetime, now: dt.datetime) -> int:
    """Whole seconds elapsed, floored, never negative (clock skew reads as age 0)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=dt.timezone.utc)
    return max(0, math.floor((now - cached_at).total_seconds()))


def classify(
    cached_at_iso: str,
    now: dt.datetime,
    policy: FreshnessPolicy,
    freshness_seconds: Optional[int] = None,
) -> CacheDecision:
    """
    Decide how a record produced at ``cached_at_iso`` may be used at ``now``.

    ``freshness_seconds`` replaces the policy TTL when the caller asked for a
    tighter (or looser) freshness; the grace window is then measured from it.
    An unparseable timestamp is never usable, not even as a stale fallback.
    """
    cached_at = parse_iso(cached_at_iso)
    if cached_at is None:
        logger.warning("Cached record has an unparseable cachedAtIso; ignoring it", extra={"cached_at_iso": cached_at_iso})
        return CacheDecision.unusable()

    age = age_in_seconds(cached_at, now)
    fresh_limit = policy.base_ttl_seconds if freshness_seconds is None else freshness_seconds
    if age <= fresh_limit:
        return CacheDecision(Freshness.FRESH, age)
    if age <= fresh_limit + policy.stale_grace_seconds:
        return CacheDecision(Freshness.USABLE_STALE, age)
    return CacheDecision(Freshness.UNUSABLE, age)
