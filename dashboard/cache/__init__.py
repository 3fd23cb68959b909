"""Stale-while-revalidate cache layer."""

from .coalescer import RequestCoalescer
from .core import CacheDecision, CachedRecord, CacheStatus, Freshness, classify
from .orchestrator import CachedFetch, CachedResult
from .policies import FreshnessPolicy, ResourcePolicies, build_policies

__all__ = [
    "CacheDecision",
    "CachedFetch",
    "CachedRecord",
    "CachedResult",
    "CacheStatus",
    "Freshness",
    "FreshnessPolicy",
    "RequestCoalescer",
    "ResourcePolicies",
    "build_policies",
    "classify",
]
