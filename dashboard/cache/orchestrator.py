"""
Stale-while-revalidate serving for every cached resource.

Per request:

1. read and decode the stored record for the key (a store failure reads as a miss);
2. if it is FRESH and the caller did not force a refresh, return it untouched;
3. otherwise call the provider, write the new record and return it;
4. if the provider fails, fall back to the stored record while it is within
   its grace window, else raise a 502 ``PROVIDER_ERROR``.

Routes supply the key, the policy and a ``fetch(produced_at_iso)`` callable
that returns the payload dict; everything else lives here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from dashboard.cache.codec import decode, encode
from dashboard.cache.coalescer import RequestCoalescer
from dashboard.cache.core import CacheDecision, CachedRecord, CacheStatus, Freshness, classify
from dashboard.cache.policies import FreshnessPolicy
from dashboard.errors import provider_error
from dashboard.store.base import KeyValueStore, StoreError
from dashboard.timestamps import Clock, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/orchestrator")

FetchFn = Callable[[str], dict]


@dataclass(frozen=True)
class CachedResult:
    payload: dict[str, Any]
    cache: CacheStatus

    def to_response(self) -> dict[str, Any]:
        """Payload fields with the ``cache`` block appended."""
        return {**self.payload, "cache": self.cache.to_dict()}


class CachedFetch:
    """Generic stale-while-revalidate control flow shared by the resource routes."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Clock = utc_now,
        coalescer: Optional[RequestCoalescer] = None,
    ) -> None:
        self.store = store
        self._clock = clock
        self._coalescer = coalescer

    def _read(self, key: str, resource: str) -> Optional[CachedRecord]:
        try:
            raw = self.store.get(key)
        except StoreError as exc:
            logger.warning(f"Cache read failed for {resource}; treating as a miss: {exc}", extra={"cache_key": key})
            return None
        return decode(raw)

    def _write(self, key: str, payload: dict, produced_at_iso: str, expire_seconds: int, resource: str) -> None:
        try:
            self.store.set(key, encode(payload, produced_at_iso), ex=expire_seconds)
        except StoreError as exc:
            logger.warning(f"Cache write failed for {resource}; serving fresh payload anyway: {exc}", extra={"cache_key": key})

    def _refresh(self, key: str, policy: FreshnessPolicy, fetch: FetchFn, produced_at_iso: str, resource: str) -> dict:
        def call() -> dict:
            payload = fetch(produced_at_iso)
            self._write(key, payload, produced_at_iso, policy.store_expire_seconds, resource)
            return payload

        if self._coalescer is None:
            return call()
        return self._coalescer.get_or_fetch(key, call)

    def serve(
        self,
        key: str,
        policy: FreshnessPolicy,
        fetch: FetchFn,
        *,
        force_refresh: bool = False,
        freshness_seconds: Optional[int] = None,
        resource: str = "resource",
        error_message: str = "Failed to fetch data from provider.",
    ) -> CachedResult:
        now = self._clock()
        effective = policy.effective(now)

        # Read even when forced: the record is still the fallback if the provider fails.
        record = self._read(key, resource)
        decision = CacheDecision.unusable()
        if record is not None:
            decision = classify(record.cached_at_iso, now, effective, freshness_seconds)

        if not force_refresh and decision.freshness is Freshness.FRESH:
            logger.debug(
                f"Serving fresh {resource} from cache",
                extra={"cache_key": key, "age_seconds": decision.age_seconds},
            )
            return CachedResult(record.payload, CacheStatus(True, decision.age_seconds, False))

        produced_at_iso = to_iso(now)
        try:
            payload = self._refresh(key, effective, fetch, produced_at_iso, resource)
        except Exception as exc:
            logger.error(f"Failed to retrieve {resource} from provider: {exc}", extra={"cache_key": key})
            if record is not None and decision.usable:
                logger.warning(
                    f"Serving stale {resource} after provider failure",
                    extra={"cache_key": key, "age_seconds": decision.age_seconds},
                )
                return CachedResult(record.payload, CacheStatus(True, decision.age_seconds, True))
            raise provider_error(error_message, provider_status={"message": str(exc)}) from exc

        return CachedResult(payload, CacheStatus(False, 0, False))
