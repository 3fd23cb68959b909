"""
Single-flight coalescing for cache misses.

When several requests miss on the same cache key at once, only the first one
calls the provider; the others wait for it and share its payload (or its
exception). Works across FastAPI's threadpool workers, not across processes.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/coalescer")


@dataclass
class InFlightFetch:
    event: threading.Event = field(default_factory=threading.Event)
    result: Optional[Any] = None
    error: Optional[BaseException] = None
    started_at: float = field(default_factory=time.monotonic)
    waiter_count: int = 0


class RequestCoalescer:
    """Per-key in-flight map: first caller fetches, concurrent callers wait on its Event."""

    def __init__(self, timeout: float = 30.0):
        self._in_flight: Dict[str, InFlightFetch] = {}
        self._lock = threading.Lock()
        self._timeout = timeout

    def get_or_fetch(self, cache_key: str, fetch_fn: Callable[[], Any]) -> Any:
        """
        Join an in-flight fetch for ``cache_key`` or start one.

        Raises:
            TimeoutError: a waiter gave up on a fetch that took longer than ``timeout``.
            Exception: whatever ``fetch_fn`` raised, re-raised in every caller.
        """
        with self._lock:
            in_flight = self._in_flight.get(cache_key)
            if in_flight is not None:
                in_flight.waiter_count += 1
                logger.debug(f"Coalescing fetch for {cache_key} (waiters: {in_flight.waiter_count})")
                is_initiator = False
            else:
                in_flight = InFlightFetch()
                self._in_flight[cache_key] = in_flight
                is_initiator = True

        if is_initiator:
            try:
                in_flight.result = fetch_fn()
            except Exception as exc:
                in_flight.error = exc
            finally:
                in_flight.event.set()
                with self._lock:
                    self._in_flight.pop(cache_key, None)

            if in_flight.error is not None:
                raise in_flight.error
            return in_flight.result

        if not in_flight.event.wait(timeout=self._timeout):
            logger.error(f"Timed out waiting for coalesced fetch: {cache_key}")
            raise TimeoutError(f"Fetch for {cache_key} timed out after {self._timeout}s")

        if in_flight.error is not None:
            raise in_flight.error
        return in_flight.result

    @property
    def active_fetches(self) -> int:
        with self._lock:
            return len(self._in_flight)
