"""Per-client sliding-window request limit applied ahead of every route."""
from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional

from fastapi import FastAPI, Request

from dashboard.errors import rate_limit_error
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="rate_limit")


def client_key(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


class RateLimiter:
    def __init__(self, max_requests: int = 10, window_seconds: float = 60, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def check(self, key: str) -> Optional[int]:
        """Record a request for ``key``. Returns None if allowed, else seconds until a slot frees up."""
        now = self._clock()
        window_start = now - self.window_seconds
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(window_start)
                self._last_sweep = now
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= window_start:
                hits.popleft()
            if len(hits) >= self.max_requests:
                return max(1, math.ceil(hits[0] + self.window_seconds - now))
            hits.append(now)
            return None

    def _sweep(self, window_start: float) -> None:
        """Forget clients whose newest hit has left the window. Caller holds the lock."""
        idle = [key for key, hits in self._hits.items() if not hits or hits[-1] <= window_start]
        for key in idle:
            del self._hits[key]

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


def install_rate_limit(app: FastAPI, limiter: RateLimiter) -> None:
    @app.middleware("http")
    async def rate_limit(request: Request, call_next):
        key = client_key(request)
        retry_after = limiter.check(key)
        if retry_after is not None:
            logger.warning(f"Rate limit exceeded for {key} on {request.url.path}")
            return rate_limit_error(retry_after).to_response()
        return await call_next(request)
