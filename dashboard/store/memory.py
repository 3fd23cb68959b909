"""In-memory key-value store with expiry, intended for development and tests."""

import fnmatch
import threading
import time
from typing import Optional

from dashboard.store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="store/in_memory_store")


class InMemoryKeyValueStore(KeyValueStore):
    """Thread-safe, expiry-aware dict standing in for Redis (dev/test)."""

    def __init__(self) -> None:
        logger.debug("Initializing InMemoryKeyValueStore")
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        """Return the value if present and unexpired; drops expired entries. Caller holds the lock."""
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._data.pop(key, None)
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        with self._lock:
            if ex is not None and ex <= 0:
                self._data.pop(key, None)
                return
            expires_at = time.monotonic() + ex if ex is not None else None
            self._data[key] = (value, expires_at)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            for key in keys:
                if self._live(key) is not None:
                    removed += 1
                self._data.pop(key, None)
        return removed

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            return [k for k in list(self._data) if fnmatch.fnmatchcase(k, pattern) and self._live(k) is not None]

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
