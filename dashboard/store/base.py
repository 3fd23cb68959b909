"""Shared protocol and errors for key-value store backends."""

from typing import Optional, Protocol


class StoreError(Exception):
    """Raised by a store backend when the underlying service cannot serve the call."""


class KeyValueStore(Protocol):
    """String key-value store with per-key expiry, as consumed by the cache layer."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent or expired."""

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        """Store ``value`` under ``key``, expiring after ``ex`` seconds when given."""

    def delete(self, *keys: str) -> int:
        """Delete the given keys and return how many existed."""

    def keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob-style ``pattern``."""

    def ping(self) -> bool:
        """Return True when the backend is reachable."""
