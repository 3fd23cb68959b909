"""Redis-backed key-value store."""

from typing import Optional

import redis

from dashboard.store.base import KeyValueStore, StoreError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="store/redis_store")


class RedisKeyValueStore(KeyValueStore):
    """Thin adapter over a redis-py client that turns RedisError into StoreError.

    The client is expected to be built with ``decode_responses=True``; bytes
    values are decoded anyway so a raw client also works.
    """

    def __init__(self, client) -> None:
        logger.debug("Initializing RedisKeyValueStore")
        self.client = client

    @staticmethod
    def _text(value) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def get(self, key: str) -> Optional[str]:
        try:
            return self._text(self.client.get(key))
        except redis.RedisError as exc:
            raise StoreError(f"GET {key} failed: {exc}") from exc

    def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        try:
            if ex is not None and ex <= 0:
                # Redis rejects a zero expiry; the value would be dead on arrival anyway.
                self.client.delete(key)
                return
            self.client.set(key, value, ex=ex)
        except redis.RedisError as exc:
            raise StoreError(f"SET {key} failed: {exc}") from exc

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return int(self.client.delete(*keys) or 0)
        except redis.RedisError as exc:
            raise StoreError(f"DEL failed: {exc}") from exc

    def keys(self, pattern: str) -> list[str]:
        try:
            return [self._text(k) for k in self.client.scan_iter(match=pattern)]
        except redis.RedisError as exc:
            raise StoreError(f"SCAN {pattern} failed: {exc}") from exc

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as exc:
            logger.warning("Redis ping failed: %s", exc)
            return False
