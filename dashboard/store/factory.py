"""Choose the key-value store backend at startup."""

from __future__ import annotations

import redis

from dashboard import config
from dashboard.store.base import KeyValueStore
from dashboard.store.memory import InMemoryKeyValueStore
from dashboard.store.redis import RedisKeyValueStore
from utils.logging_utils import get_tagged_logger, mask_redis_url

logger = get_tagged_logger(__name__, tag="store/factory")


def build_store(settings: config.Settings | None = None) -> KeyValueStore:
    """Connect to Redis when configured and reachable, else fall back to memory."""
    settings = settings or config.settings
    masked = mask_redis_url(settings.redis_url)
    logger.debug(f"Initializing key-value store: redis_url='{masked or 'None'}'")

    if settings.redis_url:
        try:
            client = redis.Redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_timeout=settings.redis_socket_timeout_seconds,
                socket_connect_timeout=settings.redis_socket_timeout_seconds,
            )
            client.ping()
            logger.info("Using RedisKeyValueStore", extra={"redis_url": masked})
            return RedisKeyValueStore(client)
        except (redis.RedisError, ValueError) as exc:
            logger.warning(
                "Falling back to InMemoryKeyValueStore (Redis unavailable)",
                extra={"redis_url": masked, "error": str(exc)},
            )
    return InMemoryKeyValueStore()
