"""Key-value store backends."""

from .base import KeyValueStore, StoreError
from .factory import build_store
from .memory import InMemoryKeyValueStore
from .redis import RedisKeyValueStore

__all__ = [
    "KeyValueStore",
    "StoreError",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "build_store",
]
