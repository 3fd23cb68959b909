import time
import unittest
from unittest.mock import patch

import redis

from dashboard.config import Settings
from dashboard.store import InMemoryKeyValueStore, RedisKeyValueStore, StoreError, build_store
from tests.fakes import FakeRedis


class TestInMemoryKeyValueStore(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryKeyValueStore()

    def test_set_get_delete(self):
        self.assertIsNone(self.store.get("missing"))
        self.store.set("a", "1")
        self.assertEqual(self.store.get("a"), "1")
        self.assertEqual(self.store.delete("a", "b"), 1)
        self.assertIsNone(self.store.get("a"))
        self.assertTrue(self.store.ping())

    def test_expiry(self):
        with patch("dashboard.store.memory.time.monotonic", return_value=1000.0):
            self.store.set("k", "v", ex=10)
        with patch("dashboard.store.memory.time.monotonic", return_value=1009.0):
            self.assertEqual(self.store.get("k"), "v")
        with patch("dashboard.store.memory.time.monotonic", return_value=1010.0):
            self.assertIsNone(self.store.get("k"))

    def test_non_positive_expiry_deletes(self):
        self.store.set("k", "v")
        self.store.set("k", "w", ex=0)
        self.assertIsNone(self.store.get("k"))

    def test_keys_glob(self):
        self.store.set("alert:acknowledged:1", "true")
        self.store.set("alert:acknowledged:2", "true")
        self.store.set("alert:threshold:current", "45")
        self.assertEqual(sorted(self.store.keys("alert:acknowledged:*")), ["alert:acknowledged:1", "alert:acknowledged:2"])

    def test_keys_skip_expired(self):
        now = time.monotonic()
        with patch("dashboard.store.memory.time.monotonic", return_value=now):
            self.store.set("old", "x", ex=1)
        with patch("dashboard.store.memory.time.monotonic", return_value=now + 5):
            self.assertEqual(self.store.keys("*"), [])


class TestRedisKeyValueStore(unittest.TestCase):
    def setUp(self):
        self.client = FakeRedis()
        self.store = RedisKeyValueStore(self.client)

    def test_passes_expiry_through(self):
        self.store.set("k", "v", ex=420)
        self.assertEqual(self.client.store["k"], "v")
        self.assertEqual(self.client.expires["k"], 420)
        self.assertEqual(self.store.get("k"), "v")

    def test_decodes_bytes(self):
        self.client.store["k"] = "é".encode("utf-8")
        self.assertEqual(self.store.get("k"), "é")

    def test_zero_expiry_deletes(self):
        self.client.store["k"] = "v"
        self.store.set("k", "w", ex=0)
        self.assertNotIn("k", self.client.store)

    def test_redis_errors_become_store_errors(self):
        self.client.fail = True
        for call in (
            lambda: self.store.get("k"),
            lambda: self.store.set("k", "v"),
            lambda: self.store.delete("k"),
            lambda: self.store.keys("*"),
        ):
            with self.assertRaises(StoreError):
                call()

    def test_ping_failure_is_false(self):
        self.client.fail = True
        with self.assertLogs("dashboard.store.redis", level="WARNING"):
            self.assertFalse(self.store.ping())

    def test_delete_without_keys(self):
        self.assertEqual(self.store.delete(), 0)


class TestBuildStore(unittest.TestCase):
    def test_no_url_uses_memory(self):
        self.assertIsInstance(build_store(Settings(redis_url=None)), InMemoryKeyValueStore)

    def test_unreachable_redis_falls_back(self):
        settings = Settings(redis_url="redis://:secret@cache.invalid:6379/0")
        with patch("dashboard.store.factory.redis.Redis.from_url") as from_url:
            from_url.return_value.ping.side_effect = redis.ConnectionError("no route")
            with self.assertLogs("dashboard.store.factory", level="WARNING") as logs:
                store = build_store(settings)
        self.assertIsInstance(store, InMemoryKeyValueStore)
        self.assertFalse(any("secret" in line for line in logs.output))

    def test_reachable_redis(self):
        settings = Settings(redis_url="redis://cache:6379/0")
        with patch("dashboard.store.factory.redis.Redis.from_url") as from_url:
            from_url.return_value.ping.return_value = True
            store = build_store(settings)
        self.assertIsInstance(store, RedisKeyValueStore)
        self.assertTrue(from_url.call_args.kwargs["decode_responses"])


if __name__ == "__main__":
    unittest.main()
