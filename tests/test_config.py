import os
import unittest
from unittest.mock import patch

from pydantic import ValidationError

from dashboard.config import Settings


class TestConfig(unittest.TestCase):
    def test_settings_defaults(self):
        previous = os.environ.pop("ROUTE_CACHE_TTL_SECONDS", None)
        try:
            s = Settings()
            self.assertEqual(s.route_cache_ttl_seconds, 600)
            self.assertEqual(s.route_cache_peak_hour_stale_grace_seconds, 420)
            self.assertEqual(s.peak_hour, 18)
            self.assertEqual(s.reminder_expire_window_minutes, 15)
        finally:
            if previous is not None:
                os.environ["ROUTE_CACHE_TTL_SECONDS"] = previous

    def test_settings_env_override(self):
        env = {"ROUTE_CACHE_TTL_SECONDS": "120", "REDIS_URL": "redis://cache:6379/1", "CACHE_SINGLE_FLIGHT": "false"}
        with patch.dict(os.environ, env):
            s = Settings()
        self.assertEqual(s.route_cache_ttl_seconds, 120)
        self.assertEqual(s.redis_url, "redis://cache:6379/1")
        self.assertFalse(s.cache_single_flight)

    def test_bad_expire_window_falls_back(self):
        for raw in ("soon", "-5"):
            with self.subTest(raw=raw):
                with patch.dict(os.environ, {"REMINDER_EXPIRE_WINDOW_MINUTES": raw}):
                    with self.assertLogs("dashboard.config", level="WARNING"):
                        s = Settings()
                self.assertEqual(s.reminder_expire_window_minutes, 15)

    def test_expire_window_override(self):
        with patch.dict(os.environ, {"REMINDER_EXPIRE_WINDOW_MINUTES": "30"}):
            self.assertEqual(Settings().reminder_expire_window_minutes, 30)

    def test_negative_cache_window_rejected(self):
        with self.assertRaises(ValidationError):
            Settings(weather_cache_ttl_seconds=-1)
        with self.assertRaises(ValidationError):
            Settings(route_cache_stale_grace_seconds=-10)

    def test_peak_hour_bounds(self):
        self.assertIsNone(Settings(peak_hour=None).peak_hour)
        with self.assertRaises(ValidationError):
            Settings(peak_hour=24)

    def test_rate_limit_must_be_positive(self):
        with self.assertRaises(ValidationError):
            Settings(rate_limit_max_requests=0)


if __name__ == "__main__":
    unittest.main()
