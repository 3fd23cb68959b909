import hashlib
import unittest

from dashboard.cache.keys import build_key, discord_key, reminder_key, route_key, weather_key


def _sha(text):
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class TestCacheKeys(unittest.TestCase):
    def test_weather_key_shape(self):
        self.assertEqual(weather_key("Kent, WA"), "weather:" + _sha("weather:Kent, WA"))

    def test_route_key_carries_mode_in_namespace(self):
        key = route_key("Home", "Work", "transit")
        self.assertEqual(key, "route:transit:" + _sha("transit:Home:Work"))

    def test_keys_are_deterministic(self):
        self.assertEqual(route_key("A", "B", "driving"), route_key("A", "B", "driving"))
        self.assertEqual(discord_key(), discord_key())

    def test_distinct_identities_do_not_collide(self):
        self.assertNotEqual(route_key("A", "B", "driving"), route_key("A", "B", "walking"))
        self.assertNotEqual(route_key("A", "B", "driving"), route_key("B", "A", "driving"))
        self.assertNotEqual(weather_key("Seattle"), weather_key("seattle"))
        self.assertNotEqual(reminder_key("2024-05-06"), reminder_key("2024-05-07"))

    def test_namespaces_separate_resource_types(self):
        self.assertTrue(discord_key().startswith("discord:"))
        self.assertTrue(reminder_key("2024-05-06").startswith("reminder:"))
        self.assertEqual(build_key("x", "a", "b"), "x:" + _sha("a:b"))


if __name__ == "__main__":
    unittest.main()
