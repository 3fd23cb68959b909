import datetime as dt
import json
import unittest

from dashboard.models import ReminderTemplate
from dashboard.providers.reminders import (
    COMPLETED_KEY_PREFIX,
    REMINDERS_KEY_PREFIX,
    TEMPLATES_KEY,
    ReminderNotFoundError,
    ReminderRepository,
    create_utc_timestamp,
    is_expired,
    parse_time_string,
)
from dashboard.reminder_scheduler import ReminderScheduler
from dashboard.store import InMemoryKeyValueStore, RedisKeyValueStore
from tests.fakes import FakeClock, FakeRedis

TODAY = "2024-05-06"
TOMORROW = "2024-05-07"


def template(template_id, time, is_active=True):
    return ReminderTemplate(
        id=template_id,
        title=template_id.replace("-", " ").title(),
        time=time,
        is_active=is_active,
        created_at="2024-05-01T00:00:00.000Z",
        updated_at="2024-05-01T00:00:00.000Z",
    )


class TestTimeHelpers(unittest.TestCase):
    def test_parse_time_string(self):
        self.assertEqual(parse_time_string("00:00"), 0)
        self.assertEqual(parse_time_string("19:05"), 19 * 60 + 5)
        for bad in ("24:00", "12:60", "noon", "7"):
            with self.subTest(bad=bad):
                with self.assertRaisesRegex(ValueError, "Expected HH:MM"):
                    parse_time_string(bad)

    def test_create_utc_timestamp(self):
        self.assertEqual(create_utc_timestamp(TODAY, "19:00"), "2024-05-06T19:00:00.000Z")

    def test_is_expired(self):
        scheduled = "2024-05-06T19:00:00.000Z"
        at = lambda h, m: dt.datetime(2024, 5, 6, h, m, tzinfo=dt.timezone.utc)
        self.assertFalse(is_expired(scheduled, at(19, 15), 15))
        self.assertTrue(is_expired(scheduled, at(19, 16), 15))
        self.assertTrue(is_expired("not a time", at(0, 0), 15))


class RepositoryTestCase(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryKeyValueStore()
        self.clock = FakeClock()
        self.repository = ReminderRepository(self.store, expire_window_minutes=15, clock=self.clock)


class TestReminderRepository(RepositoryTestCase):
    def test_default_templates_written_once(self):
        self.assertTrue(self.repository.initialize_default_templates())
        self.assertFalse(self.repository.initialize_default_templates())
        [move_car] = self.repository.get_templates()
        self.assertEqual(move_car.id, "move-car")
        self.assertEqual(move_car.time, "19:00")

    def test_seed_creates_instances_from_active_templates(self):
        self.repository.save_templates([template("water-plants", "08:00"), template("old", "09:00", is_active=False)])

        self.assertEqual(self.repository.seed_recurring_reminders(TODAY), 1)
        self.assertEqual(self.repository.seed_recurring_reminders(TODAY), 0)

        stored = json.loads(self.store.get(f"{REMINDERS_KEY_PREFIX}{TODAY}"))
        self.assertEqual(stored[0]["id"], f"water-plants-{TODAY}")
        self.assertEqual(stored[0]["scheduledAt"], "2024-05-06T08:00:00.000Z")
        self.assertTrue(stored[0]["isRecurring"])
        self.assertFalse(stored[0]["isCompleted"])

    def test_seed_without_templates_is_a_noop(self):
        self.assertEqual(self.repository.seed_recurring_reminders(TODAY), 0)
        self.assertIsNone(self.store.get(f"{REMINDERS_KEY_PREFIX}{TODAY}"))

    def test_listing_sorts_and_drops_expired(self):
        self.repository.save_templates([
            template("evening", "19:00"),
            template("lunch", "12:30"),
            template("breakfast", "07:00"),
        ])
        self.repository.seed_recurring_reminders(TODAY)

        # 12:00 now: breakfast expired at 07:15.
        ids = [r.id for r in self.repository.get_reminders_for_date(TODAY)]
        self.assertEqual(ids, [f"lunch-{TODAY}", f"evening-{TODAY}"])

    def test_complete_moves_reminder(self):
        self.repository.save_templates([template("lunch", "12:30"), template("evening", "19:00")])
        self.repository.seed_recurring_reminders(TODAY)

        done = self.repository.mark_completed(f"lunch-{TODAY}", TODAY)

        self.assertTrue(done.is_completed)
        active = json.loads(self.store.get(f"{REMINDERS_KEY_PREFIX}{TODAY}"))
        completed = json.loads(self.store.get(f"{COMPLETED_KEY_PREFIX}{TODAY}"))
        self.assertEqual([r["id"] for r in active], [f"evening-{TODAY}"])
        self.assertEqual([r["id"] for r in completed], [f"lunch-{TODAY}"])

        listed = self.repository.get_reminders_for_date(TODAY)
        self.assertEqual([(r.id, r.is_completed) for r in listed], [(f"lunch-{TODAY}", True), (f"evening-{TODAY}", False)])

    def test_complete_unknown(self):
        with self.assertRaisesRegex(ReminderNotFoundError, "No reminders found for this date"):
            self.repository.mark_completed("anything", TODAY)

        self.repository.save_templates([template("lunch", "12:30")])
        self.repository.seed_recurring_reminders(TODAY)
        with self.assertRaisesRegex(ReminderNotFoundError, "Reminder not found"):
            self.repository.mark_completed("dinner", TODAY)

    def test_corrupt_data_raises_value_error(self):
        self.store.set(TEMPLATES_KEY, "{not a list")
        with self.assertLogs("dashboard.providers.reminders", level="WARNING"):
            with self.assertRaises(ValueError):
                self.repository.get_templates()


class TestReminderScheduler(RepositoryTestCase):
    def setUp(self):
        super().setUp()
        self.scheduler = ReminderScheduler(self.repository, clock=self.clock)

    def test_initialize_seeds_today_and_tomorrow(self):
        self.scheduler.initialize()

        self.assertTrue(self.repository.has_reminders(TODAY))
        self.assertTrue(self.repository.has_reminders(TOMORROW))
        self.assertEqual(self.scheduler.get_status(), {
            "initialized": True,
            "todaySeeded": True,
            "tomorrowSeeded": True,
            "templateCount": 1,
        })

    def test_status_before_seeding(self):
        self.assertEqual(self.scheduler.get_status(), {
            "initialized": True,
            "todaySeeded": False,
            "tomorrowSeeded": False,
            "templateCount": 0,
        })

    def test_seed_date_range(self):
        self.repository.initialize_default_templates()

        visited = self.scheduler.seed_date_range(dt.date(2024, 5, 6), dt.date(2024, 5, 8))

        self.assertEqual(visited, ["2024-05-06", "2024-05-07", "2024-05-08"])
        self.assertTrue(all(self.repository.has_reminders(day) for day in visited))

    def test_seed_date_range_rejects_reversed_range(self):
        with self.assertRaisesRegex(ValueError, "Start date must be before or equal to end date"):
            self.scheduler.seed_date_range(dt.date(2024, 5, 8), dt.date(2024, 5, 6))

    def test_daily_seed_survives_store_outage(self):
        redis_client = FakeRedis()
        redis_client.fail = True
        repository = ReminderRepository(RedisKeyValueStore(redis_client), clock=self.clock)
        scheduler = ReminderScheduler(repository, clock=self.clock)

        with self.assertLogs("dashboard.reminder_scheduler", level="ERROR"):
            scheduler.run_daily_seed()
            status = scheduler.get_status()

        self.assertFalse(status["initialized"])
        self.assertEqual(status["templateCount"], 0)


if __name__ == "__main__":
    unittest.main()
