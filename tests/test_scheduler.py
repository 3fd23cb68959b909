import datetime as dt
import json
import unittest

from dashboard.scheduler import (
    STATUS_KEY,
    TASK_KEY_PREFIX,
    ScheduledTask,
    SchedulerService,
    new_event_id,
    next_run_time,
)
from dashboard.store import RedisKeyValueStore
from dashboard.timestamps import to_iso
from tests.fakes import FakeClock, FakeRedis, FakeTimer

# Monday noon UTC
START = dt.datetime(2024, 5, 6, 12, 0, 0, tzinfo=dt.timezone.utc)


def at(day, hour, minute=0):
    return dt.datetime(2024, 5, day, hour, minute, tzinfo=dt.timezone.utc)


class TestNextRunTime(unittest.TestCase):
    def test_interval(self):
        self.assertEqual(next_run_time("interval:90", START), START + dt.timedelta(seconds=90))

    def test_supported_cron_shapes(self):
        cases = {
            "cron:* * * * *": at(6, 12, 1),
            "cron:0 * * * *": at(6, 13),
            "cron:0 14 * * *": at(6, 14),
            "cron:0 8 * * *": at(7, 8),
            "cron:0 14 * * 1": at(6, 14),
            "cron:0 9 * * 1": at(13, 9),
            "cron:0 9 * * 0": at(12, 9),
            "cron:0 9 * * 7": at(12, 9),
            "cron:0 9 * * 3": at(8, 9),
        }
        for expression, expected in cases.items():
            with self.subTest(expression=expression):
                self.assertEqual(next_run_time(expression, START), expected)

    def test_exact_hour_moves_to_next_day(self):
        self.assertEqual(next_run_time("cron:0 12 * * *", START), at(7, 12))

    def test_unsupported_expressions(self):
        for expression in (
            "interval:0",
            "interval:abc",
            "cron:30 9 * * *",
            "cron:0 9 1 * *",
            "cron:0 25 * * *",
            "cron:0 9 * * 8",
            "cron:0 9 * *",
            "daily",
        ):
            with self.subTest(expression=expression):
                self.assertIsNone(next_run_time(expression, START))

    def test_event_id_shape(self):
        event_id = new_event_id(START)
        prefix, millis, suffix = event_id.split("_")
        self.assertEqual(prefix, "evt")
        self.assertEqual(int(millis), int(START.timestamp() * 1000))
        self.assertEqual(len(suffix), 9)


class SchedulerTestCase(unittest.TestCase):
    def setUp(self):
        FakeTimer.created = []
        self.redis = FakeRedis()
        self.clock = FakeClock(START)
        self.runs = []
        self.scheduler = SchedulerService(
            RedisKeyValueStore(self.redis),
            clock=self.clock,
            handlers={"route-polling": self.runs.append},
            timer_factory=FakeTimer,
        )

    def last_timer(self):
        return FakeTimer.created[-1]


class TestSchedule(SchedulerTestCase):
    def test_schedule_arms_and_persists(self):
        event = self.scheduler.schedule("route-polling", "interval:60", payload={"route": "home"})

        self.assertEqual(event["taskType"], "route-polling")
        self.assertTrue(event["isRecurring"])
        self.assertEqual(event["nextRunAtIso"], "2024-05-06T12:01:00.000Z")
        self.assertEqual(event["createdAtIso"], to_iso(START))
        self.assertNotIn("lastRunAtIso", event)

        timer = self.last_timer()
        self.assertTrue(timer.started)
        self.assertTrue(timer.daemon)
        self.assertEqual(timer.interval, 60)
        self.assertEqual(timer.name, f"scheduler-{event['eventId']}")

        key = f"{TASK_KEY_PREFIX}{event['eventId']}"
        record = json.loads(self.redis.store[key])
        self.assertEqual(record["payload"], {"route": "home"})
        self.assertEqual(self.redis.expires[key], 7 * 86400)
        self.assertEqual(json.loads(self.redis.store[STATUS_KEY])["activeSchedules"], 1)

    def test_invalid_expression_is_rejected(self):
        with self.assertRaisesRegex(ValueError, "Invalid schedule expression"):
            self.scheduler.schedule("route-polling", "every five minutes")
        self.assertEqual(self.scheduler.get_all_tasks(), [])

    def test_cancel(self):
        event = self.scheduler.schedule("route-polling", "interval:60")
        timer = self.last_timer()

        self.assertTrue(self.scheduler.cancel(event["eventId"]))
        self.assertTrue(timer.cancelled)
        self.assertNotIn(f"{TASK_KEY_PREFIX}{event['eventId']}", self.redis.store)
        self.assertFalse(self.scheduler.cancel(event["eventId"]))

    def test_status_lists_upcoming_in_order(self):
        later = self.scheduler.schedule("weather-update", "interval:600")
        sooner = self.scheduler.schedule("route-polling", "interval:60")

        status = self.scheduler.get_status()

        self.assertTrue(status["isHealthy"])
        self.assertEqual(status["activeSchedules"], 2)
        self.assertEqual(
            [e["eventId"] for e in status["nextScheduledEvents"]],
            [sooner["eventId"], later["eventId"]],
        )
        self.assertEqual(status["nextScheduledEvents"][0]["scheduledAtIso"], "2024-05-06T12:01:00.000Z")

    def test_status_caps_upcoming_events(self):
        for seconds in range(1, 13):
            self.scheduler.schedule("route-polling", f"interval:{seconds * 60}")
        status = self.scheduler.get_status()
        self.assertEqual(status["activeSchedules"], 12)
        self.assertEqual(len(status["nextScheduledEvents"]), 10)

    def test_shutdown_cancels_timers(self):
        self.scheduler.schedule("route-polling", "interval:60")
        self.scheduler.schedule("route-polling", "interval:120")

        self.scheduler.shutdown()

        self.assertTrue(all(t.cancelled for t in FakeTimer.created))
        self.assertEqual(self.scheduler.get_all_tasks(), [])


class TestExecution(SchedulerTestCase):
    def test_recurring_task_runs_and_rearms(self):
        event = self.scheduler.schedule("route-polling", "interval:60")
        first = self.last_timer()

        self.clock.advance(60)
        first.fire()

        self.assertEqual([t.event_id for t in self.runs], [event["eventId"]])
        second = self.last_timer()
        self.assertIsNot(first, second)
        self.assertEqual(second.interval, 60)
        [task] = self.scheduler.get_all_tasks()
        self.assertEqual(task["nextRunAtIso"], "2024-05-06T12:02:00.000Z")
        self.assertEqual(task["lastRunAtIso"], "2024-05-06T12:01:00.000Z")
        record = json.loads(self.redis.store[f"{TASK_KEY_PREFIX}{event['eventId']}"])
        self.assertEqual(record["lastRunAt"], "2024-05-06T12:01:00.000Z")

    def test_one_shot_task_is_removed_after_running(self):
        event = self.scheduler.schedule("route-polling", "interval:30", is_recurring=False)

        self.clock.advance(30)
        self.last_timer().fire()

        self.assertEqual(len(self.runs), 1)
        self.assertEqual(self.scheduler.get_all_tasks(), [])
        self.assertNotIn(f"{TASK_KEY_PREFIX}{event['eventId']}", self.redis.store)

    def test_failing_handler_keeps_schedule(self):
        def explode(task):
            raise RuntimeError("handler bug")

        self.scheduler.register_handler("cache-cleanup", explode)
        self.scheduler.schedule("cache-cleanup", "interval:60")
        self.clock.advance(60)

        with self.assertLogs("dashboard.scheduler", level="ERROR"):
            self.last_timer().fire()

        [task] = self.scheduler.get_all_tasks()
        self.assertNotIn("lastRunAtIso", task)
        self.assertEqual(task["nextRunAtIso"], "2024-05-06T12:02:00.000Z")

    def test_unknown_task_type_is_logged(self):
        self.scheduler.schedule("mystery", "interval:60")
        self.clock.advance(60)

        with self.assertLogs("dashboard.scheduler", level="WARNING") as logs:
            self.last_timer().fire()

        self.assertTrue(any("Unknown task type: mystery" in line for line in logs.output))
        self.assertEqual(len(self.scheduler.get_all_tasks()), 1)

    def test_overlapping_run_is_skipped_but_rearmed(self):
        self.scheduler.schedule("route-polling", "interval:60")
        self.clock.advance(60)
        first = self.last_timer()

        self.scheduler._executing.acquire()
        try:
            with self.assertLogs("dashboard.scheduler", level="WARNING"):
                first.fire()
        finally:
            self.scheduler._executing.release()

        self.assertEqual(self.runs, [])
        self.assertIsNot(self.last_timer(), first)

    def test_task_cancelled_by_its_handler_is_not_rearmed(self):
        event = self.scheduler.schedule("route-polling", "interval:60")
        self.scheduler.register_handler("route-polling", lambda task: self.scheduler.cancel(task.event_id))
        self.clock.advance(60)
        timers_before = len(FakeTimer.created)

        self.last_timer().fire()

        self.assertEqual(len(FakeTimer.created), timers_before)
        self.assertEqual(self.scheduler.get_all_tasks(), [])
        self.assertNotIn(f"{TASK_KEY_PREFIX}{event['eventId']}", self.redis.store)

    def test_cancel_racing_the_rearm_wins(self):
        event = self.scheduler.schedule("route-polling", "interval:60")
        [task] = self.scheduler._tasks.values()
        self.clock.advance(60)
        rearm_target = at(6, 12, 2)
        scheduler = self.scheduler

        class CancellingClock(FakeClock):
            # cancels the task on the first clock read after its next run was computed
            def __call__(self):
                if task.next_run_at == rearm_target and event["eventId"] in scheduler._tasks:
                    scheduler.cancel(event["eventId"])
                return super().__call__()

        self.scheduler._clock = CancellingClock(self.clock.now)
        timers_before = len(FakeTimer.created)

        self.last_timer().fire()

        self.assertEqual(len(self.runs), 1)
        self.assertEqual(len(FakeTimer.created), timers_before)
        self.assertEqual(self.scheduler.get_all_tasks(), [])
        self.assertNotIn(f"{TASK_KEY_PREFIX}{event['eventId']}", self.redis.store)

    def test_timer_for_cancelled_task_does_nothing(self):
        event = self.scheduler.schedule("route-polling", "interval:60")
        timer = self.last_timer()
        self.scheduler.cancel(event["eventId"])

        timer.fire()

        self.assertEqual(self.runs, [])


class TestInitialize(SchedulerTestCase):
    def persist(self, task):
        self.redis.store[f"{TASK_KEY_PREFIX}{task.event_id}"] = json.dumps(task.to_record())

    def test_reloads_persisted_tasks(self):
        self.persist(ScheduledTask(
            event_id="evt_1_abc",
            task_type="route-polling",
            schedule_expression="interval:300",
            is_recurring=True,
            next_run_at=START + dt.timedelta(seconds=120),
            created_at=START - dt.timedelta(days=1),
        ))

        self.assertEqual(self.scheduler.initialize(), 1)

        self.assertEqual(self.last_timer().interval, 120)
        self.assertEqual(self.scheduler.get_status()["activeSchedules"], 1)

    def test_overdue_task_runs_immediately(self):
        self.persist(ScheduledTask(
            event_id="evt_2_def",
            task_type="route-polling",
            schedule_expression="interval:300",
            is_recurring=True,
            next_run_at=START - dt.timedelta(minutes=10),
            created_at=START - dt.timedelta(days=1),
        ))

        with self.assertLogs("dashboard.scheduler", level="WARNING"):
            self.scheduler.initialize()

        timer = self.last_timer()
        self.assertEqual(timer.interval, 0)
        timer.fire()
        self.assertEqual(len(self.runs), 1)
        self.assertEqual(self.scheduler.get_all_tasks()[0]["nextRunAtIso"], "2024-05-06T12:05:00.000Z")

    def test_unreadable_records_are_skipped(self):
        self.redis.store[f"{TASK_KEY_PREFIX}bad-json"] = "{oops"
        self.redis.store[f"{TASK_KEY_PREFIX}bad-time"] = json.dumps({
            "eventId": "bad-time", "taskType": "route-polling", "scheduleExpression": "interval:60",
            "nextRunAt": "whenever", "createdAt": to_iso(START),
        })

        with self.assertLogs("dashboard.scheduler", level="WARNING"):
            self.assertEqual(self.scheduler.initialize(), 0)
        self.assertEqual(self.scheduler.get_all_tasks(), [])

    def test_store_outage_leaves_empty_schedule(self):
        self.redis.fail = True
        with self.assertLogs("dashboard.scheduler", level="ERROR"):
            self.assertEqual(self.scheduler.initialize(), 0)


if __name__ == "__main__":
    unittest.main()
