"""
Best-effort in-process task scheduler.

Tasks are armed as daemon ``threading.Timer`` objects and mirrored to the
key-value store under ``scheduler:task:{eventId}`` (7 day expiry) so they can
be re-armed after a restart. There is no cross-instance coordination and
ticks missed while the process was down are not replayed.

Schedule expressions:

- ``interval:<seconds>``: every N seconds from now.
- ``cron:<min> <hour> <dom> <month> <dow>`` (UTC), limited to
  ``* * * * *``, ``0 * * * *``, ``0 H * * *`` and ``0 H * * D``
  (D is 0-6 with 0 or 7 meaning Sunday).
"""
from __future__ import annotations

import datetime as dt
import json
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from dashboard.store.base import KeyValueStore, StoreError
from dashboard.timestamps import Clock, parse_iso, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="scheduler")

TASK_KEY_PREFIX = "scheduler:task:"
STATUS_KEY = "scheduler:status"
TASK_TTL_SECONDS = 86400 * 7
STATUS_TTL_SECONDS = 300
MAX_UPCOMING_EVENTS = 10
MIN_RESCHEDULE_GAP = dt.timedelta(seconds=1)


def _next_cron_run(expression: str, start: dt.datetime) -> Optional[dt.datetime]:
    fields = expression.split()
    if len(fields) != 5:
        return None
    minute, hour, day_of_month, month, day_of_week = fields
    if day_of_month != "*" or month != "*":
        return None

    if minute == "*" and hour == "*" and day_of_week == "*":
        return start.replace(second=0, microsecond=0) + dt.timedelta(minutes=1)
    if minute == "0" and hour == "*" and day_of_week == "*":
        return start.replace(minute=0, second=0, microsecond=0) + dt.timedelta(hours=1)
    if minute != "0" or not hour.isdigit() or not 0 <= int(hour) <= 23:
        return None

    candidate = start.replace(hour=int(hour), minute=0, second=0, microsecond=0)
    if day_of_week == "*":
        if candidate <= start:
            candidate += dt.timedelta(days=1)
        return candidate

    if not day_of_week.isdigit() or not 0 <= int(day_of_week) <= 7:
        return None
    target = (int(day_of_week) - 1) % 7  # cron Sunday (0 or 7) -> Python's 6
    days_ahead = (target - candidate.weekday()) % 7
    if days_ahead == 0 and candidate <= start:
        days_ahead = 7
    return candidate + dt.timedelta(days=days_ahead)


def next_run_time(expression: str, start: dt.datetime) -> Optional[dt.datetime]:
    """Next run strictly after ``start`` (UTC), or None if the expression is not supported."""
    start = start.astimezone(dt.timezone.utc)
    if expression.startswith("interval:"):
        seconds = expression[len("interval:"):].strip()
        if not seconds.isdigit() or int(seconds) <= 0:
            return None
        return start + dt.timedelta(seconds=int(seconds))
    if expression.startswith("cron:"):
        return _next_cron_run(expression[len("cron:"):].strip(), start)
    return None


def new_event_id(now: dt.datetime) -> str:
    return f"evt_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class ScheduledTask:
    event_id: str
    task_type: str
    schedule_expression: str
    is_recurring: bool
    next_run_at: dt.datetime
    created_at: dt.datetime
    payload: Optional[Dict[str, Any]] = None
    last_run_at: Optional[dt.datetime] = None
    timer: Optional[threading.Timer] = field(default=None, repr=False, compare=False)

    def to_event(self) -> Dict[str, Any]:
        event = {
            "eventId": self.event_id,
            "taskType": self.task_type,
            "scheduleExpression": self.schedule_expression,
            "payload": self.payload,
            "isRecurring": self.is_recurring,
            "nextRunAtIso": to_iso(self.next_run_at),
            "createdAtIso": to_iso(self.created_at),
        }
        if self.last_run_at is not None:
            event["lastRunAtIso"] = to_iso(self.last_run_at)
        return event

    def to_record(self) -> Dict[str, Any]:
        return {
            "eventId": self.event_id,
            "taskType": self.task_type,
            "scheduleExpression": self.schedule_expression,
            "payload": self.payload,
            "isRecurring": self.is_recurring,
            "nextRunAt": to_iso(self.next_run_at),
            "lastRunAt": to_iso(self.last_run_at) if self.last_run_at else None,
            "createdAt": to_iso(self.created_at),
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "ScheduledTask":
        next_run_at = parse_iso(record.get("nextRunAt"))
        created_at = parse_iso(record.get("createdAt"))
        if next_run_at is None or created_at is None:
            raise ValueError("task record has unreadable timestamps")
        return cls(
            event_id=record["eventId"],
            task_type=record["taskType"],
            schedule_expression=record["scheduleExpression"],
            is_recurring=bool(record.get("isRecurring", True)),
            next_run_at=next_run_at,
            created_at=created_at,
            payload=record.get("payload"),
            last_run_at=parse_iso(record.get("lastRunAt")),
        )


TaskHandler = Callable[[ScheduledTask], None]
TimerFactory = Callable[[float, Callable[[], None]], threading.Timer]


def _log_only(message: str) -> TaskHandler:
    def handler(task: ScheduledTask) -> None:
        logger.info(message, extra={"event_id": task.event_id})
    return handler


def default_handlers() -> Dict[str, TaskHandler]:
    return {
        "route-polling": _log_only("Triggering route polling refresh"),
        "weather-update": _log_only("Triggering weather data update"),
        "reminder-check": _log_only("Checking for overdue reminders"),
        "cache-cleanup": _log_only("Cleaning up stale cache entries"),
    }


class SchedulerService:
    """
    Registry of timers keyed by event id.

    Only one task body runs at a time per scheduler; a task that fires while
    another is executing is skipped with a warning and re-armed for its next
    slot. Store failures are logged and never stop the in-memory schedule.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Clock = utc_now,
        handlers: Optional[Mapping[str, TaskHandler]] = None,
        timer_factory: TimerFactory = threading.Timer,
    ) -> None:
        self.store = store
        self._clock = clock
        self._handlers: Dict[str, TaskHandler] = dict(handlers) if handlers is not None else default_handlers()
        self._timer_factory = timer_factory
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()
        self._executing = threading.Lock()

    def register_handler(self, task_type: str, handler: TaskHandler) -> None:
        self._handlers[task_type] = handler

    # -- lifecycle ---------------------------------------------------------

    def initialize(self) -> int:
        """Re-arm every persisted task. Returns how many were loaded."""
        logger.info("Initializing scheduler")
        try:
            keys = self.store.keys(f"{TASK_KEY_PREFIX}*")
        except StoreError as exc:
            logger.error(f"Failed to load scheduled tasks: {exc}")
            keys = []

        loaded = 0
        for key in keys:
            try:
                raw = self.store.get(key)
                if not raw:
                    continue
                task = ScheduledTask.from_record(json.loads(raw))
            except (StoreError, ValueError, KeyError, TypeError) as exc:
                logger.warning(f"Failed to load task from {key}: {exc}")
                continue
            self._arm(task)
            loaded += 1
            logger.info(f"Loaded and scheduled task: {task.event_id}")

        self._update_status()
        logger.info(f"Scheduler initialized with {len(self._tasks)} active tasks")
        return loaded

    def shutdown(self) -> None:
        logger.info("Shutting down scheduler")
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            if task.timer is not None:
                task.timer.cancel()

    # -- public operations -------------------------------------------------

    def schedule(
        self,
        task_type: str,
        schedule_expression: str,
        payload: Optional[Dict[str, Any]] = None,
        is_recurring: bool = True,
    ) -> Dict[str, Any]:
        now = self._clock()
        next_run_at = next_run_time(schedule_expression, now)
        if next_run_at is None:
            raise ValueError("Invalid schedule expression")

        task = ScheduledTask(
            event_id=new_event_id(now),
            task_type=task_type,
            schedule_expression=schedule_expression,
            is_recurring=is_recurring,
            next_run_at=next_run_at,
            created_at=now,
            payload=payload,
        )
        self._arm(task)
        self._persist(task)
        self._update_status()
        logger.info(f"Task scheduled: {task.event_id} ({task_type}) next at {to_iso(next_run_at)}")
        return task.to_event()

    def cancel(self, event_id: str) -> bool:
        with self._lock:
            task = self._tasks.pop(event_id, None)
        if task is None:
            return False
        if task.timer is not None:
            task.timer.cancel()

        try:
            self.store.delete(f"{TASK_KEY_PREFIX}{event_id}")
        except StoreError as exc:
            logger.warning(f"Failed to delete persisted task {event_id}: {exc}")
        self._update_status()
        logger.info(f"Task cancelled: {event_id}")
        return True

    def get_all_tasks(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [task.to_event() for task in self._tasks.values()]

    def get_status(self) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            tasks = list(self._tasks.values())
        upcoming = sorted((t for t in tasks if t.next_run_at > now), key=lambda t: t.next_run_at)
        return {
            "isHealthy": True,
            "activeSchedules": len(tasks),
            "nextScheduledEvents": [
                {"eventId": t.event_id, "scheduledAtIso": to_iso(t.next_run_at), "taskType": t.task_type}
                for t in upcoming[:MAX_UPCOMING_EVENTS]
            ],
        }

    # -- internals ---------------------------------------------------------

    def _arm(self, task: ScheduledTask, *, rearm: bool = False) -> bool:
        """Register ``task`` with a started timer.

        With ``rearm`` the task must still be registered; a task cancelled in the
        meantime is left out and False is returned.
        """
        delay = (task.next_run_at - self._clock()).total_seconds()
        if delay <= 0:
            logger.warning(f"Task {task.event_id} was due at {to_iso(task.next_run_at)}, running now")
            delay = 0.0

        with self._lock:
            previous = self._tasks.get(task.event_id)
            if rearm and previous is not task:
                return False
            timer = self._timer_factory(delay, lambda: self._run(task.event_id))
            timer.daemon = True
            timer.name = f"scheduler-{task.event_id}"
            task.timer = timer
            self._tasks[task.event_id] = task
            timer.start()
        if previous is not None and previous.timer is not None and previous.timer is not timer:
            previous.timer.cancel()
        return True

    def _run(self, event_id: str) -> None:
        with self._lock:
            task = self._tasks.get(event_id)
        if task is None:
            return

        if not self._executing.acquire(blocking=False):
            logger.warning(f"Another task is executing, skipping {event_id}")
            self._after_run(task)
            return

        started = self._clock()
        try:
            logger.info(f"Executing scheduled task {event_id} ({task.task_type})")
            handler = self._handlers.get(task.task_type)
            if handler is None:
                logger.warning(f"Unknown task type: {task.task_type}")
            else:
                handler(task)
            task.last_run_at = self._clock()
            elapsed = (task.last_run_at - started).total_seconds()
            logger.info(f"Task {event_id} executed in {elapsed:.3f}s")
        except Exception:
            logger.exception(f"Task {event_id} failed")
        finally:
            self._executing.release()

        self._after_run(task)

    def _after_run(self, task: ScheduledTask) -> None:
        if not task.is_recurring:
            self.cancel(task.event_id)
            return

        now = self._clock()
        next_run_at = next_run_time(task.schedule_expression, now)
        if next_run_at is None or next_run_at <= now + MIN_RESCHEDULE_GAP:
            logger.warning(f"No valid next run for recurring task {task.event_id}, cancelling")
            self.cancel(task.event_id)
            return

        task.next_run_at = next_run_at
        if not self._arm(task, rearm=True):
            logger.info(f"Task {task.event_id} was cancelled while running, not re-arming")
            return
        self._persist(task)
        self._update_status()

    def _persist(self, task: ScheduledTask) -> None:
        try:
            self.store.set(f"{TASK_KEY_PREFIX}{task.event_id}", json.dumps(task.to_record()), ex=TASK_TTL_SECONDS)
        except StoreError as exc:
            logger.warning(f"Failed to persist task {task.event_id}: {exc}")

    def _update_status(self) -> None:
        with self._lock:
            active = len(self._tasks)
        status = {"activeSchedules": active, "lastUpdatedIso": to_iso(self._clock())}
        try:
            self.store.set(STATUS_KEY, json.dumps(status), ex=STATUS_TTL_SECONDS)
        except StoreError as exc:
            logger.warning(f"Failed to update scheduler status: {exc}")
