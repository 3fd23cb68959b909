"""
Store-backed daily reminders.

Layout in the key-value store (no expiry, these are primary data):

- ``reminders:templates``: JSON list of :class:`ReminderTemplate`
- ``reminders:daily:{YYYY-MM-DD}``: JSON list of active :class:`DailyReminder`
- ``reminders:completed:{YYYY-MM-DD}``: JSON list of completed reminders

Daily reminders are seeded from the active daily templates the first time a
date is requested, scheduled at the template's ``HH:MM`` in UTC.
"""
from __future__ import annotations

import datetime as dt
import json
from typing import List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from dashboard.models import DailyReminder, ReminderTemplate
from dashboard.store.base import KeyValueStore
from dashboard.timestamps import Clock, parse_iso, to_iso, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="reminder_repository")

REMINDERS_KEY_PREFIX = "reminders:daily:"
COMPLETED_KEY_PREFIX = "reminders:completed:"
TEMPLATES_KEY = "reminders:templates"

ModelT = TypeVar("ModelT", bound=BaseModel)


class ReminderNotFoundError(LookupError):
    """The reminder (or the whole date) does not exist."""


def parse_time_string(time_string: str) -> int:
    """``HH:MM`` (24-hour) to minutes since midnight."""
    try:
        hours, minutes = (int(part) for part in time_string.split(":"))
    except ValueError:
        raise ValueError(f"Invalid time format: {time_string}. Expected HH:MM in 24-hour format.") from None
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid time format: {time_string}. Expected HH:MM in 24-hour format.")
    return hours * 60 + minutes


def create_utc_timestamp(date_key: str, time_string: str) -> str:
    day = dt.datetime.strptime(date_key, "%Y-%m-%d").replace(tzinfo=dt.timezone.utc)
    return to_iso(day + dt.timedelta(minutes=parse_time_string(time_string)))


def is_expired(scheduled_at: str, now: dt.datetime, expire_window_minutes: int) -> bool:
    """True once ``now`` is past ``scheduled_at`` plus the expiry window."""
    scheduled = parse_iso(scheduled_at)
    if scheduled is None:
        return True
    return now > scheduled + dt.timedelta(minutes=expire_window_minutes)


def sort_by_time(reminders: Sequence[DailyReminder]) -> List[DailyReminder]:
    epoch = dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    return sorted(reminders, key=lambda r: parse_iso(r.scheduled_at) or epoch)


def default_templates(now_iso: str) -> List[ReminderTemplate]:
    return [
        ReminderTemplate(
            id="move-car",
            title="Move Car",
            description="Move car to new spot to avoid Kent Station parking enforcement",
            time="19:00",
            recurrence="daily",
            is_active=True,
            created_at=now_iso,
            updated_at=now_iso,
        )
    ]


class ReminderRepository:
    """Read, seed and complete reminders kept in the key-value store.

    Store failures (:class:`~dashboard.store.base.StoreError`) propagate to the
    caller; corrupt JSON raises ``ValueError``.
    """

    def __init__(self, store: KeyValueStore, *, expire_window_minutes: int = 15, clock: Clock = utc_now) -> None:
        self.store = store
        self.expire_window_minutes = expire_window_minutes
        self._clock = clock

    def _load(self, key: str, model: Type[ModelT]) -> List[ModelT]:
        raw = self.store.get(key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
            return [model.model_validate(item) for item in items]
        except (ValueError, TypeError, ValidationError) as exc:
            logger.warning(f"Corrupt reminder data under {key}: {exc}")
            raise ValueError(f"Corrupt reminder data under {key}") from exc

    def _save(self, key: str, items: Sequence[BaseModel]) -> None:
        self.store.set(key, json.dumps([item.model_dump(by_alias=True, exclude_none=True) for item in items], ensure_ascii=False))

    def get_templates(self) -> List[ReminderTemplate]:
        return self._load(TEMPLATES_KEY, ReminderTemplate)

    def save_templates(self, templates: Sequence[ReminderTemplate]) -> None:
        self._save(TEMPLATES_KEY, templates)

    def save_reminders_for_date(self, date_key: str, reminders: Sequence[DailyReminder]) -> None:
        self._save(f"{REMINDERS_KEY_PREFIX}{date_key}", reminders)

    def get_reminders_for_date(self, date_key: str) -> List[DailyReminder]:
        """Active and completed reminders for the date, unexpired, earliest first."""
        active = self._load(f"{REMINDERS_KEY_PREFIX}{date_key}", DailyReminder)
        completed = self._load(f"{COMPLETED_KEY_PREFIX}{date_key}", DailyReminder)
        now = self._clock()
        current = [r for r in active + completed if not is_expired(r.scheduled_at, now, self.expire_window_minutes)]
        return sort_by_time(current)

    def has_reminders(self, date_key: str) -> bool:
        return bool(self.store.get(f"{REMINDERS_KEY_PREFIX}{date_key}"))

    def seed_recurring_reminders(self, date_key: str) -> int:
        """Create the date's reminders from active daily templates; no-op if the date already has any."""
        if self.has_reminders(date_key):
            return 0

        templates = [t for t in self.get_templates() if t.is_active and t.recurrence == "daily"]
        if not templates:
            return 0

        now_iso = to_iso(self._clock())
        reminders = [
            DailyReminder(
                id=f"{template.id}-{date_key}",
                title=template.title,
                description=template.description,
                scheduled_at=create_utc_timestamp(date_key, template.time),
                is_recurring=True,
                is_completed=False,
                created_at=now_iso,
            )
            for template in templates
        ]
        self.save_reminders_for_date(date_key, reminders)
        logger.info(f"Seeded {len(reminders)} recurring reminders for {date_key}")
        return len(reminders)

    def mark_completed(self, reminder_id: str, date_key: str) -> DailyReminder:
        """Move a reminder from the date's active list to its completed list."""
        reminders_key = f"{REMINDERS_KEY_PREFIX}{date_key}"
        completed_key = f"{COMPLETED_KEY_PREFIX}{date_key}"

        if not self.store.get(reminders_key):
            raise ReminderNotFoundError("No reminders found for this date")
        reminders = self._load(reminders_key, DailyReminder)
        match: Optional[DailyReminder] = next((r for r in reminders if r.id == reminder_id), None)
        if match is None:
            raise ReminderNotFoundError("Reminder not found")

        done = match.model_copy(update={"is_completed": True})
        completed = self._load(completed_key, DailyReminder)
        completed.append(done)
        self._save(reminders_key, [r for r in reminders if r.id != reminder_id])
        self._save(completed_key, completed)
        logger.info(f"Marked reminder {reminder_id} as completed for {date_key}")
        return done

    def initialize_default_templates(self) -> bool:
        """Write the default templates when none exist. Returns True if it wrote them."""
        if self.get_templates():
            return False
        self.save_templates(default_templates(to_iso(self._clock())))
        logger.info("Initialized default reminder templates")
        return True
