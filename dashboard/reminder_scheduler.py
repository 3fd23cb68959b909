"""Expands recurring reminder templates into dated instances ahead of time."""
from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List

from dashboard.providers.reminders import ReminderRepository
from dashboard.store.base import StoreError
from dashboard.timestamps import Clock, format_date_key, utc_now
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="reminder_scheduler")


class ReminderScheduler:
    def __init__(self, repository: ReminderRepository, *, clock: Clock = utc_now) -> None:
        self.repository = repository
        self._clock = clock

    def initialize(self) -> None:
        """Write default templates if missing, then seed today and tomorrow."""
        self.repository.initialize_default_templates()
        self.seed_today()
        self.seed_tomorrow()
        logger.info("Reminder scheduler initialized")

    def seed_today(self) -> int:
        return self.repository.seed_recurring_reminders(format_date_key(self._clock()))

    def seed_tomorrow(self) -> int:
        return self.repository.seed_recurring_reminders(format_date_key(self._clock() + dt.timedelta(days=1)))

    def seed_date_range(self, start: dt.date, end: dt.date) -> List[str]:
        """Seed every date in ``[start, end]``; returns the date keys visited."""
        if start > end:
            raise ValueError("Start date must be before or equal to end date")

        visited = []
        day = start
        while day <= end:
            date_key = day.isoformat()
            self.repository.seed_recurring_reminders(date_key)
            visited.append(date_key)
            day += dt.timedelta(days=1)

        logger.info(f"Seeded reminders for date range: {start.isoformat()} to {end.isoformat()}")
        return visited

    def run_daily_seed(self) -> None:
        """Scheduler entry point; failures are logged, never raised."""
        logger.info("Running daily reminder seed job")
        try:
            self.seed_today()
            self.seed_tomorrow()
        except (StoreError, ValueError):
            logger.exception("Daily reminder seed job failed")
            return
        logger.info("Daily reminder seed job completed")

    def get_status(self) -> Dict[str, Any]:
        now = self._clock()
        try:
            templates = self.repository.get_templates()
            today = self.repository.get_reminders_for_date(format_date_key(now))
            tomorrow = self.repository.get_reminders_for_date(format_date_key(now + dt.timedelta(days=1)))
        except (StoreError, ValueError) as exc:
            logger.error(f"Error getting reminder scheduler status: {exc}")
            return {"initialized": False, "todaySeeded": False, "tomorrowSeeded": False, "templateCount": 0}

        return {
            "initialized": True,
            "todaySeeded": len(today) > 0,
            "tomorrowSeeded": len(tomorrow) > 0,
            "templateCount": len(templates),
        }
