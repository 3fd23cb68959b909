"""Daily reminders: list (cached), complete, seeding status."""
import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dashboard.cache.keys import reminder_key
from dashboard.dependencies import Services, get_services
from dashboard.errors import internal_error, not_found_error, validation_error
from dashboard.models import DATE_PATTERN, ReminderCompleteRequest, ReminderSeedRequest
from dashboard.providers.reminders import ReminderNotFoundError
from dashboard.store.base import StoreError
from dashboard.timestamps import format_date_key, parse_iso, to_iso
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api/reminder")

router = APIRouter(prefix="/reminder", tags=["reminder"])

MAX_SEED_RANGE_DAYS = 31

NOT_FOUND_MESSAGES = {
    "Reminder not found": "The specified reminder does not exist",
    "No reminders found for this date": "No reminders exist for the specified date",
}


def _checked_date(value: Optional[str], services: Services) -> str:
    if value is None:
        return format_date_key(services.clock())
    try:
        dt.date.fromisoformat(value)
    except ValueError:
        raise validation_error("The provided date is not valid") from None
    return value


def _overdue_count(reminders: list, now: dt.datetime) -> int:
    count = 0
    for reminder in reminders:
        scheduled = parse_iso(reminder.get("scheduledAt"))
        if not reminder.get("isCompleted") and scheduled is not None and scheduled <= now:
            count += 1
    return count


@router.get("")
def get_reminders(
    date: Optional[str] = Query(default=None, pattern=DATE_PATTERN),
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    date_key = _checked_date(date, services)
    repository = services.reminders

    def fetch(produced_at_iso: str) -> dict:
        repository.seed_recurring_reminders(date_key)
        reminders = repository.get_reminders_for_date(date_key)
        return {
            "reminders": [r.to_wire() for r in reminders],
            "expiresAfterMinutes": repository.expire_window_minutes,
        }

    result = services.cached_fetch.serve(
        reminder_key(date_key),
        services.policies.reminder,
        fetch,
        force_refresh=force_refresh,
        resource="reminder",
        error_message="Failed to fetch reminders.",
    )
    now = services.clock()
    response = result.to_response()
    response["overdueCount"] = _overdue_count(result.payload.get("reminders", []), now)
    response["serverTime"] = to_iso(now)
    logger.info(f"Retrieved {len(result.payload.get('reminders', []))} reminders for {date_key}")
    return response


@router.post("/complete")
def complete_reminder(body: ReminderCompleteRequest, services: Services = Depends(get_services)):
    date_key = _checked_date(body.date, services)
    try:
        services.reminders.mark_completed(body.reminder_id, date_key)
    except ReminderNotFoundError as exc:
        raise not_found_error(NOT_FOUND_MESSAGES.get(str(exc), str(exc))) from exc
    except (StoreError, ValueError) as exc:
        logger.error(f"Error marking reminder {body.reminder_id} as completed: {exc}")
        raise internal_error({"message": str(exc)}) from exc

    # The cached list for this date no longer reflects the completion.
    try:
        services.store.delete(reminder_key(date_key))
    except StoreError as exc:
        logger.warning(f"Failed to invalidate cached reminders for {date_key}: {exc}")

    logger.info(f"Marked reminder {body.reminder_id} as completed for {date_key}")
    return {"success": True, "message": "Reminder marked as completed"}


@router.post("/seed")
def seed_reminders(body: ReminderSeedRequest, services: Services = Depends(get_services)):
    try:
        start = dt.date.fromisoformat(body.start_date)
        end = dt.date.fromisoformat(body.end_date)
    except ValueError:
        raise validation_error("The provided date is not valid") from None
    if start > end:
        raise validation_error("Start date must be before or equal to end date")
    if (end - start).days >= MAX_SEED_RANGE_DAYS:
        raise validation_error(f"Date range must not exceed {MAX_SEED_RANGE_DAYS} days")

    try:
        seeded = services.reminder_scheduler.seed_date_range(start, end)
    except (StoreError, ValueError) as exc:
        logger.error(f"Error seeding reminders from {start} to {end}: {exc}")
        raise internal_error({"message": str(exc)}) from exc

    try:
        services.store.delete(*(reminder_key(date_key) for date_key in seeded))
    except StoreError as exc:
        logger.warning(f"Failed to invalidate cached reminders for {start} to {end}: {exc}")

    return {"success": True, "seededDates": seeded}


@router.get("/status")
def reminder_status(services: Services = Depends(get_services)):
    return services.reminder_scheduler.get_status()
