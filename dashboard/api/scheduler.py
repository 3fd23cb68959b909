"""In-process scheduler endpoints."""
from fastapi import APIRouter, Depends, Query

from dashboard.dependencies import Services, get_services
from dashboard.errors import not_found_error, validation_error
from dashboard.models import ScheduleEventRequest
from dashboard.timestamps import to_iso
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api/scheduler")

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status")
def scheduler_status(
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    if force_refresh:
        logger.info("Force refresh requested for scheduler status")
    status = services.scheduler.get_status()
    return {**status, "lastUpdatedIso": to_iso(services.clock())}


@router.post("/events")
def schedule_event(body: ScheduleEventRequest, services: Services = Depends(get_services)):
    try:
        return services.scheduler.schedule(
            body.task_type,
            body.schedule_expression,
            body.payload,
            body.is_recurring,
        )
    except ValueError as exc:
        logger.warning(f"Rejected schedule expression {body.schedule_expression!r}")
        raise validation_error(str(exc)) from exc


@router.get("/events")
def list_events(services: Services = Depends(get_services)):
    events = services.scheduler.get_all_tasks()
    return {"events": events, "totalCount": len(events)}


@router.delete("/events/{event_id}")
def cancel_event(event_id: str, services: Services = Depends(get_services)):
    if not services.scheduler.cancel(event_id):
        raise not_found_error("Event not found")
    return {"success": True, "message": "Event cancelled successfully"}
