"""Alert threshold and route alert endpoints."""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from dashboard.alerts import check_threshold_override, parse_route_data
from dashboard.dependencies import Services, get_services
from dashboard.errors import validation_error
from dashboard.models import AcknowledgeRequest, ThresholdUpdate

router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("/threshold")
def get_threshold(
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    return services.alerts.read_threshold(force_refresh)


@router.post("/threshold")
def update_threshold(body: ThresholdUpdate, services: Services = Depends(get_services)):
    return services.alerts.update_threshold(body.threshold_minutes)


@router.get("/route")
def get_route_alerts(
    route_data: Optional[str] = Query(default=None, alias="routeData"),
    threshold_minutes: Optional[str] = Query(default=None, alias="thresholdMinutes"),
    compact_mode: bool = Query(default=False, alias="compactMode"),
    services: Services = Depends(get_services),
):
    data = parse_route_data(route_data)
    override = None
    if threshold_minutes:
        try:
            override = float(threshold_minutes)
        except ValueError:
            raise validation_error("Threshold must be between 5 and 1440 minutes") from None
    return services.alerts.evaluate_route(data, check_threshold_override(override), compact_mode)


@router.post("/acknowledge")
def acknowledge_alerts(body: AcknowledgeRequest, services: Services = Depends(get_services)):
    return services.alerts.acknowledge(
        alert_ids=body.alert_ids,
        alert_keys=body.alert_keys,
        acknowledge_all=bool(body.acknowledge_all),
    )
