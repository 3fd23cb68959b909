"""Auto-mode status and configuration endpoints."""
from fastapi import APIRouter, Depends, Query

from dashboard.dependencies import Services, get_services
from dashboard.models import AutoModeConfigUpdate

router = APIRouter(prefix="/auto-mode", tags=["auto-mode"])


@router.get("/status")
def auto_mode_status(
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    return services.auto_mode.status(force_refresh)


@router.get("/config")
def auto_mode_config(services: Services = Depends(get_services)):
    return services.auto_mode.get_config().to_wire()


@router.post("/config")
def update_auto_mode_config(body: AutoModeConfigUpdate, services: Services = Depends(get_services)):
    return services.auto_mode.update_config(body.config)
