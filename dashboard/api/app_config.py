"""Dashboard configuration document."""
from fastapi import APIRouter, Depends, Query

from dashboard.dependencies import Services, get_services
from dashboard.models import ConfigUpdateRequest

router = APIRouter(prefix="/config", tags=["config"])


@router.get("")
def get_config(
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    return services.app_config.get(force_refresh)


@router.post("")
def update_config(body: ConfigUpdateRequest, services: Services = Depends(get_services)):
    return services.app_config.update(body.to_patch())
