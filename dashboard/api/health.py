"""Liveness probe."""
import time

from fastapi import APIRouter, Depends

from dashboard.dependencies import Services, get_services
from dashboard.timestamps import to_iso

router = APIRouter(tags=["health"])

_STARTED = time.monotonic()


@router.get("/health")
def health(services: Services = Depends(get_services)):
    return {
        "status": "ok",
        "uptimeSeconds": round(time.monotonic() - _STARTED, 3),
        "timestamp": to_iso(services.clock()),
    }
