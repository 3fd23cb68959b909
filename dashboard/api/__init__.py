"""HTTP routers, one module per resource."""
from fastapi import APIRouter

from . import alerts, app_config, auto_mode, discord, health, reminder, route_time, scheduler, weather

api_router = APIRouter()
for _module in (weather, route_time, discord, reminder, alerts, auto_mode, app_config, scheduler):
    api_router.include_router(_module.router)

health_router = health.router

__all__ = ["api_router", "health_router"]
