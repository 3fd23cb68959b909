"""FastAPI application factory for the dashboard API."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from dashboard import config
from dashboard.api import api_router, health_router
from dashboard.dependencies import Services, build_services
from dashboard.errors import install_exception_handlers
from dashboard.providers import CallableProviders
from dashboard.rate_limit import install_rate_limit
from dashboard.store import KeyValueStore, StoreError
from dashboard.timestamps import Clock
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")


def _start_background(services: Services) -> None:
    settings = services.settings
    if settings.reminder_seed_on_startup:
        try:
            services.reminder_scheduler.initialize()
        except (StoreError, ValueError):
            logger.exception("Failed to initialize reminder scheduler; continuing without seeded reminders")
    if settings.scheduler_enabled:
        services.scheduler.initialize()


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    _start_background(services)
    logger.info("Dashboard API started")
    yield
    services.scheduler.shutdown()
    logger.info("Dashboard API stopped")


def create_app(
    settings: Optional[config.Settings] = None,
    *,
    store: Optional[KeyValueStore] = None,
    providers: Optional[CallableProviders] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    settings = settings or config.settings
    services = build_services(settings, store=store, providers=providers, clock=clock)

    app = FastAPI(title="Dashboard API", lifespan=lifespan)
    app.state.services = services

    install_exception_handlers(app)
    install_rate_limit(app, services.rate_limiter)

    app.include_router(health_router)
    app.include_router(api_router, prefix="/api")
    return app
