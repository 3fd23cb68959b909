"""Service container built once per app and handed to routes through ``Depends``."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from dashboard.alerts import AlertService
from dashboard.app_config import ConfigService
from dashboard.auto_mode import AutoModeService
from dashboard.cache import CachedFetch, RequestCoalescer, ResourcePolicies, build_policies
from dashboard.config import Settings
from dashboard.providers import CallableProviders, ReminderRepository, build_providers
from dashboard.rate_limit import RateLimiter
from dashboard.reminder_scheduler import ReminderScheduler
from dashboard.scheduler import SchedulerService
from dashboard.store import KeyValueStore, build_store
from dashboard.timestamps import Clock, utc_now


@dataclass
class Services:
    settings: Settings
    clock: Clock
    store: KeyValueStore
    policies: ResourcePolicies
    cached_fetch: CachedFetch
    providers: CallableProviders
    reminders: ReminderRepository
    reminder_scheduler: ReminderScheduler
    alerts: AlertService
    auto_mode: AutoModeService
    app_config: ConfigService
    scheduler: SchedulerService
    rate_limiter: RateLimiter


def build_services(
    settings: Settings,
    *,
    store: Optional[KeyValueStore] = None,
    providers: Optional[CallableProviders] = None,
    clock: Optional[Clock] = None,
) -> Services:
    """Wire every service from settings; tests pass their own store, providers and clock."""
    clock = clock or utc_now
    store = store if store is not None else build_store(settings)
    providers = providers if providers is not None else build_providers(settings)
    coalescer = RequestCoalescer() if settings.cache_single_flight else None
    reminders = ReminderRepository(
        store,
        expire_window_minutes=settings.reminder_expire_window_minutes,
        clock=clock,
    )
    reminder_scheduler = ReminderScheduler(reminders, clock=clock)

    scheduler = SchedulerService(store, clock=clock)
    scheduler.register_handler("reminder-seed", lambda task: reminder_scheduler.run_daily_seed())

    return Services(
        settings=settings,
        clock=clock,
        store=store,
        policies=build_policies(settings),
        cached_fetch=CachedFetch(store, clock=clock, coalescer=coalescer),
        providers=providers,
        reminders=reminders,
        reminder_scheduler=reminder_scheduler,
        alerts=AlertService(store, clock=clock),
        auto_mode=AutoModeService(store, timezone=settings.auto_mode_timezone, clock=clock),
        app_config=ConfigService(store, clock=clock),
        scheduler=scheduler,
        rate_limiter=RateLimiter(settings.rate_limit_max_requests, settings.rate_limit_window_seconds),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
