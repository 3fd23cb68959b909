"""Upstream data providers and the reminder repository."""

from .base import (
    CallableProviders,
    DirectionsResult,
    DiscordGuildStatus,
    DiscordMember,
    HourlyWeather,
    ProviderCallError,
)
from .factory import build_providers
from .reminders import ReminderNotFoundError, ReminderRepository

__all__ = [
    "CallableProviders",
    "DirectionsResult",
    "DiscordGuildStatus",
    "DiscordMember",
    "HourlyWeather",
    "ProviderCallError",
    "ReminderNotFoundError",
    "ReminderRepository",
    "build_providers",
]
