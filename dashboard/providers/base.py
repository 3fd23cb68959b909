"""Interfaces and result types for upstream data providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol


class ProviderCallError(Exception):
    """An upstream call failed or returned something we cannot use."""

    def __init__(self, message: str, provider_status: Any = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class HourlyWeather:
    """One forecast hour as served by ``GET /api/weather``."""
    timestamp: str
    temperature_celsius: float
    temperature_fahrenheit: float
    condition: str
    humidity_percent: Optional[float] = None
    wind_speed_kph: Optional[float] = None
    precipitation_probability: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return _drop_none({
            "timestamp": self.timestamp,
            "temperatureCelsius": self.temperature_celsius,
            "temperatureFahrenheit": self.temperature_fahrenheit,
            "condition": self.condition,
            "humidityPercent": self.humidity_percent,
            "windSpeedKph": self.wind_speed_kph,
            "precipitationProbability": self.precipitation_probability,
        })


@dataclass
class DirectionsResult:
    duration_minutes: float
    distance_km: float


@dataclass
class DiscordMember:
    id: str
    username: str
    display_name: str
    status: str  # online | idle | dnd | offline
    avatar_url: Optional[str]
    bot: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "displayName": self.display_name,
            "status": self.status,
            "avatarUrl": self.avatar_url,
            "bot": self.bot,
        }


ONLINE_STATUSES = frozenset({"online", "idle", "dnd"})


@dataclass
class DiscordGuildStatus:
    guild_id: str
    guild_name: str
    members: List[DiscordMember] = field(default_factory=list)

    @property
    def total_members(self) -> int:
        return len(self.members)

    @property
    def online_members(self) -> int:
        return sum(1 for m in self.members if m.status in ONLINE_STATUSES)

    def to_dict(self) -> dict[str, Any]:
        return {
            "guildId": self.guild_id,
            "guildName": self.guild_name,
            "totalMembers": self.total_members,
            "onlineMembers": self.online_members,
            "members": [m.to_dict() for m in self.members],
        }


class WeatherProvider(Protocol):
    def fetch_hourly(self, location: str) -> List[HourlyWeather]:
        """Return the hourly forecast for ``location``."""
        ...


class DirectionsProvider(Protocol):
    def fetch_directions(self, origin: str, destination: str, mode: str) -> DirectionsResult:
        """Return travel duration and distance for one route."""
        ...


class DiscordProvider(Protocol):
    def fetch_guild_status(self) -> DiscordGuildStatus:
        """Return the configured guild's member presence snapshot."""
        ...


@dataclass
class CallableProviders(WeatherProvider, DirectionsProvider, DiscordProvider):
    """Wrap three callables so upstream adapters can be swapped (or faked in tests)."""

    weather: Callable[[str], List[HourlyWeather]]
    directions: Callable[[str, str, str], DirectionsResult]
    discord: Callable[[], DiscordGuildStatus]

    def fetch_hourly(self, location: str) -> List[HourlyWeather]:
        return self.weather(location)

    def fetch_directions(self, origin: str, destination: str, mode: str) -> DirectionsResult:
        return self.directions(origin, destination, mode)

    def fetch_guild_status(self) -> DiscordGuildStatus:
        return self.discord()
