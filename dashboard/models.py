"""Pydantic models for request bodies and stored documents (camelCase on the wire)."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Mode = Literal["Compact", "Nav"]
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Auto mode
# ---------------------------------------------------------------------------

class TimeOfDay(CamelModel):
    hour: int = Field(ge=0, le=23)
    minute: int = Field(ge=0, le=59)

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute


class TimeWindow(CamelModel):
    """A recurring local-time window; ``start > end`` spans midnight."""
    name: str = Field(min_length=1)
    mode: Mode
    start_time: TimeOfDay
    end_time: TimeOfDay
    days_of_week: List[int]  # 0 = Sunday
    description: Optional[str] = None

    @field_validator("days_of_week")
    @classmethod
    def check_days(cls, v: List[int]) -> List[int]:
        if any(day < 0 or day > 6 for day in v):
            raise ValueError("daysOfWeek values must be between 0 (Sunday) and 6 (Saturday)")
        return v


class AutoModeConfig(CamelModel):
    enabled: bool
    time_windows: List[TimeWindow]
    default_mode: Mode
    nav_mode_refresh_seconds: int = Field(ge=60, le=3600)


class AutoModeConfigUpdate(CamelModel):
    config: AutoModeConfig


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

class ThresholdUpdate(CamelModel):
    threshold_minutes: float = Field(ge=5, le=1440)


class AcknowledgeRequest(CamelModel):
    alert_ids: Optional[List[int]] = None
    alert_keys: Optional[List[str]] = None
    acknowledge_all: Optional[bool] = None


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

class ScheduleEventRequest(CamelModel):
    task_type: str = Field(min_length=1)
    schedule_expression: str = Field(min_length=1)
    payload: Optional[Dict[str, Any]] = None
    is_recurring: bool = True


# ---------------------------------------------------------------------------
# Reminders
# ---------------------------------------------------------------------------

class ReminderTemplate(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    time: str = Field(pattern=r"^\d{2}:\d{2}$")  # HH:MM, UTC
    recurrence: Literal["daily"] = "daily"
    is_active: bool = True
    created_at: str
    updated_at: str


class DailyReminder(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    scheduled_at: str
    is_recurring: bool
    is_completed: bool = False
    created_at: str


class ReminderCompleteRequest(CamelModel):
    reminder_id: str = Field(min_length=1)
    date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)


class ReminderSeedRequest(CamelModel):
    start_date: str = Field(pattern=DATE_PATTERN)
    end_date: str = Field(pattern=DATE_PATTERN)


# ---------------------------------------------------------------------------
# App configuration updates (every section optional, merged into the stored config)
# ---------------------------------------------------------------------------

class UiSettings(CamelModel):
    compact_mode: bool
    show_cache_info: bool
    auto_refresh: bool


class WeatherDisplaySettings(CamelModel):
    show_hourly_forecast: bool
    hourly_forecast_hours: int = Field(ge=1, le=168)
    hourly_forecast_past_hours: int = Field(ge=0, le=24)
    hourly_forecast_future_hours: int = Field(ge=0, le=24)
    current_hour_highlight: bool
    show_humidity: bool
    show_wind_speed: bool
    show_precipitation: bool
    temperature_unit: Literal["celsius", "fahrenheit", "both"]


class DiscordDisplaySettings(CamelModel):
    show_bots: bool
    show_offline_members: bool
    sort_by: Literal["status", "username", "displayName"]
    group_by_status: bool
    max_members_to_show: int = Field(ge=1, le=1000)
    show_avatars: bool
    compact_mode: bool


class WeatherConfigUpdate(CamelModel):
    default_location: Optional[str] = None
    default_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    min_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    max_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    display_settings: Optional[WeatherDisplaySettings] = None
    ui_settings: Optional[UiSettings] = None


class DiscordConfigUpdate(CamelModel):
    default_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    min_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    max_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)
    display_settings: Optional[DiscordDisplaySettings] = None
    ui_settings: Optional[UiSettings] = None


class AutoModeConfigPatch(CamelModel):
    enabled: Optional[bool] = None
    time_windows: Optional[List[TimeWindow]] = None
    default_mode: Optional[Mode] = None
    nav_mode_refresh_seconds: Optional[int] = Field(default=None, ge=60, le=3600)


class UiPreferencesUpdate(CamelModel):
    compact_mode: Optional[bool] = None
    widget_compact_modes: Optional[Dict[str, Literal["use-global", "force-compact", "force-full"]]] = None


class ConfigUpdateRequest(CamelModel):
    weather: Optional[WeatherConfigUpdate] = None
    discord: Optional[DiscordConfigUpdate] = None
    auto_mode: Optional[AutoModeConfigPatch] = None
    ui: Optional[UiPreferencesUpdate] = None

    def to_patch(self) -> dict[str, Any]:
        """Only the fields the client actually sent, camelCased, ready to deep-merge."""
        return self.model_dump(by_alias=True, exclude_unset=True)
