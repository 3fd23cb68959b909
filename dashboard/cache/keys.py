"""Deterministic cache keys derived from each resource's request identity."""
from __future__ import annotations

import hashlib


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def build_key(namespace: str, *fields: str) -> str:
    """``{namespace}:`` followed by the sha256 of the ``:``-joined fields."""
    return f"{namespace}:{_digest(':'.join(fields))}"


def weather_key(location: str) -> str:
    return build_key("weather", "weather", location)


def route_key(origin: str, destination: str, mode: str) -> str:
    # Mode sits in the namespace too, so all driving entries share a prefix.
    return f"route:{mode}:{_digest(f'{mode}:{origin}:{destination}')}"


def discord_key() -> str:
    return build_key("discord", "discord", "guild-status")


def reminder_key(date_key: str) -> str:
    return build_key("reminder", "reminder", date_key)
