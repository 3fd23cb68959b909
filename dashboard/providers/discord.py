"""
Guild presence snapshot from the Discord REST API.

Member records come from ``GET /guilds/{id}/members`` (bot token, needs the
Server Members intent). REST has no presence endpoint, so statuses come from
the guild widget (``/guilds/{id}/widget.json``), which lists online members by
username; anyone not listed there is offline.
"""
from __future__ import annotations

from typing import Any, Optional

import requests

from dashboard.providers.base import DiscordGuildStatus, DiscordMember, ProviderCallError
from dashboard.providers.http import get_json
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="discord")

DISCORD_API_URL = "https://discord.com/api/v10"
DISCORD_CDN_URL = "https://cdn.discordapp.com"
MEMBER_PAGE_LIMIT = 1000


def normalize_status(status: Optional[str]) -> str:
    """Map Discord presence values onto online/idle/dnd/offline ('invisible' reads as offline)."""
    if status in ("online", "idle", "dnd"):
        return status
    return "offline"


def _avatar_url(user: dict[str, Any]) -> Optional[str]:
    avatar = user.get("avatar")
    if not avatar:
        return None
    return f"{DISCORD_CDN_URL}/avatars/{user['id']}/{avatar}.png"


def map_member(member: dict[str, Any], presence: dict[str, str]) -> DiscordMember:
    user = member.get("user") or {}
    username = user.get("username", "")
    return DiscordMember(
        id=str(user.get("id", "")),
        username=username,
        display_name=member.get("nick") or user.get("global_name") or username,
        status=normalize_status(presence.get(username)),
        avatar_url=_avatar_url(user),
        bot=bool(user.get("bot", False)),
    )


def _widget_presence(session: requests.Session, guild_id: str, timeout: float) -> dict[str, str]:
    try:
        widget = get_json(session, f"{DISCORD_API_URL}/guilds/{guild_id}/widget.json",
                          provider="Discord widget", timeout=timeout)
    except ProviderCallError as exc:
        logger.warning(f"Guild widget unavailable; reporting every member offline: {exc}")
        return {}
    return {m.get("username", ""): m.get("status", "offline") for m in (widget.get("members") or [])}


def fetch_guild_status(
    *,
    bot_token: Optional[str],
    guild_id: Optional[str],
    session: requests.Session,
    timeout: float = 10.0,
) -> DiscordGuildStatus:
    if not bot_token:
        raise ProviderCallError("DISCORD_BOT_TOKEN environment variable is required")
    if not guild_id:
        raise ProviderCallError("DISCORD_GUILD_ID environment variable is required")

    headers = {"Authorization": f"Bot {bot_token}"}
    guild = get_json(session, f"{DISCORD_API_URL}/guilds/{guild_id}", provider="Discord API",
                     timeout=timeout, headers=headers)
    members = get_json(session, f"{DISCORD_API_URL}/guilds/{guild_id}/members", provider="Discord API",
                       timeout=timeout, headers=headers, params={"limit": MEMBER_PAGE_LIMIT})
    if not isinstance(guild, dict) or not isinstance(members, list):
        raise ProviderCallError("Invalid guild response from Discord API")

    presence = _widget_presence(session, guild_id, timeout)
    status = DiscordGuildStatus(
        guild_id=str(guild.get("id", guild_id)),
        guild_name=guild.get("name", ""),
        members=[map_member(m, presence) for m in members],
    )
    logger.debug(f"Guild {status.guild_name}: {status.online_members}/{status.total_members} online")
    return status
