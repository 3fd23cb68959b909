"""GET /discord-status: guild presence snapshot."""
from fastapi import APIRouter, Depends, Query

from dashboard.cache.keys import discord_key
from dashboard.dependencies import Services, get_services

router = APIRouter(tags=["discord"])


@router.get("/discord-status")
def get_discord_status(
    force_refresh: bool = Query(default=False, alias="forceRefresh"),
    services: Services = Depends(get_services),
):
    def fetch(produced_at_iso: str) -> dict:
        status = services.providers.fetch_guild_status()
        return {**status.to_dict(), "lastUpdatedIso": produced_at_iso}

    result = services.cached_fetch.serve(
        discord_key(),
        services.policies.discord,
        fetch,
        force_refresh=force_refresh,
        resource="discord",
        error_message="Failed to fetch discord guild status from provider.",
    )
    return result.to_response()
