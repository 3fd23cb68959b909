"""Shared HTTP session for provider adapters."""
from __future__ import annotations

import requests
from retry_requests import retry

from dashboard.providers.base import ProviderCallError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="providers/http")

# Retries only cover transient upstream statuses; 4xx surfaces immediately.
RETRY_STATUSES = (500, 502, 503, 504)


def build_session(retries: int = 2, backoff_factor: float = 0.2) -> requests.Session:
    """A requests session that retries connection errors and 5xx responses."""
    logger.debug(f"Building provider session (retries={retries}, backoff_factor={backoff_factor})")
    return retry(
        requests.Session(),
        retries=retries,
        backoff_factor=backoff_factor,
        status_to_retry=RETRY_STATUSES,
    )


def get_json(session: requests.Session, url: str, *, provider: str, timeout: float, **kwargs):
    """GET ``url`` and return the decoded JSON body, raising ProviderCallError on any failure."""
    try:
        resp = session.get(url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        raise ProviderCallError(f"{provider} request failed: {exc}") from exc

    if not resp.ok:
        raise ProviderCallError(
            f"{provider} request failed: {resp.status_code} {resp.reason}",
            provider_status={"status": resp.status_code},
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderCallError(f"{provider} returned a non-JSON response") from exc
