"""Serialize cache records to and from the store's string representation."""
from __future__ import annotations

import json
from typing import Any, Mapping, Optional, Union

from dashboard.cache.core import CachedRecord
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="cache/codec")


def encode(payload: Mapping[str, Any], produced_at_iso: str) -> str:
    return json.dumps({"payload": payload, "cachedAtIso": produced_at_iso}, ensure_ascii=False)


def decode(raw: Union[str, bytes, None]) -> Optional[CachedRecord]:
    """Return the record, or None for anything that is not a well-formed envelope.

    Malformed input is logged as a warning and otherwise treated like a miss.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.warning("Discarding cached record that is not valid UTF-8")
            return None
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning(f"Discarding cached record that is not valid JSON: {exc}")
        return None

    if not isinstance(data, dict):
        logger.warning("Discarding cached record that is not a JSON object")
        return None
    payload = data.get("payload")
    cached_at_iso = data.get("cachedAtIso")
    if payload is None:
        logger.warning("Discarding cached record without a payload")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Discarding cached record with a non-object payload ({type(payload).__name__})")
        return None
    if not isinstance(cached_at_iso, str) or not cached_at_iso:
        logger.warning("Discarding cached record without cachedAtIso")
        return None
    return CachedRecord(payload=payload, cached_at_iso=cached_at_iso)
