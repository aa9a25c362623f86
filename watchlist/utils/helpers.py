# watchlist/utils/helpers.py

import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Placeholder strings older clients stored instead of a missing image
_EMPTY_IMAGE_MARKERS = {"null", "undefined", "none", "false", "0"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# --- Time ---

def utc_now() -> datetime:
    """Current UTC time, truncated to milliseconds as BSON stores it."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def as_utc(value: Any) -> datetime:
    """
    Coerces a stored timestamp into an aware UTC datetime for comparisons.

    pymongo returns naive UTC datetimes, freshly built documents carry aware
    ones, and legacy documents store ISO strings. Unparseable or missing
    values sort as the epoch.

    Args:
        value: A datetime, an ISO 8601 string, or None.

    Returns:
        An aware datetime in UTC.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            return as_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
        except ValueError:
            logger.debug(f"Unparseable timestamp '{value}', sorting it as epoch.")
    return _EPOCH


# --- Text ---

def normalize_text(text: Optional[str]) -> Optional[str]:
    """Lowercases and strips a string; None stays None."""
    if text is None:
        return None
    return text.lower().strip()


def exact_name_pattern(name: str) -> dict:
    """MongoDB filter matching `name` exactly but case-insensitively."""
    return {"$regex": f"^{re.escape(name)}$", "$options": "i"}


def normalize_image_url(value: Any) -> Optional[str]:
    """
    Returns a usable image reference, or None for empty and legacy placeholder values.

    Args:
        value: Raw `image`/`imageUrl` value as stored.

    Returns:
        The trimmed URL, or None.
    """
    if not value or not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed or trimmed.lower() in _EMPTY_IMAGE_MARKERS:
        return None
    return trimmed
