"""
Utility functions shared by extraction and rendering.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def parse_timestamp(timestamp: Optional[Any]) -> Optional[datetime]:
    """
    Parse a ChatGPT timestamp (supports both Unix epoch and ISO strings).

    ChatGPT API returns timestamps in two formats:
    - Unix epoch: 1766681665.991872 (float)
    - ISO string: "2025-12-30T22:12:41.767145Z"

    Parameters
    ----
    timestamp : float, str, or None
        Timestamp value from ChatGPT API

    Returns
    ----
    datetime or None
        Timezone-aware UTC datetime, or None if parsing fails
    """
    if timestamp is None or timestamp == "":
        return None

    try:
        if isinstance(timestamp, (int, float)):
            return datetime.fromtimestamp(float(timestamp), tz=timezone.utc)
        if isinstance(timestamp, str):
            if timestamp.endswith("Z"):
                timestamp = timestamp[:-1] + "+00:00"
            parsed = datetime.fromisoformat(timestamp)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    except (ValueError, TypeError, OSError) as e:
        logger.debug("Could not parse ChatGPT timestamp %s: %s", timestamp, e)

    return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string or None."""
    return value.isoformat() if value else None


def safe_filename(name: Optional[str], fallback: str = "file") -> str:
    """
    Make a string safe to use as a single archive path component.

    Parameters
    ----
    name : str, optional
        Original file name (may contain separators or control characters)
    fallback : str
        Name used when nothing usable remains

    Returns
    ----
    str
        Sanitized name, at most 120 characters
    """
    if not name:
        return fallback
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip(" .")
    if not cleaned:
        return fallback
    if len(cleaned) > 120:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and len(ext) <= 10:
            cleaned = stem[: 119 - len(ext)] + "." + ext
        else:
            cleaned = cleaned[:120]
    return cleaned
