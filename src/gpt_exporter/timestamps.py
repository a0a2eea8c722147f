"""Timestamp helpers for front matter and export tracking.

Export timestamps are Unix seconds with a fractional part
(e.g. 1770126827.760625). Some sources hand them over as numeric strings
or ISO-8601 strings instead. Nothing here raises on bad input.
"""

import math
from datetime import datetime, timezone
from typing import Any

TRUNCATED_FORMAT = "%Y-%m-%dT%H:%M"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_iso(value: str) -> datetime | None:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def parse_timestamp(value: Any) -> float | None:
    """Convert a timestamp in any accepted form to Unix seconds.

    Args:
        value: Number, numeric string, or ISO-8601 string

    Returns:
        Seconds since the epoch, or None if the value can't be interpreted
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        try:
            seconds = float(value.strip())
        except ValueError:
            dt = _parse_iso(value)
            if dt is None:
                return None
            seconds = dt.timestamp()
    else:
        return None

    if not math.isfinite(seconds):
        return None
    return seconds


def format_truncated_date(value: Any, now: datetime | None = None) -> str:
    """Format a timestamp as YYYY-MM-DDTHH:MM in UTC.

    Missing, zero or unparseable values fall back to the current time.

    Example:
        format_truncated_date(1770126827.760625) -> "2026-02-03T13:53"
    """
    seconds = parse_timestamp(value) if value else None
    if seconds is not None:
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(TRUNCATED_FORMAT)
        except (OverflowError, OSError, ValueError):
            pass
    return (now or utc_now()).astimezone(timezone.utc).strftime(TRUNCATED_FORMAT)


def get_chronum(value: Any) -> int | None:
    """Integer-second creation time used as a sortable front matter field.

    Accepts ints, floats and numeric strings; anything else gives None.

    Example:
        get_chronum(1770126827.760625) -> 1770126827
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return math.floor(value) if math.isfinite(value) else None

    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return math.floor(parsed) if math.isfinite(parsed) else None

    return None
