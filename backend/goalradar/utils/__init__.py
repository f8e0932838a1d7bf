from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Make a naive datetime timezone-aware (UTC). Already-aware datetimes pass through.

    API-Football kickoff strings carry an offset, but cached payloads written by
    collaborators sometimes drop it. Wrap values with ensure_utc() before doing
    arithmetic against utcnow(), which is tz-aware.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_utc(value: str | datetime | None) -> datetime | None:
    """Parse an ISO 8601 string or datetime into a tz-aware UTC datetime.

    Returns None for missing or unparseable values instead of raising, since
    upstream kickoff fields are optional.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    try:
        return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        return None


def safe_float(value: Any) -> float | None:
    """Float conversion that tolerates None, blanks, and percent suffixes.

    NaN and infinities (json.loads accepts both) come back as None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace("%", "")
        if not text:
            return None
        try:
            number = float(text)
        except (TypeError, ValueError):
            return None
    if not math.isfinite(number):
        return None
    return number


def safe_int(value: Any) -> int | None:
    number = safe_float(value)
    if number is None:
        return None
    return int(number)


def dig(data: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing."""
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
