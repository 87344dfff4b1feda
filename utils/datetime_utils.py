"""
Datetime utilities for consistent timezone handling.
Reminder fire times are compared as timezone-aware UTC datetimes.
"""

import re
from datetime import datetime, timezone

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d\d:?\d\d$|$)")


def utc_now() -> datetime:
    """Current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """
    Treat naive datetimes as UTC.

    Args:
        dt: Datetime object (timezone-aware or naive)

    Returns:
        Timezone-aware datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")
    normalized = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), normalized
    )

    try:
        return ensure_aware(datetime.fromisoformat(normalized))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """ISO 8601 string of a datetime, naive values taken as UTC."""
    return ensure_aware(dt).isoformat()


def seconds_until(target: datetime, now: datetime) -> float:
    """Signed number of seconds from ``now`` to ``target``."""
    return (ensure_aware(target) - ensure_aware(now)).total_seconds()
