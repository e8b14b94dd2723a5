"""
Timezone-aware datetime utilities.

Signature timestamps arrive from Supabase rows and browser payloads in a
mix of formats; everything is normalized to aware UTC here.
"""
from datetime import datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def parse_db_timestamp(value: Optional[Union[str, int, float, datetime]]) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Handles:
    - ISO format strings with Z suffix or an explicit offset
    - Naive datetimes (assumed UTC)
    - Epoch milliseconds (browser Date.now())

    Returns:
        Timezone-aware datetime in UTC, or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        if not value:
            return None
        value = value.replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            return None
    elif isinstance(value, datetime):
        dt = value
    else:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def timestamp_millis(value: Optional[datetime] = None) -> int:
    """Epoch milliseconds, used as the storage key prefix for signed files."""
    return int((value or utc_now()).timestamp() * 1000)
