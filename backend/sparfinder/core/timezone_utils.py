"""
Timezone helpers.

All timestamps are stored in UTC. Some backends (SQLite) hand back naive
datetimes, so anything that compares or serialises stored timestamps goes
through ``ensure_utc`` first.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes and normalise aware ones to UTC.

    Args:
        dt: Datetime read from the database or built in Python

    Returns:
        Aware UTC datetime, or None when dt is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
