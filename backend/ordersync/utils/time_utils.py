"""Time utilities. All timestamps are timezone-aware UTC."""

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert a datetime to UTC (assumes UTC if naive)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
