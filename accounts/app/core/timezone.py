"""Display timezone conversion for client-facing timestamps."""

from datetime import datetime, timezone
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo

from accounts.app.core.config import settings


@lru_cache
def _display_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def as_utc(value: datetime) -> datetime:
    """Normalize a stored timestamp to an aware UTC datetime.

    Some drivers (SQLite) hand back naive datetimes even for timezone-aware
    columns; those are UTC by construction.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_display(value: Optional[datetime]) -> Optional[str]:
    """Render a stored timestamp as ISO-8601 in the display timezone.

    Example: 2024-01-01 12:00 UTC -> "2024-01-01T07:00:00-05:00".
    """
    if value is None:
        return None
    zone = _display_zone(settings.display_timezone)
    return as_utc(value).astimezone(zone).isoformat(timespec="seconds")
