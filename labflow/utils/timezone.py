"""
Timezone utilities.

Timestamps are stored as naive UTC. Anything shown to lab staff or printed
on a report is converted to the laboratory's configured timezone.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from labflow.config import settings

LAB_TZ = ZoneInfo(settings.LAB_TIMEZONE)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for all audit timestamps."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_local() -> datetime:
    """Get current datetime in the lab's timezone."""
    return datetime.now(LAB_TZ)


def utc_to_local(dt: datetime) -> datetime:
    """
    Convert a UTC datetime to the lab's timezone.

    Args:
        dt: A datetime object (naive assumed UTC, or timezone-aware)

    Returns:
        datetime in the lab's timezone
    """
    if dt is None:
        return None

    # If naive, assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(LAB_TZ)


def format_local(dt: datetime, fmt: str = "%d/%m/%Y %H:%M") -> str:
    """Format a stored UTC datetime for display in the lab's timezone."""
    if dt is None:
        return None

    return utc_to_local(dt).strftime(fmt)


def get_timezone_info() -> dict:
    """Get current timezone information."""
    now = now_local()
    return {
        "timezone": settings.LAB_TIMEZONE,
        "abbreviation": now.strftime("%Z"),
        "utc_offset": now.strftime("%z"),
        "current_time": now.isoformat()
    }
