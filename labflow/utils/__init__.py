"""Utility modules for the application."""

from labflow.utils.timezone import (
    LAB_TZ,
    utcnow,
    now_local,
    utc_to_local,
    format_local,
    get_timezone_info
)

__all__ = [
    "LAB_TZ",
    "utcnow",
    "now_local",
    "utc_to_local",
    "format_local",
    "get_timezone_info"
]
