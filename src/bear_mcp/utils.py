"""Utility functions for the Bear Notes MCP server."""

import datetime
import re
from datetime import timezone
from typing import List, Optional

# Core Data stores instants as seconds since 2001-01-01T00:00:00Z
CORE_DATA_EPOCH = datetime.datetime(2001, 1, 1, tzinfo=timezone.utc)

_WHITESPACE_RUN = re.compile(r"\s+")


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC."""
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


def core_data_to_datetime(timestamp: Optional[float]) -> datetime.datetime:
    """Convert a Core Data timestamp to an aware UTC datetime.

    Missing timestamps map to the Core Data epoch so that sorting by
    recency stays total.
    """
    if timestamp is None:
        return CORE_DATA_EPOCH
    return CORE_DATA_EPOCH + datetime.timedelta(seconds=float(timestamp))


def datetime_to_core_data(dt_value: datetime.datetime) -> float:
    """Convert a datetime to a Core Data timestamp (naive values are UTC)."""
    return (ensure_timezone_aware(dt_value) - CORE_DATA_EPOCH).total_seconds()


def collapse_whitespace(text: str) -> str:
    """Replace runs of whitespace (including newlines) with single spaces."""
    return _WHITESPACE_RUN.sub(" ", text).strip()


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated tool argument into stripped, non-empty items.

    Returns None when nothing is left so callers can treat the argument
    as not supplied.
    """
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None
