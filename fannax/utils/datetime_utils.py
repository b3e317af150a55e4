"""
Datetime utility functions.
Provides replacements for deprecated datetime functions.
"""

from datetime import datetime
from typing import Optional
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC datetime.

    Naive values are assumed to already be in UTC (some drivers, e.g. SQLite,
    drop the offset on the way back from the database).

    Args:
        value: Datetime to normalize, or None

    Returns:
        Aware UTC datetime, or None if value is None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def parse_provider_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a provider timestamp into an aware UTC datetime.

    Accepts ISO 8601 strings ("2026-01-21T19:45:00Z") and the provider's
    space-separated form ("2026-01-21 19:45:00"), which is always UTC.

    Args:
        value: Timestamp string

    Returns:
        Aware UTC datetime, or None if the value is empty or unparseable
    """
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_utc(parsed)
