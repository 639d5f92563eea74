"""
Timestamp utilities for consistent time handling across the memory engine.

All stored timestamps are ISO-8601 strings in UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: Optional[datetime] = None) -> str:
    """Convert datetime to ISO-8601 string.

    Args:
        moment: datetime to convert (optional, uses current time if None).
            Naive datetimes are assumed to be UTC.

    Returns:
        ISO-8601 timestamp string
    """
    if moment is None:
        moment = utc_now()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime.

    Args:
        value: Timestamp string, 'Z' suffix accepted

    Returns:
        Aware datetime, or None if the value is empty or unparseable
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def days_since(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Fractional days elapsed between an ISO timestamp and now.

    Returns:
        Elapsed days, or None if the timestamp cannot be parsed
    """
    parsed = parse_iso(value)
    if parsed is None:
        return None
    if now is None:
        now = utc_now()
    return (now - parsed).total_seconds() / SECONDS_PER_DAY


def days_ago_iso(days: int, now: Optional[datetime] = None) -> str:
    """ISO timestamp for the moment `days` days before now."""
    if now is None:
        now = utc_now()
    return to_iso(now - timedelta(days=days))


def sort_key(value: Optional[str]) -> float:
    """Epoch seconds for ordering; unparseable timestamps sort oldest."""
    parsed = parse_iso(value)
    return parsed.timestamp() if parsed else float('-inf')
