"""
Time model: everything the engine compares is reduced to whole minutes.

Clock times ("HH:MM") become minutes since midnight and timestamps become
elapsed minutes relative to a caller-supplied "now". Malformed input is
treated as zero rather than raising.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hhmm_to_minutes(value: Optional[str]) -> int:
    """Convert "HH:MM" to minutes since midnight; anything unparseable is 0."""
    if not value:
        return 0
    try:
        hours, minutes = value.strip().split(":")[:2]
        total = int(hours) * 60 + int(minutes)
    except (AttributeError, ValueError):
        logger.debug("Unparseable clock time %r treated as 00:00", value)
        return 0
    return max(total, 0)


def elapsed_minutes(started_at: Optional[datetime], now: datetime) -> int:
    """Whole minutes between ``started_at`` and ``now``, floored, never negative."""
    if started_at is None:
        return 0
    seconds = (now - started_at).total_seconds()
    return max(int(seconds // 60), 0)


def weekday_name(date_str: Optional[str]) -> Optional[str]:
    """Lower-case weekday name for a YYYY-MM-DD date, or None if malformed."""
    if not date_str:
        return None
    try:
        return WEEKDAY_NAMES[date.fromisoformat(date_str).weekday()]
    except (TypeError, ValueError):
        return None


def parse_timestamp(value) -> Optional[datetime]:
    """Accept datetimes or ISO strings; naive values are assumed UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
