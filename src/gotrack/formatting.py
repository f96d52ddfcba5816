"""Display helpers for upcoming trips."""

from datetime import datetime
from typing import Optional

from .models import Direction, ScheduleRelationship, delay_to_minutes

MISSING_TIME = "--"

DIRECTION_LABELS = {
    Direction.ALL: "All Directions",
    Direction.INBOUND: "Inbound Only",
    Direction.OUTBOUND: "Outbound Only",
}


def format_time(seconds: Optional[int], fmt: str = "%I:%M %p") -> str:
    """Format a Unix timestamp as local short time (e.g. "8:14 PM"), or "--"."""
    if not seconds or seconds <= 0:
        return MISSING_TIME
    text = datetime.fromtimestamp(seconds).strftime(fmt)
    return text[1:] if text.startswith("0") else text


def minutes_until(unix_time: int, now: float) -> int:
    """Whole minutes from ``now`` until ``unix_time``, never negative."""
    return max(0, int((unix_time - now) // 60))


def minutes_since(then: datetime, now: datetime) -> int:
    """Whole minutes elapsed between two datetimes, never negative."""
    return max(0, int((now - then).total_seconds() // 60))


def delay_text(delay_seconds: Optional[int]) -> str:
    """Return "Delay: N min" for late trips, or an empty string."""
    minutes = delay_to_minutes(delay_seconds)
    if minutes <= 0:
        return ""
    return f"Delay: {minutes} min"


def direction_label(direction: Direction) -> str:
    return DIRECTION_LABELS[direction]


def schedule_relationship_text(relationship: Optional[ScheduleRelationship]) -> str:
    if relationship is None:
        return ""
    if relationship.is_skipped:
        return "Skipped"
    return relationship.raw.replace("_", " ").title()


def updated_text(last_fetch: datetime, now: datetime) -> str:
    return f"Updated {minutes_since(last_fetch, now)} min ago"
