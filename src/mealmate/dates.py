"""
MealMate - Calendar helpers.

Planned dates are stored as ISO-8601 date-times, but only the calendar
date carries meaning. They are written with a fixed noon-UTC suffix so
every record for the same day serializes identically, and compared as
parsed date values rather than string prefixes.
"""

import re
from datetime import date, datetime, time

# Fixed time-of-day written with every planned date
PLANNED_TIME_SUFFIX = "T12:00:00.000Z"

# "HH:MM", 24h, leading zero optional on the hour
TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def parse_day(value: str | date | None) -> date | None:
    """
    Extract the calendar date from a planned-date value.

    Accepts "YYYY-MM-DD", full ISO date-times (with or without a "Z"
    suffix), and date/datetime objects. The date is taken as written;
    no timezone conversion is applied. Returns None for empty or
    unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except ValueError:
        return None


def require_day(value: str | date) -> date:
    """Like parse_day, but raises ValueError instead of returning None."""
    parsed = parse_day(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def canonical_planned_date(day: date | str) -> str:
    """Serialize a calendar day as a planned-date string (noon UTC)."""
    return f"{require_day(day).isoformat()}{PLANNED_TIME_SUFFIX}"


def normalize_planned_date(value: str | date | None) -> str | date | None:
    """Canonical form of a parseable planned date; anything else is returned unchanged."""
    if parse_day(value) is None:
        return value
    return canonical_planned_date(value)


def is_valid_clock_time(value: str) -> bool:
    return bool(TIME_PATTERN.match(value))


def parse_clock_time(value: str) -> time:
    """Parse "HH:MM" into a time. Raises ValueError on bad input."""
    if not isinstance(value, str) or not is_valid_clock_time(value):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))
