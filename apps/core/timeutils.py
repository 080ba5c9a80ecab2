"""
Date and time-of-day helpers.

Shift windows are expressed as minutes since midnight (0-1440). Dates travel
to the backend as ISO datetimes; only the calendar date is meaningful.
"""

from __future__ import annotations

import calendar
import math
import re
from datetime import date, datetime, timedelta

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def to_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``HH:mm``."""
    hours, mins = divmod(int(minutes), 60)
    return f"{hours:02d}:{mins:02d}"


def to_minutes(hhmm: str) -> int:
    """Convert ``HH:mm`` to minutes. A missing minute part counts as zero."""
    hours, _, mins = hhmm.strip().partition(":")
    return int(hours) * 60 + (int(mins) if mins else 0)


def parse_hhmm(value: str | None) -> int | None:
    """Strict ``HH:mm`` parser used for form input. Returns None when invalid."""
    match = _HHMM_RE.match((value or "").strip())
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_dates(monday: date) -> list[date]:
    return [monday + timedelta(days=i) for i in range(7)]


def end_of_week(day: date) -> date:
    return monday_of(day) + timedelta(days=6)


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def end_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def next_monday(today: date) -> date:
    """The Monday strictly after ``today`` (a Monday maps to the following week)."""
    return today + timedelta(days=7 - today.weekday())


def parse_day(value: str | None, default: date | None = None) -> date | None:
    """Parse ``YYYY-MM-DD`` (or the date part of an ISO datetime)."""
    if not value:
        return default
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return default


def iso_datetime(day: date, hour: int = 0) -> str:
    """Render a calendar date as the ISO datetime the backend expects."""
    return datetime(day.year, day.month, day.day, hour).strftime("%Y-%m-%dT%H:00:00.000Z")


def minutes_to_hours(minutes) -> float:
    if not minutes or not isinstance(minutes, (int, float)) or not math.isfinite(minutes):
        return 0
    return round(minutes / 60, 2)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open interval overlap of two minute windows."""
    return a_start < b_end and a_end > b_start


def format_window(start_minutes: int, end_minutes: int) -> str:
    return f"{to_hhmm(start_minutes)} - {to_hhmm(end_minutes)}"
