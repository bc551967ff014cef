"""Calendar helpers shared by the tracker and the aggregation engine."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Iterator

DATE_FMT = "%Y-%m-%d"
NIGHT_OWL_START_HOUR = 22
NIGHT_OWL_END_HOUR = 4

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def format_date(value: date | datetime) -> str:
    return value.strftime(DATE_FMT)


def parse_date(value: str) -> date:
    return datetime.strptime(value, DATE_FMT).date()


def elapsed_ms(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() * 1000)


def is_night_owl_hour(hour: int) -> bool:
    """True for hours in the 22:00-03:59 window."""
    return hour >= NIGHT_OWL_START_HOUR or hour < NIGHT_OWL_END_HOUR


def sunday_index(day: date) -> int:
    """Weekday index with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7


def day_name(day: date) -> str:
    return DAY_NAMES[sunday_index(day)]


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def week_bounds(today: date, offset: int = 0) -> tuple[date, date]:
    """Monday-to-Sunday week containing ``today``, shifted by ``offset`` weeks."""
    monday = today - timedelta(days=today.weekday()) + timedelta(weeks=offset)
    return monday, monday + timedelta(days=6)


def month_bounds(today: date, offset: int = 0) -> tuple[date, date]:
    index = today.year * 12 + (today.month - 1) + offset
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def year_bounds(today: date, offset: int = 0) -> tuple[date, date]:
    year = today.year + offset
    return date(year, 1, 1), date(year, 12, 31)


def month_label(day: date) -> str:
    return f"{calendar.month_name[day.month]} {day.year}"


def month_name(month: int) -> str:
    if 1 <= month <= 12:
        return calendar.month_name[month]
    return ""


def format_duration(ms: float) -> str:
    """Render milliseconds as ``1h 5m``, ``5m 3s`` or ``12s``."""
    total_seconds = int(ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def format_duration_short(ms: float) -> str:
    total_minutes = int(ms // 60000)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
