"""Pure time helpers used by the calendar grid, the timer and the clock."""

from __future__ import annotations

from datetime import date, datetime, timedelta, tzinfo


def format_time(seconds: int) -> str:
    """Render a second count as ``mm:ss`` (minutes are not wrapped at 60)."""
    seconds = max(int(seconds), 0)
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def week_start(day: date) -> date:
    """Return the Monday of the week containing *day*."""
    if isinstance(day, datetime):
        day = day.date()
    return day - timedelta(days=day.weekday())


def week_days(day: date) -> list[date]:
    """Return the Monday-starting 7-day window that contains *day*."""
    monday = week_start(day)
    return [monday + timedelta(days=offset) for offset in range(7)]


def shift_week(day: date, weeks: int) -> date:
    return day + timedelta(weeks=weeks)


def local_date(value: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of *value* as seen in *tz* (system local when omitted)."""
    if value.tzinfo is None:
        return value.date()
    return value.astimezone(tz).date()


def is_same_day(first: date | datetime, second: date | datetime, tz: tzinfo | None = None) -> bool:
    """True when both values fall on the same calendar day in *tz*."""
    first_day = local_date(first, tz) if isinstance(first, datetime) else first
    second_day = local_date(second, tz) if isinstance(second, datetime) else second
    return first_day == second_day


def date_key(day: date) -> str:
    """ISO ``YYYY-MM-DD`` key for a calendar day."""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def localize(value: datetime, tz: tzinfo | None = None) -> datetime:
    """Attach *tz* to a naive wall-clock time (system local when omitted)."""
    if value.tzinfo is not None:
        return value
    if tz is None:
        return value.astimezone()
    return value.replace(tzinfo=tz)
