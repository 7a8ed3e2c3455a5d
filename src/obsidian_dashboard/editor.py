"""Event editor helpers: default times and form-to-event conversion.

The editor works in same-day ``HH:MM`` wall-clock times on a base date.
An end time earlier than the start is kept on the same day; the user
corrects it.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from obsidian_dashboard.models import DEFAULT_EVENT_DURATION, CalendarEvent, EventInput
from obsidian_dashboard.timeutils import local_date, localize

_QUARTER_HOUR = 15


def round_up_to_quarter(now: datetime) -> datetime:
    """Next quarter hour at or after *now*'s minute (seconds are dropped)."""
    minutes = math.ceil(now.minute / _QUARTER_HOUR) * _QUARTER_HOUR
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(minutes=minutes)


def format_hhmm(value: datetime, tz: tzinfo | None = None) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(tz)
    return f"{value.hour:02d}:{value.minute:02d}"


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string, raising ``ValueError`` when malformed."""
    try:
        hour_text, minute_text = value.strip().split(":")
        return time(int(hour_text), int(minute_text))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM") from exc


def default_times(now: datetime) -> tuple[str, str]:
    """Start/end strings for a new event: next quarter hour, then one hour later."""
    start = round_up_to_quarter(now)
    return format_hhmm(start), format_hhmm(start + DEFAULT_EVENT_DURATION)


def editor_times(event: CalendarEvent, tz: tzinfo | None = None) -> tuple[str, str]:
    """Start/end strings pre-filled when editing *event*."""
    end = event.end or event.start + DEFAULT_EVENT_DURATION
    return format_hhmm(event.start, tz), format_hhmm(end, tz)


def combine(base_day: date, hhmm: str, tz: tzinfo | None = None) -> datetime:
    return localize(datetime.combine(base_day, parse_hhmm(hhmm)), tz)


def build_event_input(
    *,
    base_day: date,
    start_time: str,
    end_time: str,
    title: str | None = None,
    description: str | None = None,
    color: Any = None,
    tz: tzinfo | None = None,
) -> EventInput:
    """A new event on *base_day*; blank title and unknown colour get defaults."""
    return EventInput(
        title=title or "",
        start=combine(base_day, start_time, tz),
        end=combine(base_day, end_time, tz),
        description=description or None,
        color=color,
    )


def build_event_update(
    existing: CalendarEvent,
    *,
    start_time: str,
    end_time: str,
    title: str | None = None,
    description: str | None = None,
    color: Any = None,
    tz: tzinfo | None = None,
) -> CalendarEvent:
    """Edited copy of *existing*, keeping its id, provenance and base date."""
    base_day = local_date(existing.start, tz)
    return CalendarEvent(
        id=existing.id,
        source=existing.source,
        title=title or "",
        start=combine(base_day, start_time, tz),
        end=combine(base_day, end_time, tz),
        description=description or None,
        color=color if color is not None else existing.color,
    )
