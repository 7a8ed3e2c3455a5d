"""Week grid over the merged event collection."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, tzinfo

from obsidian_dashboard.models import CalendarEvent
from obsidian_dashboard.timeutils import is_same_day, shift_week, week_days


@dataclass(frozen=True)
class DayColumn:
    day: date
    is_today: bool
    events: list[CalendarEvent] = field(default_factory=list)


@dataclass(frozen=True)
class WeekView:
    anchor: date
    days: list[DayColumn]

    @property
    def start(self) -> date:
        return self.days[0].day

    @property
    def end(self) -> date:
        return self.days[-1].day

    @property
    def prev_week(self) -> date:
        return shift_week(self.anchor, -1)

    @property
    def next_week(self) -> date:
        return shift_week(self.anchor, 1)

    @property
    def event_count(self) -> int:
        return sum(len(column.events) for column in self.days)


def events_on(
    events: Iterable[CalendarEvent], day: date, tz: tzinfo | None = None
) -> list[CalendarEvent]:
    """Events whose start falls on *day*, earliest first."""
    matching = [event for event in events if is_same_day(event.start, day, tz)]
    return sorted(matching, key=lambda event: event.start)


def build_week(
    events: Iterable[CalendarEvent],
    anchor: date,
    *,
    today: date,
    tz: tzinfo | None = None,
) -> WeekView:
    """The Monday-starting week containing *anchor*."""
    events = list(events)
    days = [
        DayColumn(day=day, is_today=day == today, events=events_on(events, day, tz))
        for day in week_days(anchor)
    ]
    return WeekView(anchor=anchor, days=days)
