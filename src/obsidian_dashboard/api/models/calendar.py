"""Pydantic models for the calendar grid and event editor endpoints."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from obsidian_dashboard.calendar_view import WeekView
from obsidian_dashboard.models import DEFAULT_EVENT_COLOR, CalendarEvent, EventColor, EventSource
from obsidian_dashboard.reconcile import RefreshReport


class EventResponse(BaseModel):
    """One merged event as rendered in a day column or the editor."""

    id: str
    source: EventSource
    title: str
    start: dt.datetime
    end: dt.datetime | None = None
    description: str | None = None
    color: EventColor

    @classmethod
    def from_event(cls, event: CalendarEvent) -> EventResponse:
        return cls(
            id=event.id,
            source=event.source,
            title=event.title,
            start=event.start,
            end=event.end,
            description=event.description,
            color=event.color,
        )


class DayResponse(BaseModel):
    date: dt.date
    is_today: bool
    events: list[EventResponse] = Field(default_factory=list)


class WeekResponse(BaseModel):
    """A Monday-starting week of the calendar grid."""

    start: dt.date
    end: dt.date
    prev_week: dt.date
    next_week: dt.date
    connected: bool
    days: list[DayResponse]

    @classmethod
    def from_view(cls, view: WeekView, *, connected: bool) -> WeekResponse:
        return cls(
            start=view.start,
            end=view.end,
            prev_week=view.prev_week,
            next_week=view.next_week,
            connected=connected,
            days=[
                DayResponse(
                    date=column.day,
                    is_today=column.is_today,
                    events=[EventResponse.from_event(event) for event in column.events],
                )
                for column in view.days
            ],
        )


class RefreshResponse(BaseModel):
    generation: int
    applied: bool
    local_count: int
    remote_count: int
    local_error: str | None = None
    remote_error: str | None = None

    @classmethod
    def from_report(cls, report: RefreshReport) -> RefreshResponse:
        return cls(
            generation=report.generation,
            applied=report.applied,
            local_count=report.local_count,
            remote_count=report.remote_count,
            local_error=report.local_error.message if report.local_error else None,
            remote_error=report.remote_error.message if report.remote_error else None,
        )


class EventDefaultsResponse(BaseModel):
    """Pre-filled editor values for a new event."""

    date: dt.date
    start_time: str
    end_time: str
    color: EventColor = DEFAULT_EVENT_COLOR
    destination: EventSource


class EventFormRequest(BaseModel):
    """Editor form body: same-day ``HH:MM`` times on a base date."""

    title: str | None = None
    description: str | None = None
    color: str | None = None
    start_time: str
    end_time: str


class EventCreateRequest(EventFormRequest):
    date: dt.date


class DeleteEventResponse(BaseModel):
    deleted: bool
