"""Canonical dashboard data shapes shared by both event sources and the API."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_EVENT_TITLE = "New Event"
DEFAULT_EVENT_DURATION = timedelta(hours=1)


class EventColor(StrEnum):
    """The fixed six-colour palette used by local and remote events alike."""

    red = "red"
    blue = "blue"
    green = "green"
    yellow = "yellow"
    purple = "purple"
    gray = "gray"


DEFAULT_EVENT_COLOR = EventColor.blue


class EventSource(StrEnum):
    """Provenance tag: which adapter owns an event and receives its mutations."""

    local = "local"
    remote = "remote"


def coerce_color(value: Any) -> EventColor:
    """Return the palette entry for *value*, falling back to blue."""
    if isinstance(value, EventColor):
        return value
    if isinstance(value, str):
        try:
            return EventColor(value.strip().lower())
        except ValueError:
            pass
    return DEFAULT_EVENT_COLOR


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values pass through unchanged."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class EventInput(BaseModel):
    """Event fields as produced by the editor, before an adapter assigns provenance.

    ``id`` is optional: the local store generates one on insert and the
    remote provider assigns its own.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    title: str = DEFAULT_EVENT_TITLE
    start: datetime
    end: datetime | None = None
    description: str | None = None
    color: EventColor = DEFAULT_EVENT_COLOR

    @field_validator("title", mode="before")
    @classmethod
    def _default_blank_title(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return DEFAULT_EVENT_TITLE
        return value.strip()

    @field_validator("color", mode="before")
    @classmethod
    def _coerce_color(cls, value: Any) -> EventColor:
        return coerce_color(value)

    @field_validator("start", "end")
    @classmethod
    def _ensure_aware(cls, value: datetime | None) -> datetime | None:
        return ensure_aware(value) if value is not None else None

    @model_validator(mode="after")
    def _default_end(self) -> EventInput:
        if self.end is None:
            # Frozen model: bypass the immutability guard during validation only.
            object.__setattr__(self, "end", self.start + DEFAULT_EVENT_DURATION)
        return self


class CalendarEvent(EventInput):
    """One entry of the merged collection.

    ``source`` together with ``id`` is the true key: ids are unique per
    provenance but may collide across sources.
    """

    id: str = Field(min_length=1)
    source: EventSource

    @property
    def key(self) -> tuple[EventSource, str]:
        return (self.source, self.id)

    def to_input(self) -> EventInput:
        return EventInput(
            id=self.id,
            title=self.title,
            start=self.start,
            end=self.end,
            description=self.description,
            color=self.color,
        )


class Todo(BaseModel):
    """A to-do row; ordering is by ``created_at`` ascending."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    completed: bool = False
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _ensure_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)
