"""Tests for the canonical event and todo shapes."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from obsidian_dashboard.models import (
    CalendarEvent,
    EventColor,
    EventInput,
    EventSource,
    Todo,
    coerce_color,
)

pytestmark = pytest.mark.unit

START = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


class TestCoerceColor:
    @pytest.mark.parametrize("color", list(EventColor))
    def test_palette_values_pass_through(self, color):
        assert coerce_color(color.value) is color

    @pytest.mark.parametrize("value", ["#3b82f6", "teal", "", None, 9])
    def test_unknown_values_fall_back_to_blue(self, value):
        assert coerce_color(value) is EventColor.blue

    def test_is_case_insensitive(self):
        assert coerce_color(" Red ") is EventColor.red


class TestEventInput:
    def test_blank_title_defaults(self):
        event = EventInput(title="   ", start=START)
        assert event.title == "New Event"

    def test_missing_end_defaults_to_one_hour(self):
        event = EventInput(start=START)
        assert event.end == START + timedelta(hours=1)

    def test_explicit_end_is_kept(self):
        end = START + timedelta(minutes=30)
        assert EventInput(start=START, end=end).end == end

    def test_naive_datetimes_become_utc(self):
        event = EventInput(start=datetime(2024, 1, 1, 9, 0))
        assert event.start.tzinfo is UTC

    def test_unknown_color_becomes_blue(self):
        assert EventInput(start=START, color="#ef4444").color is EventColor.blue

    def test_is_immutable(self):
        event = EventInput(start=START)
        with pytest.raises(ValidationError):
            event.title = "changed"  # type: ignore[misc]


class TestCalendarEvent:
    def test_key_pairs_source_and_id(self):
        event = CalendarEvent(id="a", start=START, source=EventSource.local)
        assert event.key == (EventSource.local, "a")

    def test_requires_non_empty_id(self):
        with pytest.raises(ValidationError):
            CalendarEvent(id="", start=START, source=EventSource.remote)

    def test_to_input_drops_provenance(self):
        event = CalendarEvent(
            id="g1", title="Standup", start=START, source=EventSource.remote, color="green"
        )
        as_input = event.to_input()
        assert type(as_input) is EventInput
        assert as_input.id == "g1"
        assert as_input.color is EventColor.green


class TestTodo:
    def test_defaults_to_not_completed(self):
        todo = Todo(id="t1", text="Buy milk", created_at=datetime(2024, 1, 1))
        assert todo.completed is False
        assert todo.created_at.tzinfo is UTC
