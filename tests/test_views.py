"""Tests for the clock face, the event editor helpers and the week grid."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from obsidian_dashboard.calendar_view import build_week, events_on
from obsidian_dashboard.clock import clock_face
from obsidian_dashboard.editor import (
    build_event_input,
    build_event_update,
    default_times,
    editor_times,
    parse_hhmm,
    round_up_to_quarter,
)
from obsidian_dashboard.models import CalendarEvent, EventColor, EventSource

pytestmark = pytest.mark.unit


def _event(event_id: str, start: datetime, source: EventSource = EventSource.local):
    return CalendarEvent(id=event_id, title=event_id, start=start, source=source)


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class TestClockFace:
    @pytest.mark.parametrize(
        ("hour", "hours", "meridiem"),
        [(0, "12", "AM"), (1, "01", "AM"), (11, "11", "AM"), (12, "12", "PM"), (23, "11", "PM")],
    )
    def test_twelve_hour_rendering(self, hour, hours, meridiem):
        face = clock_face(datetime(2024, 1, 1, hour, 7))
        assert face.hours == hours
        assert face.minutes == "07"
        assert face.meridiem == meridiem


# ---------------------------------------------------------------------------
# Editor
# ---------------------------------------------------------------------------


class TestDefaultTimes:
    def test_rounds_up_to_next_quarter(self):
        assert round_up_to_quarter(datetime(2024, 1, 1, 9, 7)) == datetime(2024, 1, 1, 9, 15)

    def test_exact_quarter_is_kept(self):
        assert round_up_to_quarter(datetime(2024, 1, 1, 9, 30, 45)) == datetime(2024, 1, 1, 9, 30)

    def test_rolls_over_the_hour(self):
        assert round_up_to_quarter(datetime(2024, 1, 1, 9, 50)) == datetime(2024, 1, 1, 10, 0)

    def test_default_times_span_one_hour(self):
        assert default_times(datetime(2024, 1, 1, 9, 7)) == ("09:15", "10:15")

    def test_default_times_wrap_past_midnight(self):
        assert default_times(datetime(2024, 1, 1, 23, 50)) == ("00:00", "01:00")


class TestParseHHMM:
    def test_parses(self):
        assert parse_hhmm("07:45").hour == 7

    @pytest.mark.parametrize("value", ["", "7", "25:00", "ab:cd", "10:61"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_hhmm(value)


class TestBuildEvent:
    def test_new_event_on_base_day(self):
        event = build_event_input(
            base_day=date(2024, 1, 3), start_time="09:00", end_time="10:30", tz=UTC
        )
        assert event.start == datetime(2024, 1, 3, 9, 0, tzinfo=UTC)
        assert event.end == datetime(2024, 1, 3, 10, 30, tzinfo=UTC)
        assert event.title == "New Event"
        assert event.color is EventColor.blue
        assert event.id is None

    def test_end_before_start_stays_on_same_day(self):
        event = build_event_input(
            base_day=date(2024, 1, 3), start_time="22:00", end_time="01:00", tz=UTC
        )
        assert event.end.date() == date(2024, 1, 3)

    def test_malformed_time_raises_value_error(self):
        with pytest.raises(ValueError):
            build_event_input(base_day=date(2024, 1, 3), start_time="9", end_time="10:00")

    def test_update_keeps_id_source_and_day(self):
        existing = _event("g1", datetime(2024, 1, 3, 9, 0, tzinfo=UTC), EventSource.remote)
        edited = build_event_update(
            existing, start_time="14:00", end_time="15:00", title="Moved", color="red", tz=UTC
        )
        assert edited.key == ("remote", "g1")
        assert edited.start == datetime(2024, 1, 3, 14, 0, tzinfo=UTC)
        assert edited.color is EventColor.red

    def test_update_base_day_follows_timezone(self):
        plus_two = timezone(timedelta(hours=2))
        existing = _event("a", datetime(2024, 1, 3, 23, 0, tzinfo=UTC))
        edited = build_event_update(existing, start_time="08:00", end_time="09:00", tz=plus_two)
        assert edited.start == datetime(2024, 1, 4, 8, 0, tzinfo=plus_two)

    def test_editor_times_prefill(self):
        existing = _event("a", datetime(2024, 1, 3, 9, 5, tzinfo=UTC))
        assert editor_times(existing, UTC) == ("09:05", "10:05")

    def test_blank_id_is_rejected_for_updates(self):
        with pytest.raises(ValidationError):
            CalendarEvent(id="", start=datetime(2024, 1, 1, tzinfo=UTC), source=EventSource.local)


# ---------------------------------------------------------------------------
# Week grid
# ---------------------------------------------------------------------------


class TestWeekGrid:
    def test_events_grouped_by_start_day_and_sorted(self):
        events = [
            _event("late", datetime(2024, 1, 2, 18, 0, tzinfo=UTC)),
            _event("early", datetime(2024, 1, 2, 8, 0, tzinfo=UTC)),
            _event("other", datetime(2024, 1, 5, 8, 0, tzinfo=UTC)),
        ]
        assert [e.id for e in events_on(events, date(2024, 1, 2), UTC)] == ["early", "late"]

    def test_build_week(self):
        events = [
            _event("a", datetime(2024, 1, 1, 9, 0, tzinfo=UTC)),
            _event("g1", datetime(2024, 1, 7, 9, 0, tzinfo=UTC), EventSource.remote),
            _event("next", datetime(2024, 1, 8, 9, 0, tzinfo=UTC)),
        ]
        view = build_week(events, date(2024, 1, 3), today=date(2024, 1, 1), tz=UTC)

        assert view.start == date(2024, 1, 1)
        assert view.end == date(2024, 1, 7)
        assert view.prev_week == date(2023, 12, 27)
        assert view.next_week == date(2024, 1, 10)
        assert [column.is_today for column in view.days].count(True) == 1
        assert view.days[0].is_today
        assert view.event_count == 2
        assert [e.id for e in view.days[6].events] == ["g1"]
