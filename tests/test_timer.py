"""Tests for the pomodoro / stopwatch timer."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from obsidian_dashboard.timer import (
    POMODORO_DURATION,
    Timer,
    TimerMode,
    TimerSession,
    TimerState,
)

pytestmark = pytest.mark.unit

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# TimerState
# ---------------------------------------------------------------------------


class TestTimerState:
    def test_initial_state(self):
        state = TimerState()
        assert state.mode is TimerMode.pomodoro
        assert state.time_left == POMODORO_DURATION
        assert state.display == "25:00"
        assert state.progress == 0

    def test_toggle_twice_restores_state(self):
        state = TimerState(time_left=900)
        assert state.toggle().toggle() == state

    def test_paused_tick_is_a_no_op(self):
        state = TimerState(time_left=10)
        assert state.tick() is state

    def test_pomodoro_runs_down_and_pauses_at_zero(self):
        state = TimerState(time_left=2, is_active=True)
        state = state.tick()
        assert (state.time_left, state.is_active) == (1, True)
        state = state.tick()
        assert (state.time_left, state.is_active) == (0, False)
        assert state.tick().time_left == 0
        assert state.progress == 100

    def test_stopwatch_counts_up(self):
        state = TimerState(mode=TimerMode.stopwatch, is_active=True)
        for _ in range(61):
            state = state.tick()
        assert state.display == "01:01"
        assert state.progress == 100

    def test_reset_keeps_mode(self):
        state = TimerState(mode=TimerMode.stopwatch, time_elapsed=42, is_active=True)
        reset = state.reset()
        assert reset.mode is TimerMode.stopwatch
        assert (reset.time_elapsed, reset.time_left, reset.is_active) == (
            0,
            POMODORO_DURATION,
            False,
        )

    def test_switch_mode_is_idempotent(self):
        state = TimerState(time_left=30, is_active=True)
        once = state.switch_mode(TimerMode.stopwatch)
        assert once == once.switch_mode(TimerMode.stopwatch)
        assert not once.is_active
        assert once.time_elapsed == 0

    def test_switch_mode_accepts_plain_strings(self):
        assert TimerState().switch_mode("stopwatch").mode is TimerMode.stopwatch

    def test_progress_is_fraction_consumed(self):
        assert TimerState(time_left=POMODORO_DURATION // 2).progress == 50


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


class TestTimer:
    async def test_ticking_task_exists_only_while_active(self):
        timer = Timer(interval=0.01)
        assert not timer.ticking

        timer.toggle()
        assert timer.ticking
        await asyncio.sleep(0.05)
        assert timer.state.time_left < POMODORO_DURATION

        timer.toggle()
        assert not timer.ticking
        paused_at = timer.state.time_left
        await asyncio.sleep(0.03)
        assert timer.state.time_left == paused_at
        await timer.close()

    async def test_reset_and_switch_stop_ticking(self):
        timer = Timer(interval=0.01)
        timer.toggle()
        timer.reset()
        assert not timer.ticking
        assert timer.state == TimerState()

        timer.toggle()
        timer.switch_mode(TimerMode.stopwatch)
        assert not timer.ticking
        assert timer.state.mode is TimerMode.stopwatch
        await timer.close()

    async def test_stopwatch_ticks_up(self):
        timer = Timer(interval=0.01)
        timer.switch_mode(TimerMode.stopwatch)
        timer.toggle()
        await asyncio.sleep(0.05)
        await timer.close()
        assert timer.state.time_elapsed > 0
        assert not timer.ticking

    async def test_completion_fires_once(self):
        on_complete = AsyncMock()
        timer = Timer(interval=3600, on_complete=on_complete, clock=lambda: NOW)
        timer.toggle()

        for _ in range(POMODORO_DURATION + 5):
            await timer.tick()

        assert timer.state.time_left == 0
        assert not timer.state.is_active
        on_complete.assert_awaited_once_with(
            TimerSession(duration=POMODORO_DURATION, started_at=NOW, completed_at=NOW)
        )
        await timer.close()

    async def test_resuming_a_finished_pomodoro_does_not_complete_again(self):
        on_complete = AsyncMock()
        timer = Timer(interval=3600, on_complete=on_complete, clock=lambda: NOW)
        timer.toggle()
        for _ in range(POMODORO_DURATION):
            await timer.tick()
        assert on_complete.await_count == 1

        resumed = timer.toggle()
        assert resumed.is_active
        assert resumed.time_left == 0
        after = await timer.tick()

        assert after.time_left == 0
        assert not after.is_active
        assert on_complete.await_count == 1
        await timer.close()
        assert not timer.ticking

    async def test_completion_hook_failure_is_contained(self):
        timer = Timer(interval=3600, on_complete=AsyncMock(side_effect=RuntimeError("db down")))
        timer.toggle()
        for _ in range(POMODORO_DURATION):
            await timer.tick()
        assert timer.state.time_left == 0
        await timer.close()

    async def test_observers_see_every_change(self):
        timer = Timer(interval=3600)
        seen: list[TimerState] = []
        timer.add_observer(seen.append)
        timer.toggle()
        await timer.tick()
        timer.remove_observer(seen.append)
        timer.toggle()

        assert [state.is_active for state in seen] == [True, True]
        assert seen[-1].time_left == POMODORO_DURATION - 1
        await timer.close()

    async def test_close_cancels_task(self):
        timer = Timer(interval=3600)
        timer.toggle()
        await timer.close()
        await timer.close()
        assert not timer.ticking
