"""Pomodoro / stopwatch timer.

:class:`TimerState` is the pure state machine; :class:`Timer` binds it to a
cancellable asyncio ticking task.  The ticking task exists exactly while the
state is active and is cancelled on pause, reset, mode switch and close.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum

from obsidian_dashboard.timeutils import format_time

logger = logging.getLogger(__name__)

POMODORO_DURATION = 25 * 60  # seconds
TICK_INTERVAL_SECONDS = 1.0


class TimerMode(StrEnum):
    pomodoro = "pomodoro"
    stopwatch = "stopwatch"


@dataclass(frozen=True)
class TimerState:
    mode: TimerMode = TimerMode.pomodoro
    time_left: int = POMODORO_DURATION
    time_elapsed: int = 0
    is_active: bool = False

    def toggle(self) -> TimerState:
        return replace(self, is_active=not self.is_active)

    def reset(self) -> TimerState:
        """Pause and restore both counters, keeping the mode."""
        return replace(self, is_active=False, time_left=POMODORO_DURATION, time_elapsed=0)

    def switch_mode(self, mode: TimerMode) -> TimerState:
        return TimerState(mode=TimerMode(mode))

    def tick(self) -> TimerState:
        """Advance one second.  Paused states are returned unchanged.

        A pomodoro that reaches zero pauses itself and stays at zero.
        """
        if not self.is_active:
            return self
        if self.mode is TimerMode.stopwatch:
            return replace(self, time_elapsed=self.time_elapsed + 1)
        time_left = max(self.time_left - 1, 0)
        return replace(self, time_left=time_left, is_active=time_left > 0)

    @property
    def display_seconds(self) -> int:
        return self.time_left if self.mode is TimerMode.pomodoro else self.time_elapsed

    @property
    def display(self) -> str:
        return format_time(self.display_seconds)

    @property
    def progress(self) -> float:
        """Percentage of the pomodoro consumed; a running stopwatch is always 100."""
        if self.mode is TimerMode.stopwatch:
            return 100.0
        return (POMODORO_DURATION - self.time_left) / POMODORO_DURATION * 100


@dataclass(frozen=True)
class TimerSession:
    """A pomodoro that ran down to zero."""

    duration: int
    started_at: datetime
    completed_at: datetime


StateObserver = Callable[[TimerState], None]
CompletionHook = Callable[[TimerSession], Awaitable[None]]


class Timer:
    """Drives a :class:`TimerState` with a one-second ticking task."""

    def __init__(
        self,
        *,
        interval: float = TICK_INTERVAL_SECONDS,
        on_complete: CompletionHook | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._interval = interval
        self._on_complete = on_complete
        self._clock = clock or (lambda: datetime.now(UTC))
        self._state = TimerState()
        self._task: asyncio.Task | None = None
        self._started_at: datetime | None = None
        self._observers: list[StateObserver] = []

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    def add_observer(self, observer: StateObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: StateObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def toggle(self) -> TimerState:
        new_state = self._state.toggle()
        if new_state.is_active and self._started_at is None:
            self._started_at = self._clock()
        return self._apply(new_state)

    def reset(self) -> TimerState:
        self._started_at = None
        return self._apply(self._state.reset())

    def switch_mode(self, mode: TimerMode) -> TimerState:
        self._started_at = None
        return self._apply(self._state.switch_mode(mode))

    async def tick(self) -> TimerState:
        """Apply one tick and fire the completion hook when a pomodoro ends.

        Only the tick that takes a running pomodoro from 1 to 0 completes it;
        resuming a pomodoro already at zero just pauses it again.
        """
        previous = self._state
        self._state = previous.tick()
        self._notify()

        finished = (
            previous.is_active
            and previous.mode is TimerMode.pomodoro
            and previous.time_left > 0
            and self._state.time_left == 0
        )
        if finished:
            await self._complete()
        return self._state

    async def _complete(self) -> None:
        completed_at = self._clock()
        session = TimerSession(
            duration=POMODORO_DURATION,
            started_at=self._started_at or completed_at,
            completed_at=completed_at,
        )
        self._started_at = None
        logger.info("Pomodoro finished")
        if self._on_complete is None:
            return
        try:
            await self._on_complete(session)
        except Exception:
            logger.warning("Recording the finished pomodoro failed", exc_info=True)

    def _apply(self, new_state: TimerState) -> TimerState:
        self._state = new_state
        if new_state.is_active:
            self._start_ticking()
        else:
            self._stop_ticking()
        self._notify()
        return new_state

    def _start_ticking(self) -> None:
        if self.ticking:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    def _stop_ticking(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _run(self) -> None:
        while self._state.is_active:
            await asyncio.sleep(self._interval)
            # Sleep returns after a pause only if cancel raced the wakeup.
            if not self._state.is_active:
                break
            await self.tick()
        if self._task is asyncio.current_task():
            self._task = None

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self._state)
            except Exception:
                logger.warning("Timer observer failed", exc_info=True)

    async def close(self) -> None:
        """Cancel the ticking task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
