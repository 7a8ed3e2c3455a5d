"""Coalesce bursts of change notifications into a single async call."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class Debouncer:
    """Run *callback* once, *delay* seconds after the last :meth:`trigger`.

    ``trigger`` must be called from within the running event loop (asyncpg
    delivers ``NOTIFY`` callbacks there).  :meth:`aclose` cancels both the
    pending timer and any callback already running.
    """

    def __init__(self, callback: Callable[[], Awaitable[Any]], delay: float) -> None:
        self._callback = callback
        self._delay = max(delay, 0.0)
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None or bool(self._tasks)

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Debounced callback failed", exc_info=True)

    async def aclose(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
