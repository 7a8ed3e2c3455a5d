"""Server-Sent Events (SSE) endpoint for live dashboard updates.

Streams every replacement of the merged event collection, every to-do list
reload, every timer transition and every authorization change.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncGenerator, Callable

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import StreamingResponse

from obsidian_dashboard.api.models import EventResponse, TimerResponse, TodoResponse
from obsidian_dashboard.dashboard import Dashboard
from obsidian_dashboard.models import CalendarEvent, Todo
from obsidian_dashboard.timer import TimerState

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["sse"])

# In-memory event bus: subscribers receive events via asyncio.Queue
_subscribers: list[asyncio.Queue] = []

# Sentinel object to signal generator shutdown (used in tests)
_SHUTDOWN = object()

_KEEPALIVE_SECONDS = 30.0


def broadcast(event_type: str, data: dict) -> None:
    """Push an event to all connected SSE subscribers.

    Subscribers whose queue is full are dropped.
    """
    payload = {"type": event_type, "data": data, "timestamp": time.time()}
    dead: list[asyncio.Queue] = []
    for q in _subscribers:
        try:
            q.put_nowait(payload)
        except asyncio.QueueFull:
            dead.append(q)
    for q in dead:
        _subscribers.remove(q)


def wire_dashboard(dashboard: Dashboard) -> Callable[[], None]:
    """Broadcast dashboard state changes.  Returns a function that unwires them."""

    def on_events(events: tuple[CalendarEvent, ...]) -> None:
        broadcast(
            "events",
            {
                "connected": dashboard.events.connected,
                "events": [EventResponse.from_event(e).model_dump(mode="json") for e in events],
            },
        )

    def on_todos(todos: tuple[Todo, ...]) -> None:
        broadcast(
            "todos", {"todos": [TodoResponse.from_todo(t).model_dump(mode="json") for t in todos]}
        )

    def on_timer(state: TimerState) -> None:
        broadcast("timer", TimerResponse.from_state(state).model_dump(mode="json"))

    async def on_auth(authorized: bool) -> None:
        broadcast("auth", {"connected": authorized})

    dashboard.events.add_observer(on_events)
    dashboard.todos.add_observer(on_todos)
    dashboard.timer.add_observer(on_timer)
    dashboard.auth.add_listener(on_auth)

    def unwire() -> None:
        dashboard.events.remove_observer(on_events)
        dashboard.todos.remove_observer(on_todos)
        dashboard.timer.remove_observer(on_timer)
        dashboard.auth.remove_listener(on_auth)

    return unwire


async def _event_generator(request: Request) -> AsyncGenerator[str, None]:
    """Yield SSE-formatted events until the client disconnects."""
    queue: asyncio.Queue = asyncio.Queue(maxsize=256)
    _subscribers.append(queue)
    try:
        yield f"event: connected\ndata: {json.dumps({'status': 'ok'})}\n\n"

        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(queue.get(), timeout=_KEEPALIVE_SECONDS)
                if event is _SHUTDOWN:
                    break
                yield f"event: {event['type']}\ndata: {json.dumps(event['data'])}\n\n"
            except TimeoutError:
                yield ": keepalive\n\n"
    finally:
        if queue in _subscribers:
            _subscribers.remove(queue)


@router.get("/stream")
async def sse_stream(request: Request) -> StreamingResponse:
    """Server-Sent Events stream for live dashboard updates.

    Event types:
    - connected: Initial connection confirmation
    - events: The merged event collection was replaced
    - todos: The to-do list was reloaded
    - timer: The timer state changed (including every tick)
    - auth: The remote calendar was connected or disconnected
    """
    return StreamingResponse(
        _event_generator(request),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
