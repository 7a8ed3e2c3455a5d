"""Calendar grid and event editor endpoints.

Mutations go through the reconciliation core, which routes them by
provenance and refreshes on success.  Failures surface through the error
envelope (see :mod:`obsidian_dashboard.api.middleware`) so the editor can
stay open and report them.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query

from obsidian_dashboard.api.deps import get_dashboard
from obsidian_dashboard.api.models import (
    ApiResponse,
    DeleteEventResponse,
    EventCreateRequest,
    EventDefaultsResponse,
    EventFormRequest,
    EventResponse,
    RefreshResponse,
    WeekResponse,
)
from obsidian_dashboard.dashboard import Dashboard
from obsidian_dashboard.editor import build_event_input, build_event_update, default_times
from obsidian_dashboard.models import EventSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["calendar"])


def _parse_day(value: str | None, dashboard: Dashboard) -> date:
    if not value:
        return dashboard.today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}; expected YYYY-MM-DD") from exc


@router.get("/calendar/week", response_model=ApiResponse[WeekResponse])
async def get_week(
    day: str | None = Query(default=None, alias="date", description="Any day of the week."),
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[WeekResponse]:
    """The Monday-starting week containing ``date`` (today when omitted)."""
    view = dashboard.week(_parse_day(day, dashboard))
    return ApiResponse[WeekResponse](
        data=WeekResponse.from_view(view, connected=dashboard.events.connected)
    )


@router.post("/calendar/refresh", response_model=ApiResponse[RefreshResponse])
async def refresh_calendar(
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[RefreshResponse]:
    report = await dashboard.events.refresh()
    return ApiResponse[RefreshResponse](data=RefreshResponse.from_report(report))


@router.get("/events", response_model=ApiResponse[list[EventResponse]])
async def list_events(
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[list[EventResponse]]:
    """The full merged collection, local events first."""
    return ApiResponse[list[EventResponse]](
        data=[EventResponse.from_event(event) for event in dashboard.events.events]
    )


@router.get("/events/defaults", response_model=ApiResponse[EventDefaultsResponse])
async def event_defaults(
    day: str | None = Query(default=None, alias="date"),
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[EventDefaultsResponse]:
    start_time, end_time = default_times(dashboard.now())
    destination = EventSource.remote if dashboard.events.creates_remotely else EventSource.local
    return ApiResponse[EventDefaultsResponse](
        data=EventDefaultsResponse(
            date=_parse_day(day, dashboard),
            start_time=start_time,
            end_time=end_time,
            destination=destination,
        )
    )


@router.post("/events", response_model=ApiResponse[EventResponse], status_code=201)
async def create_event(
    body: EventCreateRequest,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[EventResponse]:
    event = build_event_input(
        base_day=body.date,
        start_time=body.start_time,
        end_time=body.end_time,
        title=body.title,
        description=body.description,
        color=body.color,
        tz=dashboard.tz,
    )
    saved = await dashboard.events.save(event)
    return ApiResponse[EventResponse](data=EventResponse.from_event(saved))


@router.put("/events/{source}/{event_id}", response_model=ApiResponse[EventResponse])
async def update_event(
    source: EventSource,
    event_id: str,
    body: EventFormRequest,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[EventResponse]:
    """Edit an event on its own day; the owning source receives the write."""
    existing = dashboard.events.find(event_id, source)
    if existing is None:
        raise KeyError(event_id)
    edited = build_event_update(
        existing,
        start_time=body.start_time,
        end_time=body.end_time,
        title=body.title,
        description=body.description,
        color=body.color,
        tz=dashboard.tz,
    )
    saved = await dashboard.events.save(edited)
    return ApiResponse[EventResponse](data=EventResponse.from_event(saved))


@router.delete("/events/{event_id}", response_model=ApiResponse[DeleteEventResponse])
async def delete_event(
    event_id: str,
    source: EventSource | None = Query(default=None),
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[DeleteEventResponse]:
    """Delete by id.  Unknown ids are a no-op reported as ``deleted: false``."""
    deleted = await dashboard.events.delete(event_id, source)
    return ApiResponse[DeleteEventResponse](data=DeleteEventResponse(deleted=deleted))
