"""Timer and full-screen clock endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from obsidian_dashboard.api.deps import get_dashboard
from obsidian_dashboard.api.models import (
    ApiResponse,
    ClockResponse,
    TimerModeRequest,
    TimerResponse,
)
from obsidian_dashboard.clock import clock_face
from obsidian_dashboard.dashboard import Dashboard

router = APIRouter(prefix="/api", tags=["timer"])


@router.get("/timer", response_model=ApiResponse[TimerResponse])
async def get_timer(dashboard: Dashboard = Depends(get_dashboard)) -> ApiResponse[TimerResponse]:
    return ApiResponse[TimerResponse](data=TimerResponse.from_state(dashboard.timer.state))


@router.post("/timer/toggle", response_model=ApiResponse[TimerResponse])
async def toggle_timer(
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TimerResponse]:
    return ApiResponse[TimerResponse](data=TimerResponse.from_state(dashboard.timer.toggle()))


@router.post("/timer/reset", response_model=ApiResponse[TimerResponse])
async def reset_timer(
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TimerResponse]:
    return ApiResponse[TimerResponse](data=TimerResponse.from_state(dashboard.timer.reset()))


@router.post("/timer/mode", response_model=ApiResponse[TimerResponse])
async def switch_timer_mode(
    body: TimerModeRequest,
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[TimerResponse]:
    state = dashboard.timer.switch_mode(body.mode)
    return ApiResponse[TimerResponse](data=TimerResponse.from_state(state))


@router.get("/clock", response_model=ApiResponse[ClockResponse])
async def get_clock(dashboard: Dashboard = Depends(get_dashboard)) -> ApiResponse[ClockResponse]:
    return ApiResponse[ClockResponse](data=ClockResponse.from_face(clock_face(dashboard.now())))
