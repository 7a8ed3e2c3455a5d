"""Pydantic models for the to-do list, timer and clock endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from obsidian_dashboard.clock import ClockFace
from obsidian_dashboard.models import Todo
from obsidian_dashboard.timer import TimerMode, TimerState


class TodoResponse(BaseModel):
    id: str
    text: str
    completed: bool
    created_at: datetime

    @classmethod
    def from_todo(cls, todo: Todo) -> TodoResponse:
        return cls(id=todo.id, text=todo.text, completed=todo.completed, created_at=todo.created_at)


class TodoListResponse(BaseModel):
    todos: list[TodoResponse]
    remaining: int


class TodoCreateRequest(BaseModel):
    text: str


class TimerResponse(BaseModel):
    mode: TimerMode
    is_active: bool
    time_left: int
    time_elapsed: int
    display: str
    progress: float

    @classmethod
    def from_state(cls, state: TimerState) -> TimerResponse:
        return cls(
            mode=state.mode,
            is_active=state.is_active,
            time_left=state.time_left,
            time_elapsed=state.time_elapsed,
            display=state.display,
            progress=round(state.progress, 2),
        )


class TimerModeRequest(BaseModel):
    mode: TimerMode


class ClockResponse(BaseModel):
    hours: str
    minutes: str
    meridiem: str

    @classmethod
    def from_face(cls, face: ClockFace) -> ClockResponse:
        return cls(hours=face.hours, minutes=face.minutes, meridiem=face.meridiem)
