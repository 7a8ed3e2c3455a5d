"""Shared Pydantic response/request models for the dashboard API.

Provides the generic response wrapper, the error envelope, and re-exports
the per-area models.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Base response wrappers
# ---------------------------------------------------------------------------


class ApiMeta(BaseModel):
    """Extensible metadata bag attached to every API response."""

    model_config = {"extra": "allow"}


class ApiResponse[T](BaseModel):
    """Generic API response wrapper.

    All successful responses follow ``{"data": T, "meta": {...}}``.
    """

    data: T
    meta: ApiMeta = Field(default_factory=ApiMeta)


class ErrorDetail(BaseModel):
    """Structured error payload."""

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    status: str


from obsidian_dashboard.api.models.calendar import (  # noqa: E402
    DayResponse,
    DeleteEventResponse,
    EventCreateRequest,
    EventDefaultsResponse,
    EventFormRequest,
    EventResponse,
    RefreshResponse,
    WeekResponse,
)
from obsidian_dashboard.api.models.oauth import (  # noqa: E402
    LogoutResponse,
    OAuthCallbackError,
    OAuthCallbackSuccess,
    OAuthStartResponse,
    OAuthStatusResponse,
)
from obsidian_dashboard.api.models.widgets import (  # noqa: E402
    ClockResponse,
    TimerModeRequest,
    TimerResponse,
    TodoCreateRequest,
    TodoListResponse,
    TodoResponse,
)

__all__ = [
    "ApiMeta",
    "ApiResponse",
    "ClockResponse",
    "DayResponse",
    "DeleteEventResponse",
    "ErrorDetail",
    "ErrorResponse",
    "EventCreateRequest",
    "EventDefaultsResponse",
    "EventFormRequest",
    "EventResponse",
    "HealthResponse",
    "LogoutResponse",
    "OAuthCallbackError",
    "OAuthCallbackSuccess",
    "OAuthStartResponse",
    "OAuthStatusResponse",
    "RefreshResponse",
    "TimerModeRequest",
    "TimerResponse",
    "TodoCreateRequest",
    "TodoListResponse",
    "TodoResponse",
    "WeekResponse",
]
