"""Shared test fixtures for the obsidian dashboard test suite.

``FakeStore`` and ``FakeRemote`` are in-memory stand-ins exposing the same
coroutine surface as ``LocalStore`` and ``GoogleCalendarAdapter``; they
record every call so tests can assert which adapter received a mutation.
"""

from __future__ import annotations

import itertools
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from obsidian_dashboard.auth import AuthorizationContext, GoogleToken, OAuthStateStore
from obsidian_dashboard.config import DashboardConfig, GoogleConfig, SyncConfig
from obsidian_dashboard.errors import FetchError, StoreError, Unauthorized
from obsidian_dashboard.models import CalendarEvent, EventInput, EventSource
from obsidian_dashboard.remote import FetchResult, RemoteCredentials

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Local store fake
# ---------------------------------------------------------------------------


class FakeSubscription:
    def __init__(self, store: FakeStore, table: str, on_change: Callable[[], None]) -> None:
        self.store = store
        self.table = table
        self.on_change = on_change
        self.dispose_count = 0

    @property
    def active(self) -> bool:
        return self in self.store.subscriptions

    async def dispose(self) -> None:
        self.dispose_count += 1
        if self in self.store.subscriptions:
            self.store.subscriptions.remove(self)


class FakeStore:
    """In-memory ``LocalStore`` with the same coroutine API."""

    def __init__(self) -> None:
        self.events: dict[str, dict[str, Any]] = {}
        self.todos: dict[str, dict[str, Any]] = {}
        self.sessions: list[dict[str, Any]] = []
        self.subscriptions: list[FakeSubscription] = []
        self.calls: list[tuple[str, Any]] = []
        self.fail_reads = False
        self.fail_writes = False
        self._clock = itertools.count()
        self.closed = False

    def _created_at(self) -> datetime:
        return FIXED_NOW + timedelta(microseconds=next(self._clock))

    def _check_write(self, operation: str) -> None:
        if self.fail_writes:
            raise StoreError(operation, OSError("connection refused"))

    def add_event_row(self, event_id: str, title: str, start: datetime, **extra: Any) -> None:
        self.events[event_id] = {
            "id": event_id,
            "title": title,
            "start_date": start,
            "end_date": extra.get("end_date"),
            "description": extra.get("description"),
            "color": extra.get("color", "blue"),
            "created_at": self._created_at(),
        }

    def _event_row(self, event_id: str, event: EventInput) -> dict[str, Any]:
        return {
            "id": event_id,
            "title": event.title,
            "start_date": event.start,
            "end_date": event.end,
            "description": event.description,
            "color": event.color.value,
            "created_at": self._created_at(),
        }

    async def list_events(self) -> list[dict[str, Any]]:
        self.calls.append(("list_events", None))
        if self.fail_reads:
            raise StoreError("list_events", OSError("connection refused"))
        return sorted(
            (dict(row) for row in self.events.values()),
            key=lambda row: (row["start_date"], row["created_at"]),
        )

    async def insert_event(self, event: EventInput) -> dict[str, Any]:
        self.calls.append(("insert_event", event))
        self._check_write("insert_event")
        event_id = event.id or str(uuid.uuid4())
        self.events[event_id] = self._event_row(event_id, event)
        return dict(self.events[event_id])

    async def update_event(self, event_id: str, event: EventInput) -> dict[str, Any] | None:
        self.calls.append(("update_event", event_id))
        self._check_write("update_event")
        if event_id not in self.events:
            return None
        self.events[event_id] = self._event_row(event_id, event)
        return dict(self.events[event_id])

    async def upsert_event(self, event_id: str, event: EventInput) -> dict[str, Any]:
        self.calls.append(("upsert_event", event_id))
        self._check_write("upsert_event")
        self.events[event_id] = self._event_row(event_id, event)
        return dict(self.events[event_id])

    async def delete_event(self, event_id: str) -> bool:
        self.calls.append(("delete_event", event_id))
        self._check_write("delete_event")
        return self.events.pop(event_id, None) is not None

    async def list_todos(self) -> list[dict[str, Any]]:
        self.calls.append(("list_todos", None))
        if self.fail_reads:
            raise StoreError("list_todos", OSError("connection refused"))
        return sorted((dict(row) for row in self.todos.values()), key=lambda r: r["created_at"])

    async def insert_todo(self, text: str, *, todo_id: str | None = None) -> dict[str, Any]:
        self.calls.append(("insert_todo", text))
        self._check_write("insert_todo")
        todo_id = todo_id or str(uuid.uuid4())
        self.todos[todo_id] = {
            "id": todo_id,
            "text": text,
            "completed": False,
            "created_at": self._created_at(),
        }
        return dict(self.todos[todo_id])

    async def update_todo(
        self, todo_id: str, *, text: str | None = None, completed: bool | None = None
    ) -> dict[str, Any] | None:
        self.calls.append(("update_todo", todo_id))
        self._check_write("update_todo")
        row = self.todos.get(todo_id)
        if row is None:
            return None
        if text is not None:
            row["text"] = text
        if completed is not None:
            row["completed"] = completed
        return dict(row)

    async def delete_todo(self, todo_id: str) -> bool:
        self.calls.append(("delete_todo", todo_id))
        self._check_write("delete_todo")
        return self.todos.pop(todo_id, None) is not None

    async def record_timer_session(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("record_timer_session", kwargs))
        self._check_write("record_timer_session")
        self.sessions.append(kwargs)
        return {"id": str(uuid.uuid4()), **kwargs}

    async def subscribe_to_changes(
        self, table: str, on_change: Callable[[], None]
    ) -> FakeSubscription:
        self.calls.append(("subscribe", table))
        subscription = FakeSubscription(self, table, on_change)
        self.subscriptions.append(subscription)
        return subscription

    def notify(self, table: str) -> None:
        """Simulate a NOTIFY on *table* reaching every subscriber."""
        for subscription in list(self.subscriptions):
            if subscription.table == table:
                subscription.on_change()

    def write_calls(self) -> list[tuple[str, Any]]:
        return [call for call in self.calls if call[0] not in ("list_events", "list_todos")]

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Remote adapter fake
# ---------------------------------------------------------------------------


@dataclass
class FakeRemote:
    """In-memory ``GoogleCalendarAdapter``."""

    events: list[CalendarEvent] = field(default_factory=list)
    enabled: bool = True
    fetch_error: str | None = None
    mutation_error: Exception | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)
    credentials_seen: list[RemoteCredentials] = field(default_factory=list)
    shut_down: bool = False

    def can_create(self, credentials: RemoteCredentials) -> bool:
        return self.enabled and credentials.can_write

    async def fetch_events(
        self, window_start: datetime, window_end: datetime, credentials: RemoteCredentials
    ) -> FetchResult:
        self.calls.append(("fetch_events", (window_start, window_end)))
        self.credentials_seen.append(credentials)
        if not self.enabled or not credentials.can_read:
            return FetchResult()
        if self.fetch_error is not None:
            return FetchResult(error=FetchError("remote", self.fetch_error))
        return FetchResult(events=list(self.events))

    def _check_write(self, credentials: RemoteCredentials) -> None:
        if not credentials.can_write:
            raise Unauthorized("Remote calendar is not connected")
        if self.mutation_error is not None:
            raise self.mutation_error

    async def create_event(
        self, event: EventInput, credentials: RemoteCredentials
    ) -> CalendarEvent:
        self.calls.append(("create_event", event))
        self._check_write(credentials)
        created = CalendarEvent(
            id=f"g-{len(self.events) + 1}",
            source=EventSource.remote,
            **event.model_dump(exclude={"id"}),
        )
        self.events.append(created)
        return created

    async def update_event(
        self, event: CalendarEvent, credentials: RemoteCredentials
    ) -> CalendarEvent:
        self.calls.append(("update_event", event.id))
        self._check_write(credentials)
        self.events = [event if e.id == event.id else e for e in self.events]
        return event

    async def delete_event(self, event_id: str, credentials: RemoteCredentials) -> None:
        self.calls.append(("delete_event", event_id))
        self._check_write(credentials)
        self.events = [e for e in self.events if e.id != event_id]

    def write_calls(self) -> list[tuple[str, Any]]:
        return [call for call in self.calls if call[0] != "fetch_events"]

    async def shutdown(self) -> None:
        self.shut_down = True


# ---------------------------------------------------------------------------
# Builders and fixtures
# ---------------------------------------------------------------------------


def remote_event(event_id: str, title: str, start: datetime, **extra: Any) -> CalendarEvent:
    return CalendarEvent(
        id=event_id, title=title, start=start, source=EventSource.remote, **extra
    )


def make_config(**google: Any) -> DashboardConfig:
    return DashboardConfig(
        database_url="postgresql://localhost/obsidian_test",
        google=GoogleConfig(calendar_id="primary", **google),
        sync=SyncConfig(debounce_seconds=0.01),
        timezone="UTC",
    )


def make_token(access_token: str = "ya29.test-token") -> GoogleToken:
    return GoogleToken(access_token=access_token, scope="https://www.googleapis.com/auth/calendar")


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def auth() -> AuthorizationContext:
    return AuthorizationContext()


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
async def dashboard(fake_store, fake_remote, auth, fixed_clock):
    """A mounted dashboard over the in-memory fakes."""
    from obsidian_dashboard.dashboard import Dashboard

    dash = Dashboard(
        make_config(),
        store=fake_store,
        remote=fake_remote,
        auth=auth,
        clock=fixed_clock,
        timer_interval=0.01,
    )
    await dash.mount()
    yield dash
    await dash.unmount()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def oauth_states() -> OAuthStateStore:
    return OAuthStateStore()


@pytest.fixture
def token_http_client() -> MagicMock:
    """Stand-in for the shared client used by the OAuth code exchange."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.post = AsyncMock()
    return client


@pytest.fixture
def app(dashboard, oauth_states, token_http_client):
    """FastAPI app serving the mounted fake-backed dashboard.

    ``ASGITransport`` does not run the lifespan, so the dependency providers
    are overridden directly.
    """
    from obsidian_dashboard.api.app import create_app
    from obsidian_dashboard.api.deps import get_dashboard, get_http_client, get_oauth_states

    application = create_app(dashboard=dashboard)
    application.dependency_overrides[get_dashboard] = lambda: dashboard
    application.dependency_overrides[get_oauth_states] = lambda: oauth_states
    application.dependency_overrides[get_http_client] = lambda: token_http_client
    return application


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as http_client:
        yield http_client
