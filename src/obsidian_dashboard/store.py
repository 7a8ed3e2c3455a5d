"""Local store adapter backed by PostgreSQL via asyncpg.

Provides row CRUD for the ``events``, ``todos`` and ``timer_sessions``
tables, and a change subscription built on ``LISTEN``/``NOTIFY``: every
insert, update or delete fires ``pg_notify('<table>_changed', TG_OP)`` from a
trigger, so all connected dashboards (including the writer) are told that
the table changed.

Every failure surfaces as :class:`~obsidian_dashboard.errors.StoreError`
with the asyncpg/OS error chained as its cause.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import asyncpg

from obsidian_dashboard.errors import StoreError
from obsidian_dashboard.models import EventInput

logger = logging.getLogger(__name__)

T = TypeVar("T")

WATCHED_TABLES = frozenset({"events", "todos"})

_STORE_FAILURES = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ,
    description TEXT,
    color TEXT NOT NULL DEFAULT 'blue',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS todos (
    id TEXT PRIMARY KEY,
    text TEXT NOT NULL,
    completed BOOLEAN NOT NULL DEFAULT false,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS timer_sessions (
    id TEXT PRIMARY KEY,
    duration INTEGER NOT NULL,
    completed BOOLEAN NOT NULL DEFAULT false,
    started_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    completed_at TIMESTAMPTZ
);

CREATE OR REPLACE FUNCTION obsidian_notify_change() RETURNS trigger AS $$
BEGIN
    PERFORM pg_notify(TG_TABLE_NAME || '_changed', TG_OP);
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS events_notify_change ON events;
CREATE TRIGGER events_notify_change
    AFTER INSERT OR UPDATE OR DELETE ON events
    FOR EACH ROW EXECUTE FUNCTION obsidian_notify_change();

DROP TRIGGER IF EXISTS todos_notify_change ON todos;
CREATE TRIGGER todos_notify_change
    AFTER INSERT OR UPDATE OR DELETE ON todos
    FOR EACH ROW EXECUTE FUNCTION obsidian_notify_change();
"""

_EVENT_COLUMNS = "id, title, start_date, end_date, description, color, created_at"
_TODO_COLUMNS = "id, text, completed, created_at"


def change_channel(table: str) -> str:
    """NOTIFY channel name used for *table*."""
    return f"{table}_changed"


async def open_pool(database_url: str, *, min_size: int = 1, max_size: int = 5) -> asyncpg.Pool:
    """Create the asyncpg pool for the local store.

    Raises ``StoreError`` when the database is unreachable.
    """
    try:
        pool = await asyncpg.create_pool(dsn=database_url, min_size=min_size, max_size=max_size)
    except _STORE_FAILURES as exc:
        raise StoreError("connect", exc) from exc
    logger.info("Local store connection pool created")
    return pool


class ChangeSubscription:
    """A live ``LISTEN`` on one table's channel.

    Holds a dedicated pooled connection until :meth:`dispose` is awaited.
    ``dispose`` is idempotent.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        connection: asyncpg.Connection,
        table: str,
        on_change: Callable[[], None],
    ) -> None:
        self.table = table
        self.channel = change_channel(table)
        self._pool = pool
        self._connection: asyncpg.Connection | None = connection
        self._on_change = on_change

    @property
    def active(self) -> bool:
        return self._connection is not None

    def _listener(self, connection: Any, pid: int, channel: str, payload: str) -> None:  # noqa: ARG002
        logger.debug("Change notification on %s (%s)", channel, payload)
        try:
            self._on_change()
        except Exception:
            logger.warning("Change listener for %s failed", self.table, exc_info=True)

    async def dispose(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.remove_listener(self.channel, self._listener)
        except _STORE_FAILURES:
            logger.warning("Failed to remove listener for %s", self.table, exc_info=True)
        finally:
            await self._pool.release(connection)
        logger.debug("Unsubscribed from %s", self.channel)


class LocalStore:
    """Row CRUD and change subscriptions over an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def _run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except _STORE_FAILURES as exc:
            raise StoreError(operation, exc) from exc

    async def ensure_schema(self) -> None:
        """Create tables and change-notification triggers when missing."""
        await self._run("ensure_schema", lambda: self._pool.execute(SCHEMA_SQL))
        logger.info("Local store schema ensured")

    # -- Events -------------------------------------------------------------

    async def list_events(self) -> list[dict[str, Any]]:
        """All event rows ordered by ``start_date`` ascending."""
        rows = await self._run(
            "list_events",
            lambda: self._pool.fetch(
                f"SELECT {_EVENT_COLUMNS} FROM events ORDER BY start_date ASC, created_at ASC"
            ),
        )
        return [dict(row) for row in rows]

    async def insert_event(self, event: EventInput) -> dict[str, Any]:
        event_id = event.id or str(uuid.uuid4())
        row = await self._run(
            "insert_event",
            lambda: self._pool.fetchrow(
                f"""
                INSERT INTO events (id, title, start_date, end_date, description, color)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING {_EVENT_COLUMNS}
                """,
                event_id,
                event.title,
                event.start,
                event.end,
                event.description,
                event.color.value,
            ),
        )
        return dict(row)

    async def update_event(self, event_id: str, event: EventInput) -> dict[str, Any] | None:
        """Overwrite the row keyed by *event_id*; ``None`` when no such row exists."""
        row = await self._run(
            "update_event",
            lambda: self._pool.fetchrow(
                f"""
                UPDATE events
                SET title = $2, start_date = $3, end_date = $4, description = $5, color = $6
                WHERE id = $1
                RETURNING {_EVENT_COLUMNS}
                """,
                event_id,
                event.title,
                event.start,
                event.end,
                event.description,
                event.color.value,
            ),
        )
        return dict(row) if row is not None else None

    async def upsert_event(self, event_id: str, event: EventInput) -> dict[str, Any]:
        """Insert or overwrite the row keyed by *event_id*."""
        row = await self._run(
            "upsert_event",
            lambda: self._pool.fetchrow(
                f"""
                INSERT INTO events (id, title, start_date, end_date, description, color)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE
                    SET title = EXCLUDED.title,
                        start_date = EXCLUDED.start_date,
                        end_date = EXCLUDED.end_date,
                        description = EXCLUDED.description,
                        color = EXCLUDED.color
                RETURNING {_EVENT_COLUMNS}
                """,
                event_id,
                event.title,
                event.start,
                event.end,
                event.description,
                event.color.value,
            ),
        )
        return dict(row)

    async def delete_event(self, event_id: str) -> bool:
        status = await self._run(
            "delete_event",
            lambda: self._pool.execute("DELETE FROM events WHERE id = $1", event_id),
        )
        return status != "DELETE 0"

    # -- Todos --------------------------------------------------------------

    async def list_todos(self) -> list[dict[str, Any]]:
        """All todo rows ordered by ``created_at`` ascending."""
        rows = await self._run(
            "list_todos",
            lambda: self._pool.fetch(f"SELECT {_TODO_COLUMNS} FROM todos ORDER BY created_at ASC"),
        )
        return [dict(row) for row in rows]

    async def insert_todo(self, text: str, *, todo_id: str | None = None) -> dict[str, Any]:
        row = await self._run(
            "insert_todo",
            lambda: self._pool.fetchrow(
                f"INSERT INTO todos (id, text) VALUES ($1, $2) RETURNING {_TODO_COLUMNS}",
                todo_id or str(uuid.uuid4()),
                text,
            ),
        )
        return dict(row)

    async def update_todo(
        self,
        todo_id: str,
        *,
        text: str | None = None,
        completed: bool | None = None,
    ) -> dict[str, Any] | None:
        row = await self._run(
            "update_todo",
            lambda: self._pool.fetchrow(
                f"""
                UPDATE todos
                SET text = COALESCE($2, text), completed = COALESCE($3, completed)
                WHERE id = $1
                RETURNING {_TODO_COLUMNS}
                """,
                todo_id,
                text,
                completed,
            ),
        )
        return dict(row) if row is not None else None

    async def delete_todo(self, todo_id: str) -> bool:
        status = await self._run(
            "delete_todo",
            lambda: self._pool.execute("DELETE FROM todos WHERE id = $1", todo_id),
        )
        return status != "DELETE 0"

    # -- Timer sessions -----------------------------------------------------

    async def record_timer_session(
        self,
        *,
        duration: int,
        completed: bool,
        started_at: datetime,
        completed_at: datetime | None,
    ) -> dict[str, Any]:
        row = await self._run(
            "record_timer_session",
            lambda: self._pool.fetchrow(
                """
                INSERT INTO timer_sessions (id, duration, completed, started_at, completed_at)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id, duration, completed, started_at, completed_at
                """,
                str(uuid.uuid4()),
                duration,
                completed,
                started_at,
                completed_at,
            ),
        )
        return dict(row)

    # -- Change notifications -----------------------------------------------

    async def subscribe_to_changes(
        self, table: str, on_change: Callable[[], None]
    ) -> ChangeSubscription:
        """Call *on_change* whenever any row of *table* changes.

        The caller must ``await subscription.dispose()`` on teardown.
        """
        if table not in WATCHED_TABLES:
            raise ValueError(f"Unknown table for change notifications: {table!r}")

        connection = await self._run("subscribe", lambda: self._pool.acquire())
        subscription = ChangeSubscription(self._pool, connection, table, on_change)
        try:
            await connection.add_listener(subscription.channel, subscription._listener)
        except _STORE_FAILURES as exc:
            await self._pool.release(connection)
            raise StoreError("subscribe", exc) from exc
        logger.debug("Subscribed to %s", subscription.channel)
        return subscription

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Local store connection pool closed")
