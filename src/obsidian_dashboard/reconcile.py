"""Event reconciliation core.

Keeps one merged, read-only view of local and remote events and routes every
mutation to the adapter that owns the event's provenance.

Consistency is achieved by re-fetching, never by patching the cached
collection: after each successful mutation, each change notification from
the local store and each login/logout, :meth:`EventReconciler.refresh` reads
both sources concurrently and replaces the collection wholesale.

Overlapping refreshes are fenced by a generation counter: only the most
recently issued refresh may replace the collection.  Bursts of change
notifications are coalesced into a single refresh.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta, tzinfo
from typing import Any

from opentelemetry import trace
from pydantic import ValidationError

from obsidian_dashboard.auth import AuthorizationContext
from obsidian_dashboard.core.debounce import Debouncer
from obsidian_dashboard.core.logging import refresh_scope
from obsidian_dashboard.errors import DashboardError, FetchError, StoreError
from obsidian_dashboard.models import CalendarEvent, EventInput, EventSource
from obsidian_dashboard.remote import FetchResult, GoogleCalendarAdapter, RemoteCredentials
from obsidian_dashboard.store import ChangeSubscription, LocalStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_PAST_DAYS = 30
DEFAULT_FUTURE_DAYS = 183
DEFAULT_DEBOUNCE_SECONDS = 0.25

EventsObserver = Callable[[tuple[CalendarEvent, ...]], None]


def event_from_row(row: Mapping[str, Any]) -> CalendarEvent:
    """Map a local ``events`` row into the merged shape, tagged ``local``."""
    return CalendarEvent(
        id=str(row["id"]),
        title=row.get("title") or "",
        start=row["start_date"],
        end=row.get("end_date"),
        description=row.get("description"),
        color=row.get("color"),
        source=EventSource.local,
    )


@dataclass(frozen=True)
class RefreshReport:
    """What a single refresh observed.

    ``applied`` is false when a newer refresh was issued while this one was
    in flight and its result was discarded.
    """

    generation: int
    applied: bool
    local_count: int = 0
    remote_count: int = 0
    local_error: FetchError | None = None
    remote_error: FetchError | None = None

    @property
    def degraded(self) -> bool:
        return self.local_error is not None or self.remote_error is not None


class EventReconciler:
    """Merges local and remote events and dispatches mutations by provenance."""

    def __init__(
        self,
        store: LocalStore,
        remote: GoogleCalendarAdapter,
        auth: AuthorizationContext,
        *,
        api_key: str | None = None,
        tz: tzinfo | None = None,
        past_days: int = DEFAULT_PAST_DAYS,
        future_days: int = DEFAULT_FUTURE_DAYS,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self._auth = auth
        self._api_key = api_key
        self.tz = tz
        self._past = timedelta(days=past_days)
        self._future = timedelta(days=future_days)
        self._clock = clock or (lambda: datetime.now(UTC))

        self._events: tuple[CalendarEvent, ...] = ()
        self._generation = 0
        self._observers: list[EventsObserver] = []
        self._subscription: ChangeSubscription | None = None
        self._debouncer = Debouncer(self.refresh, debounce_seconds)
        self.last_report: RefreshReport | None = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def events(self) -> tuple[CalendarEvent, ...]:
        """The current merged collection (local first, then remote)."""
        return self._events

    @property
    def connected(self) -> bool:
        return self._auth.is_authorized

    @property
    def mounted(self) -> bool:
        return self._subscription is not None

    @property
    def creates_remotely(self) -> bool:
        """Whether a new event would be created on the remote calendar."""
        return self._remote.can_create(self.credentials())

    def credentials(self) -> RemoteCredentials:
        return RemoteCredentials(bearer_token=self._auth.bearer, api_key=self._api_key)

    def fetch_window(self) -> tuple[datetime, datetime]:
        now = self._clock()
        return now - self._past, now + self._future

    def find(self, event_id: str, source: EventSource | None = None) -> CalendarEvent | None:
        for event in self._events:
            if event.id == event_id and (source is None or event.source is source):
                return event
        return None

    def add_observer(self, observer: EventsObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: EventsObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    async def refresh(self) -> RefreshReport:
        """Re-read both sources concurrently and replace the merged collection.

        Never raises for read failures: a failing source contributes no
        events and is recorded on the returned report.
        """
        self._generation += 1
        generation = self._generation

        with refresh_scope(generation), tracer.start_as_current_span("dashboard.refresh") as span:
            span.set_attribute("dashboard.refresh.generation", generation)
            (local_events, local_error), remote_result = await asyncio.gather(
                self._load_local(), self._load_remote()
            )

            if generation != self._generation:
                logger.debug(
                    "Discarding stale refresh (generation %d, latest %d)",
                    generation,
                    self._generation,
                )
                return RefreshReport(generation=generation, applied=False)

            merged = (*local_events, *remote_result.events)
            self._events = merged
            report = RefreshReport(
                generation=generation,
                applied=True,
                local_count=len(local_events),
                remote_count=len(remote_result.events),
                local_error=local_error,
                remote_error=remote_result.error,
            )
            self.last_report = report
            span.set_attribute("dashboard.refresh.events", len(merged))
            logger.debug(
                "Refreshed events: %d local, %d remote", report.local_count, report.remote_count
            )

        self._notify_observers(merged)
        return report

    async def _load_local(self) -> tuple[list[CalendarEvent], FetchError | None]:
        try:
            rows = await self._store.list_events()
        except StoreError as exc:
            error = FetchError("local", str(exc))
            logger.warning("Local event fetch failed: %s", error.message)
            return [], error

        events: list[CalendarEvent] = []
        for row in rows:
            try:
                events.append(event_from_row(row))
            except (KeyError, ValidationError) as exc:
                logger.warning("Skipping malformed local event row %r: %s", row.get("id"), exc)
        return events, None

    async def _load_remote(self) -> FetchResult:
        window_start, window_end = self.fetch_window()
        return await self._remote.fetch_events(window_start, window_end, self.credentials())

    def _notify_observers(self, events: tuple[CalendarEvent, ...]) -> None:
        for observer in list(self._observers):
            try:
                observer(events)
            except Exception:
                logger.warning("Events observer failed", exc_info=True)

    # ------------------------------------------------------------------
    # Write side
    # ------------------------------------------------------------------

    async def save(self, event: EventInput) -> CalendarEvent:
        """Create (``EventInput``) or update (``CalendarEvent``) an event.

        Updates follow the event's provenance; a remote event edited while
        disconnected is written to the local store instead and therefore
        reappears as a local event.  New events go to the remote calendar
        only when connected and a calendar is configured.

        Adapter errors propagate unchanged and leave the collection as it was.
        """
        credentials = self.credentials()
        try:
            if isinstance(event, CalendarEvent):
                saved = await self._update(event, credentials)
            else:
                saved = await self._create(event, credentials)
        except DashboardError as exc:
            logger.warning("Saving event failed: %s", exc)
            raise

        await self.refresh()
        return saved

    async def _create(self, event: EventInput, credentials: RemoteCredentials) -> CalendarEvent:
        if self._remote.can_create(credentials):
            created = await self._remote.create_event(event, credentials)
            logger.info("Created remote event %s", created.id)
            return created
        row = await self._store.insert_event(event)
        logger.info("Created local event %s", row["id"])
        return event_from_row(row)

    async def _update(
        self, event: CalendarEvent, credentials: RemoteCredentials
    ) -> CalendarEvent:
        if event.source is EventSource.remote and credentials.can_write:
            updated = await self._remote.update_event(event, credentials)
            logger.info("Updated remote event %s", event.id)
            return updated

        if event.source is EventSource.remote:
            logger.info("Remote calendar disconnected; storing edit of %s locally", event.id)
            row = await self._store.upsert_event(event.id, event.to_input())
            return event_from_row(row)

        row = await self._store.update_event(event.id, event.to_input())
        if row is None:
            logger.info("Local event %s no longer exists; nothing updated", event.id)
            return event
        logger.info("Updated local event %s", event.id)
        return event_from_row(row)

    async def delete(self, event_id: str, source: EventSource | None = None) -> bool:
        """Delete the event with *event_id* from the adapter that owns it.

        Returns ``False`` without touching any adapter when the id is not in
        the current collection.
        """
        event = self.find(event_id, source)
        if event is None:
            logger.debug("Delete of unknown event %s ignored", event_id)
            return False

        credentials = self.credentials()
        try:
            if event.source is EventSource.remote and credentials.can_write:
                await self._remote.delete_event(event.id, credentials)
            else:
                await self._store.delete_event(event.id)
        except DashboardError as exc:
            logger.warning("Deleting event %s failed: %s", event_id, exc)
            raise

        logger.info("Deleted %s event %s", event.source.value, event.id)
        await self.refresh()
        return True

    # ------------------------------------------------------------------
    # Lifecycle and change wiring
    # ------------------------------------------------------------------

    async def mount(self) -> RefreshReport:
        """Subscribe to local changes and authorization changes, then refresh."""
        if self._subscription is None:
            self._subscription = await self._store.subscribe_to_changes(
                "events", self.notify_changed
            )
            self._auth.add_listener(self._on_authorization_changed)
        else:
            logger.warning("Event reconciler already mounted; keeping existing subscription")
        return await self.refresh()

    async def unmount(self) -> None:
        """Dispose the subscription and cancel any pending coalesced refresh."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            self._auth.remove_listener(self._on_authorization_changed)
            await subscription.dispose()
        await self._debouncer.aclose()

    def notify_changed(self) -> None:
        """Schedule a refresh, coalescing notifications inside the debounce window."""
        self._debouncer.trigger()

    async def _on_authorization_changed(self, authorized: bool) -> None:
        logger.info("Authorization changed (connected=%s); refreshing events", authorized)
        await self.refresh()
