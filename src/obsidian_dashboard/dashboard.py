"""Composition root: wires adapters, the event core, the to-do list and the timer."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime, tzinfo

import httpx

from obsidian_dashboard.auth import AuthorizationContext, TokenStore
from obsidian_dashboard.calendar_view import WeekView, build_week
from obsidian_dashboard.config import DashboardConfig
from obsidian_dashboard.core.logging import set_dashboard_context
from obsidian_dashboard.reconcile import EventReconciler
from obsidian_dashboard.remote import GoogleCalendarAdapter
from obsidian_dashboard.store import LocalStore, open_pool
from obsidian_dashboard.timer import Timer, TimerSession
from obsidian_dashboard.timeutils import local_date
from obsidian_dashboard.todos import TodoList

logger = logging.getLogger(__name__)


class Dashboard:
    """One mounted dashboard instance.

    ``mount`` opens exactly one change subscription per table and performs
    the initial refresh; ``unmount`` disposes both subscriptions and stops
    the timer.  ``aclose`` additionally releases the pool and HTTP client.
    """

    def __init__(
        self,
        config: DashboardConfig,
        *,
        store: LocalStore,
        remote: GoogleCalendarAdapter,
        auth: AuthorizationContext,
        clock: Callable[[], datetime] | None = None,
        timer_interval: float = 1.0,
    ) -> None:
        self.config = config
        self.instance_id = uuid.uuid4().hex[:8]
        self.store = store
        self.remote = remote
        self.auth = auth
        self._clock = clock or (lambda: datetime.now(UTC))
        self.events = EventReconciler(
            store,
            remote,
            auth,
            api_key=config.google.api_key,
            tz=config.tz,
            past_days=config.sync.past_days,
            future_days=config.sync.future_days,
            debounce_seconds=config.sync.debounce_seconds,
            clock=self._clock,
        )
        self.todos = TodoList(store, debounce_seconds=config.sync.debounce_seconds)
        self.timer = Timer(
            interval=timer_interval, on_complete=self._record_session, clock=self._clock
        )
        self._mounted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def tz(self) -> tzinfo | None:
        return self.config.tz

    def now(self) -> datetime:
        return self._clock().astimezone(self.tz)

    def today(self) -> date:
        return local_date(self._clock(), self.tz)

    def week(self, anchor: date | None = None) -> WeekView:
        return build_week(
            self.events.events, anchor or self.today(), today=self.today(), tz=self.tz
        )

    async def _record_session(self, session: TimerSession) -> None:
        await self.store.record_timer_session(
            duration=session.duration,
            completed=True,
            started_at=session.started_at,
            completed_at=session.completed_at,
        )

    async def mount(self) -> None:
        if self._mounted:
            logger.warning("Dashboard %s already mounted", self.instance_id)
            return
        set_dashboard_context(self.instance_id)
        try:
            await self.events.mount()
            await self.todos.mount()
        except BaseException:
            logger.warning(
                "Dashboard %s failed to mount; releasing subscriptions", self.instance_id
            )
            await self.unmount()
            raise
        self._mounted = True
        logger.info(
            "Dashboard %s mounted (%d events, %d todos, remote %s)",
            self.instance_id,
            len(self.events.events),
            len(self.todos.todos),
            "enabled" if self.remote.enabled else "disabled",
        )

    async def unmount(self) -> None:
        await self.timer.close()
        await self.todos.unmount()
        await self.events.unmount()
        if self._mounted:
            logger.info("Dashboard %s unmounted", self.instance_id)
        self._mounted = False

    async def aclose(self) -> None:
        try:
            await self.unmount()
        finally:
            try:
                await self.remote.shutdown()
            finally:
                await self.store.close()


async def build_dashboard(
    config: DashboardConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> Dashboard:
    """Open the local store and construct a dashboard from *config*.

    Raises ``StoreError`` when the local store is unreachable.
    """
    pool = await open_pool(
        config.database_url,
        min_size=config.min_pool_size,
        max_size=config.max_pool_size,
    )
    store = LocalStore(pool)
    remote = GoogleCalendarAdapter(
        config.google.calendar_id,
        http_client=http_client,
        tz=config.tz,
        max_results=config.sync.max_results,
    )
    if not remote.enabled:
        logger.info("No remote calendar configured; showing local events only")
    auth = AuthorizationContext(TokenStore(config.google.token_path))
    return Dashboard(config, store=store, remote=remote, auth=auth)
