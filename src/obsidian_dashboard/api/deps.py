"""Dependency providers for the dashboard API.

Provides:
- the mounted :class:`~obsidian_dashboard.dashboard.Dashboard` singleton,
- the OAuth CSRF state store,
- a shared ``httpx.AsyncClient`` for the OAuth token exchange,

as FastAPI dependency functions.  Tests override them through
``app.dependency_overrides``.
"""

from __future__ import annotations

import logging

import httpx

from obsidian_dashboard.auth import OAuthStateStore
from obsidian_dashboard.dashboard import Dashboard

logger = logging.getLogger(__name__)

_dashboard: Dashboard | None = None
_oauth_states: OAuthStateStore | None = None
_http_client: httpx.AsyncClient | None = None


def init_dependencies(dashboard: Dashboard) -> None:
    """Install the singletons used by route handlers."""
    global _dashboard, _oauth_states, _http_client  # noqa: PLW0603
    _dashboard = dashboard
    _oauth_states = OAuthStateStore()
    _http_client = httpx.AsyncClient(timeout=30.0)


async def shutdown_dependencies() -> None:
    """Release the shared HTTP client and forget the singletons."""
    global _dashboard, _oauth_states, _http_client  # noqa: PLW0603
    if _http_client is not None:
        await _http_client.aclose()
    _dashboard = None
    _oauth_states = None
    _http_client = None


def get_dashboard() -> Dashboard:
    """FastAPI dependency: the mounted dashboard."""
    if _dashboard is None:
        raise RuntimeError("Dashboard not initialized; call init_dependencies() first")
    return _dashboard


def get_oauth_states() -> OAuthStateStore:
    if _oauth_states is None:
        raise RuntimeError("OAuth state store not initialized; call init_dependencies() first")
    return _oauth_states


def get_http_client() -> httpx.AsyncClient:
    if _http_client is None:
        raise RuntimeError("HTTP client not initialized; call init_dependencies() first")
    return _http_client
