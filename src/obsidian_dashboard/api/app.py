"""Dashboard API: FastAPI application factory.

The app factory creates a FastAPI instance with:
- CORS middleware (configurable origins)
- Lifespan handler that builds, mounts and tears down the dashboard
- Health endpoint at GET /api/health
- Calendar, to-do, timer/clock, OAuth and SSE routers
- Optional static file serving for the built front-end
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.staticfiles import StaticFiles

from obsidian_dashboard.api.deps import init_dependencies, shutdown_dependencies
from obsidian_dashboard.api.middleware import register_error_handlers
from obsidian_dashboard.api.models import HealthResponse
from obsidian_dashboard.api.routers.calendar import router as calendar_router
from obsidian_dashboard.api.routers.oauth import router as oauth_router
from obsidian_dashboard.api.routers.sse import router as sse_router
from obsidian_dashboard.api.routers.sse import wire_dashboard
from obsidian_dashboard.api.routers.timer import router as timer_router
from obsidian_dashboard.api.routers.todos import router as todos_router
from obsidian_dashboard.config import DashboardConfig, load_config
from obsidian_dashboard.dashboard import Dashboard, build_dashboard

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (unless one was supplied) and mount the dashboard; tear it down on exit."""
    dashboard: Dashboard | None = app.state.dashboard
    owns_dashboard = dashboard is None
    if dashboard is None:
        config: DashboardConfig = app.state.config or load_config()
        dashboard = await build_dashboard(config)

    init_dependencies(dashboard)
    unwire = wire_dashboard(dashboard)
    try:
        await dashboard.mount()
        yield
    finally:
        unwire()
        try:
            if owns_dashboard:
                await dashboard.aclose()
            else:
                await dashboard.unmount()
        finally:
            await shutdown_dependencies()


def create_app(
    config: DashboardConfig | None = None,
    dashboard: Dashboard | None = None,
    cors_origins: list[str] | None = None,
    static_dir: str | Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Dashboard configuration.  Loaded with ``load_config()`` at startup
        when neither this nor *dashboard* is given.
    dashboard:
        A pre-built dashboard to serve instead of building one from config.
    cors_origins:
        Allowed CORS origins. Defaults to ["http://localhost:5173"] for
        the local Vite dev server.
    static_dir:
        Path to the built front-end.  Falls back to the
        ``OBSIDIAN_STATIC_DIR`` environment variable.
    """
    if cors_origins is None:
        cors_origins = ["http://localhost:5173"]

    app = FastAPI(
        title="Obsidian Dashboard API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.router.redirect_slashes = False
    app.state.config = config
    app.state.dashboard = dashboard

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(calendar_router)
    app.include_router(todos_router)
    app.include_router(timer_router)
    app.include_router(oauth_router)
    app.include_router(sse_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    # Mount AFTER all API routes so /api/* always takes precedence.
    resolved_static = static_dir or os.environ.get("OBSIDIAN_STATIC_DIR")
    if resolved_static is not None:
        dist_path = Path(resolved_static)
        if dist_path.is_dir():
            app.mount(
                "/",
                StaticFiles(directory=str(dist_path), html=True),
                name="frontend",
            )
            logger.info("Mounted frontend static files from %s", dist_path)
        else:
            logger.warning("static_dir %s does not exist; skipping static mount", dist_path)

    return app
