"""CLI for the obsidian dashboard: serve the API and manage the local store."""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import date, tzinfo
from pathlib import Path

import click

from obsidian_dashboard.auth import AuthorizationContext, TokenStore
from obsidian_dashboard.calendar_view import WeekView
from obsidian_dashboard.config import DashboardConfig, load_config
from obsidian_dashboard.core.logging import configure_logging
from obsidian_dashboard.dashboard import build_dashboard
from obsidian_dashboard.errors import ConfigError, StoreError
from obsidian_dashboard.store import LocalStore, open_pool

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8400


@click.group()
@click.version_option(version="0.1.0")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to obsidian.toml (defaults to $OBSIDIAN_CONFIG or ./obsidian.toml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """Obsidian: a personal dashboard merging local and Google Calendar events."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _load(ctx: click.Context) -> DashboardConfig:
    try:
        config = load_config(ctx.obj.get("config_path"))
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)
    configure_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_root=config.logging.log_root,
    )
    return config


@cli.command()
@click.option("--host", default=DEFAULT_HOST, show_default=True, help="Bind address")
@click.option("--port", type=int, default=DEFAULT_PORT, show_default=True, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the dashboard HTTP API."""
    import uvicorn

    from obsidian_dashboard.api.app import create_app

    config = _load(ctx)
    click.echo(f"Serving dashboard on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port, log_config=None)


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create the local store tables and change-notification triggers."""
    config = _load(ctx)
    try:
        asyncio.run(_init_db(config))
    except StoreError as exc:
        click.echo(f"Local store error: {exc}", err=True)
        sys.exit(1)
    click.echo("Local store schema is up to date")


@cli.command()
@click.option(
    "--date",
    "anchor",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Any day of the week to show (defaults to today)",
)
@click.pass_context
def week(ctx: click.Context, anchor) -> None:
    """Print the merged events of one week."""
    config = _load(ctx)
    try:
        view = asyncio.run(_load_week(config, anchor.date() if anchor else None))
    except StoreError as exc:
        click.echo(f"Local store error: {exc}", err=True)
        sys.exit(1)
    _print_week(view, config.tz)


@cli.command()
@click.pass_context
def logout(ctx: click.Context) -> None:
    """Forget the stored Google Calendar token."""
    config = _load(ctx)
    auth = AuthorizationContext(TokenStore(config.google.token_path))
    was_connected = auth.is_authorized
    asyncio.run(auth.logout())
    click.echo("Disconnected from Google Calendar" if was_connected else "No stored token")


async def _init_db(config: DashboardConfig) -> None:
    pool = await open_pool(config.database_url, min_size=1, max_size=2)
    store = LocalStore(pool)
    try:
        await store.ensure_schema()
    finally:
        await store.close()


async def _load_week(config: DashboardConfig, anchor: date | None) -> WeekView:
    dashboard = await build_dashboard(config)
    try:
        report = await dashboard.events.refresh()
        if report.remote_error is not None:
            click.echo(f"warning: {report.remote_error}", err=True)
        if report.local_error is not None:
            click.echo(f"warning: {report.local_error}", err=True)
        return dashboard.week(anchor)
    finally:
        await dashboard.aclose()


def _print_week(view: WeekView, tz: tzinfo | None) -> None:
    click.echo(f"Week of {view.start.isoformat()} to {view.end.isoformat()}")
    for column in view.days:
        marker = " (today)" if column.is_today else ""
        click.echo(f"{column.day.strftime('%a %Y-%m-%d')}{marker}")
        if not column.events:
            click.echo("  -")
        for event in column.events:
            click.echo(
                f"  {event.start.astimezone(tz).strftime('%H:%M')}  {event.title}  "
                f"[{event.source.value}, {event.color.value}]"
            )
