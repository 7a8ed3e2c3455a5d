"""Structured logging for the dashboard.

structlog's ``ProcessorFormatter`` sits on the stdlib root logger, so every
``logging.getLogger(__name__)`` call site is rendered by the same chain.
Each record carries:

- ``dashboard``: the instance id of the mounted dashboard
- ``refresh``: the generation of the event refresh that emitted it, so the
  local and remote reads of one refresh can be correlated and a discarded
  (stale) refresh can be told apart from the applied one
- ``trace_id`` / ``span_id``: only when an OTel span is active

Messages pass through :func:`redact_credentials` before rendering, so API
keys, bearer tokens and OAuth secrets never reach a handler.

With ``log_root`` set, a JSON-lines copy is appended to
``<log_root>/dashboard.jsonl``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

from obsidian_dashboard.errors import mask_secrets

_dashboard_context: ContextVar[str | None] = ContextVar("dashboard_instance", default=None)
_refresh_generation: ContextVar[int | None] = ContextVar("refresh_generation", default=None)

_NOISE_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncpg")

LOG_FILE_NAME = "dashboard.jsonl"


def set_dashboard_context(instance_id: str) -> None:
    """Set the dashboard instance id for the current async context."""
    _dashboard_context.set(instance_id)


def get_dashboard_context() -> str | None:
    return _dashboard_context.get()


@contextmanager
def refresh_scope(generation: int) -> Iterator[None]:
    """Tag every record logged inside the block with the refresh *generation*.

    Tasks created inside the block (the concurrent source reads) copy the
    context and keep the tag.
    """
    token = _refresh_generation.set(generation)
    try:
        yield
    finally:
        _refresh_generation.reset(token)


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def add_dashboard_context(logger, method_name, event_dict):  # noqa: ARG001
    event_dict["dashboard"] = _dashboard_context.get()
    generation = _refresh_generation.get()
    if generation is not None:
        event_dict["refresh"] = generation
    return event_dict


def add_otel_context(logger, method_name, event_dict):  # noqa: ARG001
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def redact_credentials(logger, method_name, event_dict):  # noqa: ARG001
    """Mask credential values in the rendered message."""
    event = event_dict.get("event")
    if isinstance(event, str):
        event_dict["event"] = mask_secrets(event)
    return event_dict


def _pre_chain(timestamp_fmt: str) -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=timestamp_fmt),
        structlog.stdlib.ExtraAdder(),
        redact_credentials,
        add_dashboard_context,
        add_otel_context,
    ]


def _formatter(renderer, pre_chain: list) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | str | None = None,
) -> None:
    """Install the console handler (and the optional JSON file) on the root logger.

    ``fmt`` is ``"text"`` (coloured console) or ``"json"``.  Calling this
    again replaces the previous handlers.
    """
    if fmt == "json":
        pre_chain = _pre_chain("iso")
        renderer = structlog.processors.JSONRenderer()
    else:
        pre_chain = _pre_chain("%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, pre_chain))

    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_root is not None:
        log_dir = Path(log_root)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME)
        file_handler.setFormatter(
            _formatter(structlog.processors.JSONRenderer(), _pre_chain("iso"))
        )
        root.addHandler(file_handler)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
