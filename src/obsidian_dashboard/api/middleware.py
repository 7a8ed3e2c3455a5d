"""API error handling middleware: consistent error responses.

Registers FastAPI exception handlers that convert domain exceptions into
standardised ``{"error": {"code": "...", "message": "..."}}`` JSON responses,
so a failed save or delete keeps the editor open with a readable message.

Status code mapping:
- ``Unauthorized`` → 401 Unauthorized
- ``ProviderError`` → 502 Bad Gateway
- ``StoreError`` → 503 Service Unavailable
- ``KeyError`` (unknown todo or event) → 404 Not Found
- ``ValueError`` → 400 Bad Request
- Any other ``Exception`` → 500 Internal Server Error
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from obsidian_dashboard.api.models import ErrorDetail, ErrorResponse
from obsidian_dashboard.errors import ProviderError, StoreError, Unauthorized

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, details: dict | None = None):
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_unauthorized(request: Request, exc: Unauthorized) -> JSONResponse:
    """Return 401 when the calendar provider rejected the bearer token."""
    logger.warning("Calendar provider rejected credentials on %s", request.url.path)
    return _error_response(401, "UNAUTHORIZED", exc.message)


async def _handle_provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    """Return 502 when the calendar provider refused a mutation."""
    logger.warning("Calendar provider error on %s: %s", request.url.path, exc)
    return _error_response(
        502, "PROVIDER_ERROR", exc.message, details={"status_code": exc.status_code}
    )


async def _handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    """Return 503 when the local store is unavailable."""
    logger.warning("Local store error on %s: %s", request.url.path, exc, exc_info=exc)
    return _error_response(
        503, "STORE_ERROR", str(exc), details={"operation": exc.operation}
    )


async def _handle_key_error(request: Request, exc: KeyError) -> JSONResponse:
    """Return 404 for an unknown todo or event id."""
    item_id = exc.args[0] if exc.args else None
    logger.info("Not found: %s", item_id)
    return _error_response(404, "NOT_FOUND", f"Not found: {item_id}")


async def _handle_value_error(request: Request, exc: ValueError) -> JSONResponse:
    """Return 400 for validation / value errors."""
    logger.info("Validation error: %s", exc)
    return _error_response(400, "VALIDATION_ERROR", str(exc))


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """ASGI middleware that catches any unhandled exception and returns a 500.

    This sits above the Starlette exception handler layer, ensuring that
    even exceptions not caught by ``add_exception_handler`` are converted
    to the standard error envelope rather than bubbling up as raw 500s.
    """

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application.

    Domain-specific exceptions are registered via ``add_exception_handler``.
    The generic catch-all is an ASGI middleware that wraps the entire app.
    """
    app.add_exception_handler(Unauthorized, _handle_unauthorized)  # type: ignore[arg-type]
    app.add_exception_handler(ProviderError, _handle_provider_error)  # type: ignore[arg-type]
    app.add_exception_handler(StoreError, _handle_store_error)  # type: ignore[arg-type]
    app.add_exception_handler(KeyError, _handle_key_error)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, _handle_value_error)  # type: ignore[arg-type]
    app.add_middleware(CatchAllErrorMiddleware)
