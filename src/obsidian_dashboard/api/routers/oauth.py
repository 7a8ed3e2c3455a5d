"""Google Calendar connect/disconnect endpoints.

The consent flow:
  1. GET /api/oauth/google/start
     - Issues a one-time CSRF state token (TTL 10 min).
     - Redirects to the Google consent URL for the read-write calendar scope,
       or returns it as JSON with ``?redirect=false``.

  2. GET /api/oauth/google/callback
     - Validates and consumes the state token.
     - Exchanges the authorization code for a bearer token and hands it to
       the dashboard's ``AuthorizationContext`` (persist + refresh).

  3. POST /api/oauth/logout
     - Clears the token; the dashboard refreshes to local-only events.

  4. GET /api/oauth/status
     - Reports connection state without exposing token values.

Provider error strings are mapped to fixed messages; client secrets and
tokens are never echoed back or logged.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response

from obsidian_dashboard.api.deps import get_dashboard, get_http_client, get_oauth_states
from obsidian_dashboard.api.models import (
    ApiResponse,
    LogoutResponse,
    OAuthCallbackError,
    OAuthCallbackSuccess,
    OAuthStartResponse,
    OAuthStatusResponse,
)
from obsidian_dashboard.auth import OAuthStateStore, build_consent_url, exchange_code_for_token
from obsidian_dashboard.dashboard import Dashboard
from obsidian_dashboard.errors import AuthorizationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/oauth", tags=["oauth"])


def _oauth_not_configured() -> JSONResponse:
    payload = OAuthCallbackError(
        error_code="not_configured",
        message="Google OAuth is not configured. Set GOOGLE_OAUTH_CLIENT_ID and "
        "GOOGLE_OAUTH_CLIENT_SECRET.",
    )
    return JSONResponse(status_code=503, content=payload.model_dump())


def _callback_error(error_code: str, message: str) -> JSONResponse:
    payload = OAuthCallbackError(error_code=error_code, message=message)
    return JSONResponse(status_code=400, content=payload.model_dump())


# ---------------------------------------------------------------------------
# Start endpoint
# ---------------------------------------------------------------------------


@router.get(
    "/google/start",
    responses={
        200: {"model": OAuthStartResponse, "description": "JSON payload (redirect=false)"},
        302: {"description": "Redirect to Google authorization URL"},
    },
)
async def oauth_google_start(
    redirect: bool = Query(
        default=True,
        description="If true (default), redirect to Google. If false, return the URL as JSON.",
    ),
    dashboard: Dashboard = Depends(get_dashboard),
    states: OAuthStateStore = Depends(get_oauth_states),
) -> Response:
    google = dashboard.config.google
    if not google.oauth_configured:
        return _oauth_not_configured()

    state = states.issue()
    authorization_url = build_consent_url(
        client_id=google.client_id, redirect_uri=google.redirect_uri, state=state
    )
    logger.info("Google OAuth consent started (state=%s...)", state[:8])

    if redirect:
        return RedirectResponse(url=authorization_url, status_code=302)
    return JSONResponse(
        content=OAuthStartResponse(authorization_url=authorization_url, state=state).model_dump()
    )


# ---------------------------------------------------------------------------
# Callback endpoint
# ---------------------------------------------------------------------------


@router.get("/google/callback")
async def oauth_google_callback(
    code: str | None = Query(default=None, description="Authorization code from Google."),
    state: str | None = Query(default=None, description="CSRF state token."),
    error: str | None = Query(default=None, description="OAuth error code from Google."),
    dashboard: Dashboard = Depends(get_dashboard),
    states: OAuthStateStore = Depends(get_oauth_states),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Finish the consent flow and connect the remote calendar."""
    if error:
        logger.warning("Google OAuth provider error: %s", error)
        # Consume the state so a denied flow cannot be replayed.
        if state:
            states.consume(state)
        return _callback_error("provider_error", _sanitize_provider_error(error))

    if not code:
        return _callback_error("missing_code", "Authorization code is missing from the callback.")
    if not state:
        return _callback_error(
            "missing_state", "State parameter is missing from the callback. Possible CSRF attempt."
        )
    if not states.consume(state):
        logger.warning("OAuth callback received invalid or expired state token")
        return _callback_error(
            "invalid_state", "State parameter is invalid or expired. Please restart the OAuth flow."
        )

    google = dashboard.config.google
    if not google.oauth_configured:
        return _oauth_not_configured()

    try:
        token = await exchange_code_for_token(
            http_client,
            code=code,
            client_id=google.client_id,
            client_secret=google.client_secret,
            redirect_uri=google.redirect_uri,
        )
    except AuthorizationError as exc:
        logger.warning("Google OAuth token exchange failed: %s", exc)
        return _callback_error(
            "token_exchange_failed",
            "Failed to exchange authorization code for a token. "
            "The code may have expired or already been used. Please restart the OAuth flow.",
        )

    await dashboard.auth.login(token)
    return JSONResponse(content=OAuthCallbackSuccess(scope=token.scope).model_dump())


# ---------------------------------------------------------------------------
# Logout and status
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=ApiResponse[LogoutResponse])
async def oauth_logout(dashboard: Dashboard = Depends(get_dashboard)) -> ApiResponse[LogoutResponse]:
    await dashboard.auth.logout()
    return ApiResponse[LogoutResponse](data=LogoutResponse(connected=dashboard.auth.is_authorized))


@router.get("/status", response_model=ApiResponse[OAuthStatusResponse])
async def oauth_status(
    dashboard: Dashboard = Depends(get_dashboard),
) -> ApiResponse[OAuthStatusResponse]:
    token = dashboard.auth.token
    return ApiResponse[OAuthStatusResponse](
        data=OAuthStatusResponse(
            connected=token is not None,
            oauth_configured=dashboard.config.google.oauth_configured,
            calendar_configured=dashboard.remote.enabled,
            scope=token.scope if token is not None else None,
        )
    )


# ---------------------------------------------------------------------------
# Error sanitization
# ---------------------------------------------------------------------------

_KNOWN_PROVIDER_ERRORS: dict[str, str] = {
    "access_denied": "The user denied access. OAuth flow cancelled.",
    "invalid_request": "The OAuth request was malformed. Please restart the flow.",
    "unauthorized_client": "This application is not authorized to use Google OAuth. "
    "Check your OAuth app configuration.",
    "invalid_scope": "The calendar scope is invalid or not permitted for this OAuth app.",
    "server_error": "Google encountered an internal error. Please try again.",
    "temporarily_unavailable": "Google OAuth is temporarily unavailable. Please try again later.",
}


def _sanitize_provider_error(error: str) -> str:
    """Unknown provider error codes become a generic message."""
    return _KNOWN_PROVIDER_ERRORS.get(
        error,
        "The OAuth authorization failed. Please restart the flow.",
    )
