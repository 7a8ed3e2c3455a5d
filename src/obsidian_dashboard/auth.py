"""Authorization context for the remote calendar provider.

A single :class:`AuthorizationContext` owns the bearer token: it loads it from
client-local storage at startup, persists it on login, deletes it on logout
and tells interested parties (the reconciliation core) that the
authorization state changed.  Adapters never read the token from anywhere
else.

Token material is never logged in plaintext.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from obsidian_dashboard.errors import AuthorizationError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPE = "https://www.googleapis.com/auth/calendar"

_STATE_TTL_SECONDS = 600  # 10 minutes

AuthListener = Callable[[bool], Awaitable[None]]


class GoogleToken(BaseModel):
    """Bearer credential granted by the consent flow."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None

    @field_validator("access_token")
    @classmethod
    def _normalize_non_empty(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("must be a non-empty string")
        return normalized

    @classmethod
    def from_token_response(cls, payload: dict[str, Any]) -> GoogleToken:
        """Build a token from Google's token endpoint JSON."""
        expires_in = payload.get("expires_in")
        expires_at = None
        if isinstance(expires_in, int | float) and not isinstance(expires_in, bool):
            expires_at = datetime.now(UTC) + timedelta(seconds=int(expires_in))
        return cls(
            access_token=str(payload.get("access_token") or ""),
            refresh_token=payload.get("refresh_token"),
            expires_at=expires_at,
            scope=payload.get("scope"),
        )

    def __repr__(self) -> str:
        return (
            f"GoogleToken(access_token=<REDACTED>, "
            f"refresh_token={'<REDACTED>' if self.refresh_token else None}, "
            f"expires_at={self.expires_at!r}, scope={self.scope!r})"
        )

    __str__ = __repr__


class TokenStore:
    """JSON file holding the bearer token (the client-local storage slot)."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> GoogleToken | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text())
            return GoogleToken.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, type(exc).__name__)
            return None

    def save(self, token: GoogleToken) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        # O_EXCL: a leftover temp file would keep its old permissions.
        tmp_path.unlink(missing_ok=True)
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "w") as handle:
            handle.write(token.model_dump_json())
        tmp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class AuthorizationContext:
    """Single owner of the remote bearer token.

    ``store`` may be ``None`` for a purely in-memory context (tests, one-off
    CLI runs).
    """

    def __init__(self, store: TokenStore | None = None) -> None:
        self._store = store
        self._token: GoogleToken | None = store.load() if store is not None else None
        self._listeners: list[AuthListener] = []

    @property
    def token(self) -> GoogleToken | None:
        return self._token

    @property
    def bearer(self) -> str | None:
        return self._token.access_token if self._token is not None else None

    @property
    def is_authorized(self) -> bool:
        return self._token is not None

    def add_listener(self, listener: AuthListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AuthListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def login(self, token: GoogleToken) -> None:
        """Adopt *token*, persist it, and notify listeners."""
        self._token = token
        if self._store is not None:
            self._store.save(token)
        logger.info("Remote calendar connected (scope=%s)", token.scope)
        await self._notify()

    async def logout(self) -> None:
        """Forget the token, delete it from storage, and notify listeners."""
        self._token = None
        if self._store is not None:
            self._store.clear()
        logger.info("Remote calendar disconnected")
        await self._notify()

    async def _notify(self) -> None:
        authorized = self.is_authorized
        for listener in list(self._listeners):
            try:
                await listener(authorized)
            except Exception:
                logger.warning("Authorization listener failed", exc_info=True)


# ---------------------------------------------------------------------------
# OAuth consent flow
# ---------------------------------------------------------------------------


class OAuthStateStore:
    """One-time CSRF state tokens with a fixed TTL."""

    def __init__(self, ttl_seconds: float = _STATE_TTL_SECONDS) -> None:
        self._ttl = ttl_seconds
        self._states: dict[str, float] = {}

    def issue(self) -> str:
        state = secrets.token_urlsafe(32)
        self._states[state] = time.monotonic() + self._ttl
        self._evict_expired()
        return state

    def consume(self, state: str) -> bool:
        """Validate and consume *state*. Returns False if unknown or expired."""
        self._evict_expired()
        expiry = self._states.pop(state, None)
        if expiry is None:
            return False
        return time.monotonic() < expiry

    def _evict_expired(self) -> None:
        now = time.monotonic()
        for key in [k for k, exp in self._states.items() if now >= exp]:
            del self._states[key]

    def __len__(self) -> int:
        return len(self._states)


def build_consent_url(*, client_id: str, redirect_uri: str, state: str) -> str:
    """Google consent URL for the fixed read-write calendar scope."""
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": CALENDAR_SCOPE,
        "access_type": "offline",
        "prompt": "consent",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_token(
    http_client: httpx.AsyncClient,
    *,
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
) -> GoogleToken:
    """Exchange an authorization code for a bearer token.

    Raises
    ------
    AuthorizationError
        If the exchange fails for any reason (HTTP error, invalid code,
        network error, malformed response).
    """
    payload = {
        "code": code,
        "client_id": client_id,
        "client_secret": client_secret,
        "redirect_uri": redirect_uri,
        "grant_type": "authorization_code",
    }
    try:
        response = await http_client.post(
            GOOGLE_TOKEN_URL, data=payload, headers={"Accept": "application/json"}
        )
    except httpx.HTTPError as exc:
        raise AuthorizationError(f"Network error during token exchange: {exc}") from exc

    if response.status_code != 200:
        # Status only: the body may contain sensitive details.
        raise AuthorizationError(f"Token endpoint returned HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError as exc:
        raise AuthorizationError("Invalid JSON in token response") from exc
    if not isinstance(data, dict):
        raise AuthorizationError("Token response is not a JSON object")

    try:
        return GoogleToken.from_token_response(data)
    except ValidationError as exc:
        raise AuthorizationError("Token response is missing a non-empty access_token") from exc
