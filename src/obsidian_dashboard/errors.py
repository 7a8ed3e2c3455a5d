"""Error taxonomy shared by the adapters, the reconciliation core and the API.

Read failures (``FetchError``) degrade to "no data from that source" and are
only logged.  Write failures (``Unauthorized``, ``ProviderError``,
``StoreError``) always propagate to the caller that initiated the mutation.
"""

from __future__ import annotations

import re

_SECRET_PATTERNS = (
    re.compile(
        r"(?i)\b(client_secret|refresh_token|access_token|token|key)\s*=\s*([^\s,;&]+)"
    ),
    re.compile(r"(?i)\b(Bearer)\s+([A-Za-z0-9._\-]+)"),
)


def mask_secrets(message: str) -> str:
    """Replace token-like values in *message* with ``[REDACTED]``."""
    masked = _SECRET_PATTERNS[0].sub(r"\1=[REDACTED]", message)
    return _SECRET_PATTERNS[1].sub(r"\1 [REDACTED]", masked)


def redact_secrets(message: str) -> str:
    """Mask token-like values in *message* and trim it to 200 characters."""
    return " ".join(mask_secrets(message).split())[:200]


class DashboardError(Exception):
    """Base class for all dashboard domain errors."""


class FetchError(DashboardError):
    """A read from the local store or the remote provider failed.

    Recoverable: the failing source contributes no events to the merge.
    """

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        self.message = redact_secrets(message)
        super().__init__(f"{source} fetch failed: {self.message}")


class Unauthorized(DashboardError):
    """The remote provider rejected the bearer token (HTTP 401).

    The stored token is left in place; the user decides whether to reconnect.
    """

    def __init__(self, message: str = "Calendar authorization was rejected") -> None:
        self.message = redact_secrets(message)
        super().__init__(self.message)


class ProviderError(DashboardError):
    """The remote provider answered a mutation with a non-2xx status other than 401."""

    def __init__(self, *, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = redact_secrets(message)
        super().__init__(f"Calendar provider request failed ({status_code}): {self.message}")


class StoreError(DashboardError):
    """A local store operation failed.  The underlying cause is chained."""

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {redact_secrets(str(cause))}" if cause is not None else ""
        super().__init__(f"Local store {operation} failed{detail}")


class AuthorizationError(DashboardError):
    """The OAuth consent flow could not produce a bearer token."""


class ConfigError(DashboardError):
    """Dashboard configuration is missing, malformed or invalid."""
