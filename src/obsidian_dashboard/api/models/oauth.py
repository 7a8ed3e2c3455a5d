"""Pydantic models for the Google OAuth connect/disconnect endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class OAuthStartResponse(BaseModel):
    """Authorization URL the user should visit to grant calendar access."""

    authorization_url: str
    state: str


class OAuthCallbackSuccess(BaseModel):
    success: bool = True
    message: str = "Google Calendar connected."
    provider: str = "google"
    scope: str | None = None


class OAuthCallbackError(BaseModel):
    """Error payload returned when the OAuth callback fails.

    Error messages are actionable but do not leak client secrets or raw
    provider error details.
    """

    success: bool = False
    error_code: str
    message: str
    provider: str = "google"


class OAuthStatusResponse(BaseModel):
    """Connection state; never includes token material."""

    connected: bool
    oauth_configured: bool
    calendar_configured: bool
    scope: str | None = None


class LogoutResponse(BaseModel):
    connected: bool = False
