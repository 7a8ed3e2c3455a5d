"""Tests for the Google Calendar connect/disconnect endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from conftest import make_config, make_token, remote_event

from obsidian_dashboard.auth import CALENDAR_SCOPE, GOOGLE_TOKEN_URL

pytestmark = pytest.mark.unit


@pytest.fixture
def oauth_dashboard(dashboard):
    dashboard.config = make_config(client_id="client-123", client_secret="shh-secret")
    return dashboard


def _token_response(status: int, payload: dict) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("POST", GOOGLE_TOKEN_URL))


# ---------------------------------------------------------------------------
# Start
# ---------------------------------------------------------------------------


class TestStart:
    async def test_not_configured(self, client):
        resp = await client.get("/api/oauth/google/start")
        assert resp.status_code == 503
        assert resp.json()["error_code"] == "not_configured"

    async def test_redirects_to_consent(self, client, oauth_dashboard, oauth_states):
        resp = await client.get("/api/oauth/google/start")

        assert resp.status_code == 302
        location = urlparse(resp.headers["location"])
        assert location.netloc == "accounts.google.com"
        query = parse_qs(location.query)
        assert query["client_id"] == ["client-123"]
        assert query["scope"] == [CALENDAR_SCOPE]
        assert len(oauth_states) == 1

    async def test_json_mode(self, client, oauth_dashboard):
        resp = await client.get("/api/oauth/google/start", params={"redirect": "false"})
        data = resp.json()
        assert resp.status_code == 200
        assert data["state"] in data["authorization_url"]
        assert "shh-secret" not in resp.text


# ---------------------------------------------------------------------------
# Callback
# ---------------------------------------------------------------------------


class TestCallback:
    async def test_success_connects_and_refreshes(
        self, client, oauth_dashboard, oauth_states, token_http_client, fake_remote
    ):
        fake_remote.events = [remote_event("g1", "Standup", datetime(2024, 1, 2, 9, tzinfo=UTC))]
        token_http_client.post.return_value = _token_response(
            200, {"access_token": "ya29.fresh", "scope": CALENDAR_SCOPE, "expires_in": 3600}
        )
        state = oauth_states.issue()

        resp = await client.get(
            "/api/oauth/google/callback", params={"code": "auth-code", "state": state}
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["scope"] == CALENDAR_SCOPE
        assert "ya29.fresh" not in resp.text
        assert oauth_dashboard.auth.bearer == "ya29.fresh"
        assert [e.id for e in oauth_dashboard.events.events] == ["g1"]
        sent = token_http_client.post.await_args.kwargs["data"]
        assert sent["client_secret"] == "shh-secret"

    async def test_state_is_single_use(
        self, client, oauth_dashboard, oauth_states, token_http_client
    ):
        token_http_client.post.return_value = _token_response(200, {"access_token": "ya29.a"})
        state = oauth_states.issue()
        params = {"code": "auth-code", "state": state}

        assert (await client.get("/api/oauth/google/callback", params=params)).status_code == 200
        replay = await client.get("/api/oauth/google/callback", params=params)
        assert replay.json()["error_code"] == "invalid_state"

    @pytest.mark.parametrize(
        ("params", "error_code"),
        [
            ({"state": "s"}, "missing_code"),
            ({"code": "c"}, "missing_state"),
            ({"code": "c", "state": "forged"}, "invalid_state"),
        ],
    )
    async def test_rejects_incomplete_callbacks(self, client, oauth_dashboard, params, error_code):
        resp = await client.get("/api/oauth/google/callback", params=params)
        assert resp.status_code == 400
        assert resp.json()["error_code"] == error_code

    async def test_known_provider_error(self, client, oauth_dashboard, oauth_states):
        state = oauth_states.issue()
        resp = await client.get(
            "/api/oauth/google/callback", params={"error": "access_denied", "state": state}
        )
        assert resp.json()["error_code"] == "provider_error"
        assert "denied" in resp.json()["message"]
        assert not oauth_states.consume(state)

    async def test_unknown_provider_error_is_not_echoed(self, client, oauth_dashboard):
        resp = await client.get(
            "/api/oauth/google/callback", params={"error": "<script>alert(1)</script>"}
        )
        assert "<script>" not in resp.text

    async def test_exchange_failure(
        self, client, oauth_dashboard, oauth_states, token_http_client
    ):
        token_http_client.post.return_value = _token_response(400, {"error": "invalid_grant"})
        resp = await client.get(
            "/api/oauth/google/callback",
            params={"code": "stale", "state": oauth_states.issue()},
        )
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "token_exchange_failed"
        assert not oauth_dashboard.auth.is_authorized


# ---------------------------------------------------------------------------
# Logout and status
# ---------------------------------------------------------------------------


class TestStatus:
    async def test_status_disconnected(self, client):
        data = (await client.get("/api/oauth/status")).json()["data"]
        assert data == {
            "connected": False,
            "oauth_configured": False,
            "calendar_configured": True,
            "scope": None,
        }

    async def test_status_connected_hides_token(self, client, auth):
        await auth.login(make_token("ya29.hidden"))
        resp = await client.get("/api/oauth/status")
        assert resp.json()["data"]["connected"] is True
        assert "ya29.hidden" not in resp.text

    async def test_logout(self, client, dashboard, auth, fake_remote):
        fake_remote.events = [remote_event("g1", "Standup", datetime(2024, 1, 2, 9, tzinfo=UTC))]
        await auth.login(make_token())
        assert dashboard.events.events

        resp = await client.post("/api/oauth/logout")

        assert resp.json()["data"] == {"connected": False}
        assert not auth.is_authorized
        assert dashboard.events.events == ()
