"""Remote calendar adapter for the Google Calendar v3 REST API.

Reads work with either a bearer token (full scope) or a public API key
(read-only).  Mutations require a bearer token.  Provider events are
normalized into :class:`~obsidian_dashboard.models.CalendarEvent` tagged
``source=remote``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from typing import Any
from urllib.parse import quote

import httpx

from obsidian_dashboard.errors import FetchError, ProviderError, Unauthorized
from obsidian_dashboard.models import (
    DEFAULT_EVENT_COLOR,
    CalendarEvent,
    EventColor,
    EventInput,
    EventSource,
)
from obsidian_dashboard.timeutils import localize

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
REMOTE_DEFAULT_TITLE = "No Title"
DEFAULT_MAX_RESULTS = 100

# Palette <-> Google event colorId ("9" is Blueberry).
PALETTE_TO_GOOGLE_COLOR: dict[EventColor, str] = {
    EventColor.red: "11",
    EventColor.blue: "9",
    EventColor.green: "10",
    EventColor.yellow: "5",
    EventColor.purple: "3",
    EventColor.gray: "8",
}
GOOGLE_TO_PALETTE_COLOR: dict[str, EventColor] = {
    color_id: color for color, color_id in PALETTE_TO_GOOGLE_COLOR.items()
}


def provider_color_id(color: Any) -> str:
    """Google colorId for a palette colour; unknown values map to blue."""
    try:
        return PALETTE_TO_GOOGLE_COLOR[EventColor(color)]
    except (KeyError, ValueError):
        return PALETTE_TO_GOOGLE_COLOR[DEFAULT_EVENT_COLOR]


def palette_color(color_id: Any) -> EventColor:
    """Palette colour for a Google colorId; unknown or missing ids map to blue."""
    if isinstance(color_id, int) and not isinstance(color_id, bool):
        color_id = str(color_id)
    if isinstance(color_id, str):
        return GOOGLE_TO_PALETTE_COLOR.get(color_id.strip(), DEFAULT_EVENT_COLOR)
    return DEFAULT_EVENT_COLOR


@dataclass(frozen=True)
class RemoteCredentials:
    """What a single provider call may authenticate with."""

    bearer_token: str | None = None
    api_key: str | None = None

    @property
    def can_read(self) -> bool:
        return bool(self.bearer_token or self.api_key)

    @property
    def can_write(self) -> bool:
        return bool(self.bearer_token)

    def __repr__(self) -> str:
        return (
            f"RemoteCredentials(bearer_token={'<REDACTED>' if self.bearer_token else None}, "
            f"api_key={'<REDACTED>' if self.api_key else None})"
        )


@dataclass
class FetchResult:
    """Outcome of a remote read.

    ``error`` is set when the fetch failed; ``events`` is then empty.  An empty
    list with no error means the provider genuinely had nothing to return (or
    the remote source is not configured).
    """

    events: list[CalendarEvent] = field(default_factory=list)
    error: FetchError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def _google_rfc3339(value: datetime) -> str:
    normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return normalized.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _parse_google_datetime(value: str) -> datetime:
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = f"{normalized[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Google Calendar returned an invalid dateTime: {value}") from exc
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _local_midnight(day: date, tz: tzinfo | None) -> datetime:
    return localize(datetime(day.year, day.month, day.day), tz)


def _parse_boundary(payload: Any, *, tz: tzinfo | None) -> datetime | None:
    """Concrete timestamp for a start/end payload; date-only means local midnight."""
    if not isinstance(payload, dict):
        return None

    date_time = payload.get("dateTime")
    if isinstance(date_time, str) and date_time.strip():
        return _parse_google_datetime(date_time)

    date_value = payload.get("date")
    if isinstance(date_value, str) and date_value.strip():
        try:
            parsed_date = date.fromisoformat(date_value.strip())
        except ValueError as exc:
            raise ValueError(f"Google Calendar returned an invalid date value: {date_value}") from exc
        return _local_midnight(parsed_date, tz)
    return None


def _optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def google_event_to_calendar_event(
    payload: dict[str, Any],
    *,
    tz: tzinfo | None = None,
) -> CalendarEvent | None:
    """Normalize one provider item. Cancelled events yield ``None``."""
    status = payload.get("status")
    if isinstance(status, str) and status.lower() == "cancelled":
        return None

    event_id = _optional_text(payload.get("id"))
    if event_id is None:
        raise ValueError("Google Calendar event payload is missing a non-empty id")

    start = _parse_boundary(payload.get("start"), tz=tz)
    if start is None:
        raise ValueError(f"Google Calendar event '{event_id}' is missing a start")
    end = _parse_boundary(payload.get("end"), tz=tz)

    return CalendarEvent(
        id=event_id,
        title=_optional_text(payload.get("summary")) or REMOTE_DEFAULT_TITLE,
        start=start,
        end=end,
        description=_optional_text(payload.get("description")),
        color=palette_color(payload.get("colorId")),
        source=EventSource.remote,
    )


def build_google_event_body(event: EventInput) -> dict[str, Any]:
    """Provider request body for create/update."""
    body: dict[str, Any] = {
        "summary": event.title,
        "description": event.description or "",
        "start": {"dateTime": _google_rfc3339(event.start)},
        "end": {"dateTime": _google_rfc3339(event.end or event.start)},
        "colorId": provider_color_id(event.color),
    }
    return body


def _safe_google_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:200]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:200]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:200]
    return "Request failed without an error payload"


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class GoogleCalendarAdapter:
    """Reads and writes one Google calendar.

    ``calendar_id`` of ``None`` disables the remote source: fetches return an
    empty result and :attr:`can_create` is always false.
    """

    def __init__(
        self,
        calendar_id: str | None,
        *,
        http_client: httpx.AsyncClient | None = None,
        tz: tzinfo | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self.calendar_id = calendar_id
        self._tz = tz
        self._max_results = max_results
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)

    @property
    def enabled(self) -> bool:
        return bool(self.calendar_id)

    def can_create(self, credentials: RemoteCredentials) -> bool:
        """True when a new event would land on the provider."""
        return self.enabled and credentials.can_write

    def _events_path(self, event_id: str | None = None) -> str:
        assert self.calendar_id is not None
        path = f"{GOOGLE_CALENDAR_API_BASE_URL}/calendars/{quote(self.calendar_id, safe='')}/events"
        if event_id is not None:
            path = f"{path}/{quote(event_id, safe='')}"
        return path

    async def fetch_events(
        self,
        window_start: datetime,
        window_end: datetime,
        credentials: RemoteCredentials,
    ) -> FetchResult:
        """Events starting within ``[window_start, window_end]``, ordered by start.

        Never raises for provider or network failures: those are reported
        through :attr:`FetchResult.error`.
        """
        if not self.enabled or not credentials.can_read:
            return FetchResult()

        params: dict[str, Any] = {
            "timeMin": _google_rfc3339(window_start),
            "timeMax": _google_rfc3339(window_end),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": self._max_results,
        }
        headers: dict[str, str] = {}
        if credentials.bearer_token:
            headers["Authorization"] = f"Bearer {credentials.bearer_token}"
        else:
            params["key"] = credentials.api_key

        try:
            response = await self._http_client.get(
                self._events_path(), params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            return self._fetch_failed(f"request failed: {exc}")

        if response.status_code < 200 or response.status_code >= 300:
            return self._fetch_failed(
                f"HTTP {response.status_code}: {_safe_google_error_message(response)}"
            )

        try:
            payload = response.json()
        except ValueError:
            return self._fetch_failed("provider returned invalid JSON")
        if not isinstance(payload, dict):
            return self._fetch_failed("provider returned an unexpected payload shape")
        if payload.get("error"):
            return self._fetch_failed(_safe_google_error_message(response))

        items = payload.get("items", [])
        if not isinstance(items, list):
            return self._fetch_failed("provider response is missing an items array")

        events: list[CalendarEvent] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            try:
                event = google_event_to_calendar_event(item, tz=self._tz)
            except ValueError as exc:
                logger.warning("Skipping malformed remote event: %s", exc)
                continue
            if event is None:
                continue
            if window_start <= event.start <= window_end:
                events.append(event)

        events.sort(key=lambda event: event.start)
        return FetchResult(events=events[: self._max_results])

    def _fetch_failed(self, message: str) -> FetchResult:
        error = FetchError("remote", message)
        logger.warning("Remote calendar fetch failed: %s", error.message)
        return FetchResult(error=error)

    async def create_event(self, event: EventInput, credentials: RemoteCredentials) -> CalendarEvent:
        payload = await self._mutate(
            "POST", self._events_path(), credentials, json_body=build_google_event_body(event)
        )
        return self._mutation_result(payload)

    async def update_event(
        self, event: CalendarEvent, credentials: RemoteCredentials
    ) -> CalendarEvent:
        payload = await self._mutate(
            "PUT",
            self._events_path(event.id),
            credentials,
            json_body=build_google_event_body(event),
        )
        return self._mutation_result(payload)

    async def delete_event(self, event_id: str, credentials: RemoteCredentials) -> None:
        await self._mutate("DELETE", self._events_path(event_id), credentials)

    async def _mutate(
        self,
        method: str,
        url: str,
        credentials: RemoteCredentials,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self.enabled:
            raise ProviderError(status_code=400, message="No remote calendar is configured")
        if not credentials.can_write:
            raise Unauthorized("Remote calendar is not connected")

        try:
            response = await self._http_client.request(
                method,
                url,
                json=json_body,
                headers={"Authorization": f"Bearer {credentials.bearer_token}"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(status_code=0, message=f"request failed: {exc}") from exc

        if response.status_code == 401:
            raise Unauthorized(_safe_google_error_message(response))
        if response.status_code < 200 or response.status_code >= 300:
            raise ProviderError(
                status_code=response.status_code,
                message=_safe_google_error_message(response),
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError(
                status_code=response.status_code,
                message="provider returned invalid JSON for a successful response",
            ) from exc
        return payload if isinstance(payload, dict) else {}

    def _mutation_result(self, payload: dict[str, Any]) -> CalendarEvent:
        try:
            event = google_event_to_calendar_event(payload, tz=self._tz)
        except ValueError as exc:
            raise ProviderError(status_code=200, message=str(exc)) from exc
        if event is None:
            raise ProviderError(status_code=200, message="provider returned a cancelled event")
        return event

    async def shutdown(self) -> None:
        """Release the HTTP client when this adapter created it."""
        if self._owns_http_client:
            await self._http_client.aclose()
