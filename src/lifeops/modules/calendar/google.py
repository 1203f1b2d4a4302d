"""Google Calendar provider backed by the Calendar v3 REST API.

The provider holds a refresh-token credential and trades it for a bearer
token on first use, reusing that token until a minute before Google says
it expires.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx

from lifeops.modules.calendar.errors import (
    CalendarAuthError,
    CalendarRequestError,
    CalendarTokenRefreshError,
)
from lifeops.modules.calendar.models import Event, GoogleCredentials
from lifeops.modules.calendar.provider import CalendarProvider

logger = logging.getLogger(__name__)

GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
UNTITLED_EVENT_TITLE = "(untitled)"
MAX_PAGE_SIZE = 250

DEFAULT_TOKEN_LIFETIME = timedelta(hours=1)
TOKEN_EXPIRY_MARGIN = timedelta(minutes=1)


@dataclass(frozen=True)
class BearerToken:
    value: str
    expires_at: datetime

    def usable_at(self, moment: datetime) -> bool:
        return moment < self.expires_at


def _error_detail(response: httpx.Response) -> str:
    """Short, single-line description of a failed Google response."""
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        error = None
    if isinstance(error, dict):
        error = error.get("message")
    text = error if isinstance(error, str) and error.strip() else response.text
    return " ".join(text.split())[:200] or "no error body"


def _token_lifetime(payload: dict[str, Any]) -> timedelta:
    seconds = payload.get("expires_in")
    if isinstance(seconds, int) and not isinstance(seconds, bool) and seconds > 0:
        return timedelta(seconds=seconds)
    return DEFAULT_TOKEN_LIFETIME


# ---------------------------------------------------------------------------
# Payload translation
# ---------------------------------------------------------------------------


def _to_rfc3339(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _event_boundary(boundary: dict[str, Any]) -> datetime:
    if date_time := boundary.get("dateTime"):
        parsed = datetime.fromisoformat(str(date_time).replace("Z", "+00:00"))
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    if date := boundary.get("date"):
        # All-day events carry a bare date; anchor it at UTC midnight.
        return datetime.fromisoformat(str(date)).replace(tzinfo=UTC)
    raise ValueError("event boundary has neither dateTime nor date")


def google_event_to_event(payload: dict[str, Any]) -> Event | None:
    """Translate a Google event resource into an ``Event``.

    Returns None for cancelled events. Raises ``ValueError`` when the
    resource has no id or unusable start/end values.
    """
    if payload.get("status") == "cancelled":
        return None

    event_id = str(payload.get("id") or "").strip()
    if not event_id:
        raise ValueError("Google Calendar event payload is missing a non-empty id")
    start, end = payload.get("start"), payload.get("end")
    if not isinstance(start, dict) or not isinstance(end, dict):
        raise ValueError(f"Google Calendar event '{event_id}' has no start/end")

    summary = payload.get("summary")
    description = payload.get("description")
    return Event(
        external_id=event_id,
        title=summary if isinstance(summary, str) and summary.strip() else UNTITLED_EVENT_TITLE,
        start_time=_event_boundary(start),
        end_time=_event_boundary(end),
        description=description if isinstance(description, str) else None,
    )


def build_google_event_body(event: Event) -> dict[str, Any]:
    """Request body for events.insert and events.patch.

    ``description`` is always sent, as an empty string when unset, so a
    PATCH clears a description removed locally.
    """
    return {
        "summary": event.title,
        "description": event.description or "",
        "start": {"dateTime": _to_rfc3339(event.start_time)},
        "end": {"dateTime": _to_rfc3339(event.end_time)},
    }


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class GoogleCalendarProvider(CalendarProvider):
    """Calendar v3 client over httpx.

    *http_client* may be injected; an injected client is left open on
    :meth:`shutdown`.
    """

    def __init__(
        self,
        credentials: GoogleCredentials,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = credentials
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=30.0)
        self._token: BearerToken | None = None
        self._token_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "google"

    async def _bearer_token(self) -> str:
        async with self._token_lock:
            if self._token is None or not self._token.usable_at(datetime.now(UTC)):
                self._token = await self._fetch_token()
            return self._token.value

    async def _fetch_token(self) -> BearerToken:
        operation = "calendar.refresh_token"
        try:
            response = await self._http_client.post(
                GOOGLE_OAUTH_TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self._credentials.client_id,
                    "client_secret": self._credentials.client_secret,
                    "refresh_token": self._credentials.refresh_token,
                },
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise CalendarTokenRefreshError(
                f"Token endpoint unreachable: {exc}", operation=operation
            ) from exc
        if not response.is_success:
            raise CalendarTokenRefreshError(
                f"Token refresh rejected ({response.status_code}): {_error_detail(response)}",
                operation=operation,
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        value = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(value, str) or not value.strip():
            raise CalendarTokenRefreshError(
                "Token response carries no access_token", operation=operation
            )

        expires_at = datetime.now(UTC) + _token_lifetime(payload) - TOKEN_EXPIRY_MARGIN
        logger.debug("Refreshed Google access token (expires %s)", expires_at.isoformat())
        return BearerToken(value=value.strip(), expires_at=expires_at)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        target_id: str | None = None,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        token = await self._bearer_token()
        try:
            return await self._http_client.request(
                method,
                f"{GOOGLE_CALENDAR_API_BASE_URL}{path}",
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise CalendarAuthError(
                f"Google Calendar request failed: {exc}",
                operation=operation,
                target_id=target_id,
            ) from exc

    async def _send_for_json(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        target_id: str | None = None,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._send(
            method, path, operation=operation, target_id=target_id, params=params, body=body
        )
        if not response.is_success:
            raise CalendarRequestError(
                status_code=response.status_code,
                message=_error_detail(response),
                operation=operation,
                target_id=target_id,
            )
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise CalendarAuthError(
                "Google Calendar answered with a non-object body",
                operation=operation,
                target_id=target_id,
            )
        return payload

    def _event_from_response(self, payload: dict[str, Any], operation: str) -> Event:
        try:
            event = google_event_to_event(payload)
        except ValueError as exc:
            raise CalendarAuthError(str(exc), operation=operation) from exc
        if event is None:
            raise CalendarAuthError(
                "Google Calendar returned a cancelled event",
                operation=operation,
                target_id=payload.get("id"),
            )
        return event

    @staticmethod
    def _events_path(calendar_id: str, external_id: str | None = None) -> str:
        path = f"/calendars/{quote(calendar_id, safe='')}/events"
        if external_id is None:
            return path
        event_id = external_id.strip()
        if not event_id:
            raise ValueError("external_id must be a non-empty string")
        return f"{path}/{quote(event_id, safe='')}"

    async def list_events(
        self,
        *,
        calendar_id: str,
        start_at: datetime,
        end_at: datetime,
    ) -> list[Event]:
        params: dict[str, Any] = {
            "singleEvents": True,
            "showDeleted": False,
            "orderBy": "startTime",
            "maxResults": MAX_PAGE_SIZE,
            "timeMin": _to_rfc3339(start_at),
            "timeMax": _to_rfc3339(end_at),
        }
        path = self._events_path(calendar_id)

        events: list[Event] = []
        while True:
            page = await self._send_for_json(
                "GET", path, operation="calendar.list_events", target_id=calendar_id, params=params
            )
            items = page.get("items")
            if not isinstance(items, list):
                raise CalendarAuthError(
                    "Google Calendar list_events response missing items array",
                    operation="calendar.list_events",
                    target_id=calendar_id,
                )
            for item in items:
                try:
                    event = google_event_to_event(item) if isinstance(item, dict) else None
                except ValueError as exc:
                    logger.warning("Skipping malformed Google Calendar event: %s", exc)
                    continue
                if event is not None:
                    events.append(event)

            if not (page_token := page.get("nextPageToken")):
                return events
            params = {**params, "pageToken": page_token}

    async def create_event(self, *, calendar_id: str, event: Event) -> Event:
        payload = await self._send_for_json(
            "POST",
            self._events_path(calendar_id),
            operation="calendar.create_event",
            target_id=event.internal_id,
            body=build_google_event_body(event),
        )
        created = self._event_from_response(payload, "calendar.create_event")
        logger.debug("Created Google Calendar event %s", created.external_id)
        return created

    async def update_event(self, *, calendar_id: str, external_id: str, event: Event) -> Event:
        path = self._events_path(calendar_id, external_id)
        payload = await self._send_for_json(
            "PATCH",
            path,
            operation="calendar.update_event",
            target_id=external_id.strip(),
            body=build_google_event_body(event),
        )
        return self._event_from_response(payload, "calendar.update_event")

    async def delete_event(self, *, calendar_id: str, external_id: str) -> None:
        path = self._events_path(calendar_id, external_id)
        target_id = external_id.strip()
        response = await self._send(
            "DELETE", path, operation="calendar.delete_event", target_id=target_id
        )
        if response.status_code in (404, 410):
            logger.debug("Google Calendar event %s was already gone", target_id)
            return
        if not response.is_success:
            raise CalendarRequestError(
                status_code=response.status_code,
                message=_error_detail(response),
                operation="calendar.delete_event",
                target_id=target_id,
            )

    async def shutdown(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
