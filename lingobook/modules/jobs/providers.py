"""External collaborators used by job handlers: calendar and email."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx

from lingobook.core.config import Settings
from lingobook.shared.exceptions import UpstreamException

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CalendarEvent:
    external_event_id: str | None
    meeting_url: str


class CalendarProvider(Protocol):
    async def create_event(
        self,
        request_id: str,
        summary: str,
        description: str,
        attendee_email: str | None,
        starts_at: datetime,
        ends_at: datetime,
    ) -> CalendarEvent: ...

    async def update_event(self, event_id: str, starts_at: datetime, ends_at: datetime) -> None: ...

    async def delete_event(self, event_id: str) -> None: ...


class EmailProvider(Protocol):
    async def send(self, to: str, subject: str, html: str) -> str | None: ...


class PlaceholderCalendarProvider:
    """Used when a tenant has not connected a calendar: only a placeholder meeting link."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url

    async def create_event(
        self,
        request_id: str,
        summary: str,
        description: str,
        attendee_email: str | None,
        starts_at: datetime,
        ends_at: datetime,
    ) -> CalendarEvent:
        return CalendarEvent(external_event_id=None, meeting_url=f"{self.base_url}{request_id[:8]}")

    async def update_event(self, event_id: str, starts_at: datetime, ends_at: datetime) -> None:
        return None

    async def delete_event(self, event_id: str) -> None:
        return None


class GoogleCalendarProvider:
    """Google Calendar REST client authorized with a tenant refresh token."""

    def __init__(
        self,
        settings: Settings,
        refresh_token: str,
        calendar_id: str | None,
        timezone: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.refresh_token = refresh_token
        self.calendar_id = calendar_id or "primary"
        self.timezone = timezone
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.calendar_timeout_seconds, transport=self.transport)

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        try:
            response = await client.post(
                self.settings.google_token_url,
                data={
                    "client_id": self.settings.google_client_id or "",
                    "client_secret": self.settings.google_client_secret or "",
                    "refresh_token": self.refresh_token,
                    "grant_type": "refresh_token",
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UpstreamException(f"Calendar token refresh failed: {exc}") from exc
        return response.json()["access_token"]

    def _events_url(self, event_id: str | None = None) -> str:
        base = f"{self.settings.google_calendar_api_url}/calendars/{self.calendar_id}/events"
        return f"{base}/{event_id}" if event_id else base

    def _time_field(self, instant: datetime) -> dict[str, str]:
        return {"dateTime": instant.isoformat(), "timeZone": self.timezone}

    async def create_event(
        self,
        request_id: str,
        summary: str,
        description: str,
        attendee_email: str | None,
        starts_at: datetime,
        ends_at: datetime,
    ) -> CalendarEvent:
        body = {
            "summary": summary,
            "description": description,
            "start": self._time_field(starts_at),
            "end": self._time_field(ends_at),
            "attendees": [{"email": attendee_email}] if attendee_email else [],
            "conferenceData": {
                "createRequest": {
                    "requestId": f"lb-{request_id}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                },
            },
        }
        async with self._client() as client:
            token = await self._access_token(client)
            try:
                response = await client.post(
                    self._events_url(),
                    params={"conferenceDataVersion": 1},
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise UpstreamException(f"Calendar event creation failed: {exc}") from exc

        created = response.json()
        entry_points = (created.get("conferenceData") or {}).get("entryPoints") or []
        meeting_url = entry_points[0].get("uri") if entry_points else created.get("hangoutLink", "")
        return CalendarEvent(external_event_id=created.get("id"), meeting_url=meeting_url or "")

    async def update_event(self, event_id: str, starts_at: datetime, ends_at: datetime) -> None:
        async with self._client() as client:
            token = await self._access_token(client)
            try:
                response = await client.patch(
                    self._events_url(event_id),
                    json={"start": self._time_field(starts_at), "end": self._time_field(ends_at)},
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise UpstreamException(f"Calendar event update failed: {exc}") from exc

    async def delete_event(self, event_id: str) -> None:
        async with self._client() as client:
            token = await self._access_token(client)
            try:
                response = await client.delete(
                    self._events_url(event_id),
                    headers={"Authorization": f"Bearer {token}"},
                )
                # Already gone is fine.
                if response.status_code not in (404, 410):
                    response.raise_for_status()
            except httpx.HTTPError as exc:
                raise UpstreamException(f"Calendar event deletion failed: {exc}") from exc


class LoggingEmailProvider:
    """Development sink: logs the message instead of sending it."""

    async def send(self, to: str, subject: str, html: str) -> str | None:
        logger.info("Email to %s | %s | %s", to, subject, html[:200])
        return None


class HttpEmailProvider:
    """Transactional email API client (Resend-compatible JSON endpoint)."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self.transport = transport

    async def send(self, to: str, subject: str, html: str) -> str | None:
        async with httpx.AsyncClient(timeout=self.settings.email_timeout_seconds, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.settings.email_api_url,
                    json={"from": self.settings.email_from, "to": [to], "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {self.settings.email_api_key}"},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise UpstreamException(f"Email delivery failed: {exc}") from exc
        return response.json().get("id")


def build_email_provider(settings: Settings) -> EmailProvider:
    if not settings.email_api_key:
        return LoggingEmailProvider()
    return HttpEmailProvider(settings)


def build_calendar_provider(
    settings: Settings,
    refresh_token: str | None,
    calendar_id: str | None,
    timezone: str,
) -> CalendarProvider:
    if not refresh_token:
        return PlaceholderCalendarProvider(settings.calendar_placeholder_base_url)
    return GoogleCalendarProvider(settings, refresh_token, calendar_id, timezone)
