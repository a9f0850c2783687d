"""Google Calendar v3 client with per-user OAuth credentials and retries.

Credentials are rebuilt from the token store on every call so that a user
who connects (or reconnects) Google Calendar is picked up immediately.
Expired access tokens are refreshed with the stored refresh token and the
refreshed tokens are written back.

API docs: https://developers.google.com/calendar/api/v3/reference/events
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import UTC, datetime, timedelta
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.auth.transport.requests import Request as GoogleRequest
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from calendar_assistant.config import (
    APP_TIMEZONE,
    APPOINTMENT_DURATION_MINUTES,
    GOOGLE_CALENDAR_ID,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_SCOPES,
)
from calendar_assistant.services.metrics import metrics
from calendar_assistant.services.token_store import TokenStore, get_token_store

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

TOKEN_URI = "https://oauth2.googleapis.com/token"

# Network-level failures worth retrying (OSError covers socket, DNS and TLS errors)
_TRANSPORT_ERRORS = (OSError, httplib2.HttpLib2Error, TransportError)

# Popup reminders attached to every mirrored event, in minutes before start
EVENT_REMINDER_MINUTES = (30, 15)


class CalendarAPIError(Exception):
    """Raised when a Google Calendar call fails after all retries."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def _normalize_token_info(tokens: dict[str, Any]) -> dict[str, Any]:
    """Map stored tokens onto the shape ``Credentials.from_authorized_user_info`` wants.

    Accepts both ``Credentials.to_json()`` output and the raw token
    endpoint response (``access_token`` / ``scope``).  Client id/secret
    fall back to the configured OAuth client.
    """
    info = dict(tokens)
    if "token" not in info and "access_token" in info:
        info["token"] = info.pop("access_token")
    if "scopes" not in info and isinstance(info.get("scope"), str):
        info["scopes"] = info.pop("scope").split()
    info.setdefault("client_id", GOOGLE_CLIENT_ID)
    info.setdefault("client_secret", GOOGLE_CLIENT_SECRET)
    info.setdefault("token_uri", TOKEN_URI)
    # Raw token responses carry an epoch-millis ``expiry_date``; google-auth
    # wants an ISO ``expiry`` and treats a missing one as already expired.
    expiry_ms = info.pop("expiry_date", None)
    if "expiry" not in info and isinstance(expiry_ms, (int, float)):
        expiry = datetime.fromtimestamp(expiry_ms / 1000, tz=UTC)
        info["expiry"] = expiry.strftime("%Y-%m-%dT%H:%M:%SZ")
    return info


def build_event_body(
    title: str,
    date: str,
    time_str: str,
    description: str = "",
    *,
    timezone: str = APP_TIMEZONE,
    duration_minutes: int = APPOINTMENT_DURATION_MINUTES,
) -> dict[str, Any]:
    """Build the Calendar API event resource for an appointment.

    Start and end are sent as local wall-clock time together with an
    explicit ``timeZone`` so Google interprets them in the user's zone.
    """
    start = datetime.strptime(f"{date} {time_str}", "%Y-%m-%d %H:%M")
    end = start + timedelta(minutes=duration_minutes)
    return {
        "summary": title,
        "description": description or "",
        "start": {"dateTime": start.isoformat(), "timeZone": timezone},
        "end": {"dateTime": end.isoformat(), "timeZone": timezone},
        "reminders": {
            "useDefault": False,
            "overrides": [
                {"method": "popup", "minutes": minutes} for minutes in EVENT_REMINDER_MINUTES
            ],
        },
    }


class GoogleCalendarClient:
    """Creates and deletes events in a user's Google Calendar."""

    def __init__(
        self,
        token_store: TokenStore | None = None,
        *,
        calendar_id: str = GOOGLE_CALENDAR_ID,
        timezone: str = APP_TIMEZONE,
    ):
        self._token_store = token_store
        self._calendar_id = calendar_id
        self._timezone = timezone

    @property
    def token_store(self) -> TokenStore:
        if self._token_store is None:
            self._token_store = get_token_store()
        return self._token_store

    # ── Internal helpers ─────────────────────────────────────────────

    def _get_credentials(self, user_id: str) -> Credentials | None:
        """Return valid credentials for *user_id*, or ``None`` if not connected."""
        tokens = self.token_store.get_tokens(user_id)
        if not tokens:
            return None

        try:
            creds = Credentials.from_authorized_user_info(
                _normalize_token_info(tokens), GOOGLE_SCOPES,
            )
        except ValueError as exc:
            raise CalendarAPIError(f"Stored Google credentials are incomplete: {exc}") from exc

        if creds.expired and creds.refresh_token:
            try:
                with metrics.track("google_calendar", "oauth.refresh"):
                    creds.refresh(GoogleRequest())
            except GoogleAuthError as exc:
                raise CalendarAPIError(f"Google credentials could not be refreshed: {exc}") from exc
            self.token_store.save_tokens(user_id, json.loads(creds.to_json()))
            logger.debug("Refreshed Google access token for %s", user_id)
        return creds

    def _get_service(self, user_id: str):
        creds = self._get_credentials(user_id)
        if creds is None:
            return None
        return build("calendar", "v3", credentials=creds, cache_discovery=False)

    def _execute(self, request, operation: str) -> dict[str, Any]:
        """Execute a Calendar API request with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.track("google_calendar", operation):
                    return request.execute() or {}

            except HttpError as exc:
                status = exc.resp.status
                if status < 500:
                    raise CalendarAPIError(
                        f"Google Calendar error {status}: {exc.reason}", status_code=status,
                    ) from exc
                last_error = exc
                logger.warning(
                    "Google Calendar server error %d on attempt %d/%d.",
                    status, attempt, MAX_RETRIES,
                )
            except RefreshError as exc:
                raise CalendarAPIError(f"Google credentials could not be refreshed: {exc}") from exc
            except _TRANSPORT_ERRORS as exc:
                last_error = exc
                logger.warning(
                    "Google Calendar attempt %d/%d failed (%s: %s).",
                    attempt, MAX_RETRIES, type(exc).__name__, exc,
                )

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise CalendarAPIError(
            f"Google Calendar request failed after {MAX_RETRIES} retries: {last_error}"
        )

    # ── Public API ───────────────────────────────────────────────────

    def is_connected(self, user_id: str) -> bool:
        """Whether *user_id* has authorised Google Calendar access."""
        return self.token_store.has_tokens(user_id)

    def create_event(
        self,
        user_id: str,
        title: str,
        date: str,
        time_str: str,
        description: str = "",
    ) -> dict[str, Any] | None:
        """Insert an appointment into the user's calendar.

        Returns:
            ``{"id": ..., "htmlLink": ...}`` for the created event, or
            ``None`` when the user has not connected Google Calendar.

        Raises:
            CalendarAPIError: the API call failed.
        """
        service = self._get_service(user_id)
        if service is None:
            logger.debug("Google Calendar not connected for %s; skipping sync", user_id)
            return None

        body = build_event_body(title, date, time_str, description, timezone=self._timezone)
        event = self._execute(
            service.events().insert(calendarId=self._calendar_id, body=body),
            "events.insert",
        )
        logger.info("Created Google Calendar event %s for %s", event.get("id"), user_id)
        return {"id": event.get("id"), "htmlLink": event.get("htmlLink")}

    def delete_event(self, user_id: str, event_id: str) -> bool:
        """Delete an event.  Returns ``False`` when nothing was deleted.

        An event that no longer exists (404/410) counts as already deleted.
        """
        service = self._get_service(user_id)
        if service is None:
            return False

        try:
            self._execute(
                service.events().delete(calendarId=self._calendar_id, eventId=event_id),
                "events.delete",
            )
        except CalendarAPIError as exc:
            if exc.status_code in (404, 410):
                logger.info("Google Calendar event %s was already gone", event_id)
                return False
            raise
        logger.info("Deleted Google Calendar event %s for %s", event_id, user_id)
        return True


# ── Module-level singleton (thread-safe) ────────────────────────────
_client: GoogleCalendarClient | None = None
_client_lock = threading.Lock()


def get_calendar_client() -> GoogleCalendarClient:
    """Return a module-level GoogleCalendarClient singleton."""
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                _client = GoogleCalendarClient()
    return _client
