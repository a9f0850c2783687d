"""Google OAuth 2.0 authorization-code flow for Calendar access."""

from __future__ import annotations

import json
import logging
from typing import Any

from google_auth_oauthlib.flow import Flow

from calendar_assistant.config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_SCOPES,
)
from calendar_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)


class OAuthNotConfiguredError(RuntimeError):
    """Raised when the Google OAuth client id/secret are not set."""


def _build_flow() -> Flow:
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise OAuthNotConfiguredError(
            "GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be set to connect Google Calendar."
        )
    client_config = {
        "web": {
            "client_id": GOOGLE_CLIENT_ID,
            "client_secret": GOOGLE_CLIENT_SECRET,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [GOOGLE_REDIRECT_URI],
        }
    }
    # The callback builds a fresh Flow, so no PKCE verifier can be carried over.
    return Flow.from_client_config(
        client_config,
        scopes=GOOGLE_SCOPES,
        redirect_uri=GOOGLE_REDIRECT_URI,
        autogenerate_code_verifier=False,
    )


def get_authorization_url() -> str:
    """Return the Google consent-screen URL (offline access, calendar scope)."""
    auth_url, _ = _build_flow().authorization_url(
        access_type="offline",
        prompt="consent",
    )
    return auth_url


def exchange_code(code: str) -> dict[str, Any]:
    """Exchange an authorization code for tokens.

    Returns the credentials as a JSON-serialisable dict suitable for
    :meth:`TokenStore.save_tokens`.
    """
    flow = _build_flow()
    with metrics.track("google_calendar", "oauth.fetch_token"):
        flow.fetch_token(code=code)
    return json.loads(flow.credentials.to_json())
