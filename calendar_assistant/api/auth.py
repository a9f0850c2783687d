"""Google Calendar OAuth routes.

``/auth/google`` and ``/oauth2callback`` sit at the application root because
the callback path is registered as the redirect URI in the Google console.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import RedirectResponse

from calendar_assistant.config import DEFAULT_USER_ID
from calendar_assistant.services.google_oauth import (
    OAuthNotConfiguredError,
    exchange_code,
    get_authorization_url,
)
from calendar_assistant.services.token_store import get_token_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/auth/google")
async def google_auth():
    """Redirect the browser to Google's consent screen."""
    try:
        url = get_authorization_url()
    except OAuthNotConfiguredError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    return RedirectResponse(url=url)


@router.get("/oauth2callback")
async def google_auth_callback(code: str | None = None, error: str | None = None):
    """Exchange the authorization code and store the tokens.

    There are no user sessions, so tokens are saved for the default user.
    """
    if error or not code:
        logger.warning("OAuth callback without code (error=%s)", error)
        return RedirectResponse(url="/?error=auth_failed")

    try:
        tokens = await asyncio.to_thread(exchange_code, code)
        await asyncio.to_thread(get_token_store().save_tokens, DEFAULT_USER_ID, tokens)
    except Exception:
        logger.exception("OAuth error")
        return RedirectResponse(url="/?error=auth_failed")

    return RedirectResponse(url="/?connected=true")
