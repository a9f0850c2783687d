"""Centralized configuration for the Calendar Assistant.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/calendar-assistant/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/calendar-assistant/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _optional_env(*names: str, default: str = "") -> str:
    """Return the first configured value among *names* (env-var, then SSM)."""
    for name in names:
        value = os.getenv(name)
        if value and not value.startswith("your_"):
            return value

    if _ON_AWS:
        for name in names:
            ssm_value = _get_ssm_parameter(name)
            if ssm_value:
                return ssm_value

    return default


def _require_env(*names: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error.

    Several names may be given when a variable has an accepted alias; the
    first one is the canonical name used in the error message.
    """
    value = _optional_env(*names)
    if value:
        return value

    raise OSError(
        f"Missing required configuration: {names[0]}. "
        f"Set it in .env (local) or SSM Parameter Store /calendar-assistant/{names[0]} (AWS)."
    )


# ── LLM ─────────────────────────────────────────────────────────────
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "google").strip().lower()
if LLM_PROVIDER not in ("google", "anthropic"):
    raise OSError(f"Unsupported LLM_PROVIDER {LLM_PROVIDER!r}. Use 'google' or 'anthropic'.")

_DEFAULT_MODELS = {
    "google": "gemini-2.5-flash",
    "anthropic": "claude-sonnet-4-5",
}

if LLM_PROVIDER == "google":
    GOOGLE_API_KEY: str = _require_env("GOOGLE_API_KEY", "GEMINI_API_KEY")
    ANTHROPIC_API_KEY: str = _optional_env("ANTHROPIC_API_KEY")
else:
    ANTHROPIC_API_KEY = _require_env("ANTHROPIC_API_KEY")
    GOOGLE_API_KEY = _optional_env("GOOGLE_API_KEY", "GEMINI_API_KEY")

MODEL_NAME: str = os.getenv("MODEL_NAME", _DEFAULT_MODELS[LLM_PROVIDER])
GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

# Upper bound on graph steps per chat turn (each model/tool hop is one step)
AGENT_RECURSION_LIMIT: int = int(os.getenv("AGENT_RECURSION_LIMIT", "25"))

# ── MongoDB ─────────────────────────────────────────────────────────
# Required, but only checked when the database is first used (see
# services/database.py) so --list-models works without it.
MONGODB_URI: str = _optional_env("MONGODB_URI")
MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "calendar-assistant")
MONGODB_TIMEOUT_MS: int = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))

# ── Google Calendar / OAuth ─────────────────────────────────────────
GOOGLE_CLIENT_ID: str = _optional_env("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str = _optional_env("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI: str = os.getenv(
    "GOOGLE_REDIRECT_URI", "http://localhost:8000/oauth2callback",
)
GOOGLE_SCOPES: list[str] = ["https://www.googleapis.com/auth/calendar"]
GOOGLE_CALENDAR_ID: str = os.getenv("GOOGLE_CALENDAR_ID", "primary")

# ── Scheduling ──────────────────────────────────────────────────────
APP_TIMEZONE: str = os.getenv("APP_TIMEZONE", "Africa/Nairobi")
DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "default_user")
APPOINTMENT_DURATION_MINUTES: int = 60
REMINDER_LEAD_MINUTES: int = int(os.getenv("REMINDER_LEAD_MINUTES", "15"))
REMINDER_INTERVAL_SECONDS: int = int(os.getenv("REMINDER_INTERVAL_SECONDS", "60"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
