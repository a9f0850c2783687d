"""Shared test fixtures for the Calendar Assistant test suite."""

from __future__ import annotations

import os

import mongomock
import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("GOOGLE_API_KEY", "test-gemini-key-123")
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
    os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
    os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")
    os.environ.setdefault("APP_TIMEZONE", "Africa/Nairobi")


@pytest.fixture
def mongo_db():
    """An in-memory MongoDB database (fresh per test)."""
    return mongomock.MongoClient()["calendar-assistant-test"]


@pytest.fixture
def appointment_store(mongo_db):
    from calendar_assistant.services.appointment_store import AppointmentStore

    return AppointmentStore(mongo_db)


@pytest.fixture
def token_store(mongo_db):
    from calendar_assistant.services.token_store import TokenStore

    return TokenStore(mongo_db)
