"""MongoDB connection shared by the appointment and token stores."""

from __future__ import annotations

import logging
import threading

from pymongo import MongoClient
from pymongo.database import Database

from calendar_assistant.config import MONGODB_DB_NAME, MONGODB_TIMEOUT_MS, MONGODB_URI
from calendar_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

APPOINTMENTS_COLLECTION = "appointments"
USERS_COLLECTION = "users"

_client: MongoClient | None = None
_client_lock = threading.Lock()


def get_database() -> Database:
    """Return the application database, creating the client on first use.

    ``MongoClient`` connects lazily, so this never blocks on the network.
    Use :func:`ping_database` to verify connectivity.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                if not MONGODB_URI:
                    raise OSError(
                        "Missing required configuration: MONGODB_URI. "
                        "Set it in .env (local) or SSM Parameter Store "
                        "/calendar-assistant/MONGODB_URI (AWS)."
                    )
                _client = MongoClient(MONGODB_URI, serverSelectionTimeoutMS=MONGODB_TIMEOUT_MS)
    return _client[MONGODB_DB_NAME]


def ping_database(db: Database | None = None) -> None:
    """Round-trip to the server; raises ``PyMongoError`` when unreachable."""
    db = db if db is not None else get_database()
    with metrics.track("mongodb", "ping"):
        db.command("ping")
    logger.info("Connected to MongoDB database %r", db.name)


def close_database() -> None:
    """Close the shared client (called on server shutdown)."""
    global _client
    with _client_lock:
        if _client is not None:
            _client.close()
            _client = None
