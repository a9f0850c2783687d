"""Per-user Google OAuth tokens stored in the ``users`` collection."""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime
from typing import Any

from pymongo.database import Database

from calendar_assistant.services.database import USERS_COLLECTION, get_database
from calendar_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)


class TokenStore:
    def __init__(self, db: Database):
        self._collection = db[USERS_COLLECTION]

    def get_tokens(self, user_id: str) -> dict[str, Any] | None:
        """Return the stored token dict for *user_id*, or ``None``."""
        with metrics.track("mongodb", "users.find_one"):
            user = self._collection.find_one({"userId": user_id})
        if not user:
            return None
        return user.get("tokens") or None

    def save_tokens(self, user_id: str, tokens: dict[str, Any]) -> None:
        with metrics.track("mongodb", "users.update_one"):
            self._collection.update_one(
                {"userId": user_id},
                {"$set": {"userId": user_id, "tokens": tokens, "updatedAt": datetime.now(UTC)}},
                upsert=True,
            )
        logger.info("Saved Google tokens for %s", user_id)

    def has_tokens(self, user_id: str) -> bool:
        return self.get_tokens(user_id) is not None


_store: TokenStore | None = None
_store_lock = threading.Lock()


def get_token_store() -> TokenStore:
    """Return a module-level TokenStore singleton."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = TokenStore(get_database())
    return _store
