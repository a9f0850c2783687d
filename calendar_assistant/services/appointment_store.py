"""Appointment persistence on top of the ``appointments`` collection.

Documents keep the field names the front end and earlier data use
(``userId``, ``googleEventId`` ...).  ``date`` is ``YYYY-MM-DD`` and
``time`` is ``HH:MM`` (24-hour), both wall-clock in ``APP_TIMEZONE``, so a
lexicographic sort on ``(date, time)`` is chronological.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING
from pymongo.database import Database

from calendar_assistant.services.database import APPOINTMENTS_COLLECTION, get_database
from calendar_assistant.services.metrics import metrics

logger = logging.getLogger(__name__)

_SORT_CHRONOLOGICAL = [("date", ASCENDING), ("time", ASCENDING)]


def _to_object_id(value: str) -> ObjectId | None:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class AppointmentStore:
    """CRUD operations for stored appointments."""

    def __init__(self, db: Database):
        self._collection = db[APPOINTMENTS_COLLECTION]

    def insert(
        self,
        user_id: str,
        title: str,
        date: str,
        time: str,
        description: str = "",
        *,
        google_event_id: str | None = None,
        google_calendar_link: str | None = None,
    ) -> dict[str, Any]:
        """Store a new appointment and return the saved document (with ``_id``)."""
        now = datetime.now(UTC)
        doc: dict[str, Any] = {
            "userId": user_id,
            "title": title,
            "date": date,
            "time": time,
            "description": description or "",
            "reminded": False,
            "createdAt": now,
            "updatedAt": now,
        }
        if google_event_id:
            doc["googleEventId"] = google_event_id
            doc["googleCalendarLink"] = google_calendar_link

        with metrics.track("mongodb", "appointments.insert_one"):
            result = self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info("Stored appointment %s for %s", result.inserted_id, user_id)
        return doc

    def list_for_user(self, user_id: str, date: str | None = None) -> list[dict[str, Any]]:
        """Return the user's appointments in chronological order."""
        query: dict[str, Any] = {"userId": user_id}
        if date:
            query["date"] = date
        with metrics.track("mongodb", "appointments.find"):
            return list(self._collection.find(query).sort(_SORT_CHRONOLOGICAL))

    def find_by_identifier(self, user_id: str, identifier: str) -> dict[str, Any] | None:
        """Resolve *identifier* as an appointment ID, falling back to the title.

        The title match is a case-insensitive substring match; the identifier
        is taken literally.
        """
        identifier = (identifier or "").strip()
        if not identifier:
            return None

        with metrics.track("mongodb", "appointments.find_one"):
            oid = _to_object_id(identifier)
            if oid is not None:
                doc = self._collection.find_one({"userId": user_id, "_id": oid})
                if doc is not None:
                    return doc

            return self._collection.find_one(
                {"userId": user_id, "title": {"$regex": re.escape(identifier), "$options": "i"}},
                sort=_SORT_CHRONOLOGICAL,
            )

    def delete(self, appointment_id: ObjectId) -> bool:
        with metrics.track("mongodb", "appointments.delete_one"):
            result = self._collection.delete_one({"_id": appointment_id})
        return result.deleted_count == 1

    def count_for_user(self, user_id: str) -> int:
        with metrics.track("mongodb", "appointments.count_documents"):
            return self._collection.count_documents({"userId": user_id})

    def find_unreminded_on(self, dates: Iterable[str]) -> list[dict[str, Any]]:
        """Appointments on any of *dates* that have not been reminded yet."""
        with metrics.track("mongodb", "appointments.find"):
            return list(self._collection.find(
                {"reminded": False, "date": {"$in": sorted(set(dates))}},
            ))

    def mark_reminded(self, appointment_id: ObjectId) -> None:
        with metrics.track("mongodb", "appointments.update_one"):
            self._collection.update_one(
                {"_id": appointment_id},
                {"$set": {"reminded": True, "updatedAt": datetime.now(UTC)}},
            )


def serialize_appointment(doc: dict[str, Any]) -> dict[str, Any]:
    """JSON-safe view of a stored appointment for API responses."""
    return {
        "id": str(doc["_id"]),
        "title": doc.get("title", ""),
        "date": doc.get("date", ""),
        "time": doc.get("time", ""),
        "description": doc.get("description", ""),
        "reminded": bool(doc.get("reminded", False)),
        "googleEventId": doc.get("googleEventId"),
        "googleCalendarLink": doc.get("googleCalendarLink"),
    }


# ── Module-level singleton (thread-safe) ────────────────────────────
_store: AppointmentStore | None = None
_store_lock = threading.Lock()


def get_appointment_store() -> AppointmentStore:
    """Return a module-level AppointmentStore singleton."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = AppointmentStore(get_database())
    return _store
