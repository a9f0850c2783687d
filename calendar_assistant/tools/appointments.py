"""LangChain tools for appointment management.

Each tool acts on behalf of the ``user_id`` carried in the run
configuration (``config["configurable"]["user_id"]``), persists through the
AppointmentStore, mirrors to Google Calendar where the user is connected,
and returns a JSON string the LLM uses to formulate its reply.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

from langchain_core.runnables import RunnableConfig
from langchain_core.tools import tool
from pymongo.errors import PyMongoError

from calendar_assistant.config import DEFAULT_USER_ID
from calendar_assistant.services.appointment_store import get_appointment_store
from calendar_assistant.services.google_calendar_client import (
    CalendarAPIError,
    get_calendar_client,
)

logger = logging.getLogger(__name__)


def _user_id(config: RunnableConfig | None) -> str:
    configurable = (config or {}).get("configurable") or {}
    return configurable.get("user_id") or DEFAULT_USER_ID


def _result(**payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, default=str)


def _normalize_date(value: str | None) -> str | None:
    """Return *value* as ``YYYY-MM-DD``, or ``None`` if it is not a valid date."""
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").strftime("%Y-%m-%d")
    except (AttributeError, ValueError):
        return None


def _normalize_time(value: str | None) -> str | None:
    """Return *value* as zero-padded 24-hour ``HH:MM``, or ``None`` if invalid."""
    try:
        return datetime.strptime(value.strip(), "%H:%M").strftime("%H:%M")
    except (AttributeError, ValueError):
        return None


# ── Tool 1: Schedule a new appointment ──────────────────────────────


@tool
def schedule_appointment(
    title: str,
    date: str,
    time: str,
    config: RunnableConfig,
    description: str = "",
) -> str:
    """Schedule a new appointment or meeting.

    Args:
        title: The title or name of the appointment.
        date: Date in YYYY-MM-DD format.
        time: Time in HH:MM format (24-hour).
        description: Additional details about the appointment.
    """
    user_id = _user_id(config)
    norm_date = _normalize_date(date)
    if norm_date is None:
        return _result(
            success=False,
            message=f'"{date}" is not a valid date. Use the YYYY-MM-DD format.',
        )
    norm_time = _normalize_time(time)
    if norm_time is None:
        return _result(
            success=False,
            message=f'"{time}" is not a valid time. Use the 24-hour HH:MM format.',
        )
    if not title or not title.strip():
        return _result(success=False, message="The appointment needs a title.")
    title = title.strip()

    # Mirror to Google Calendar first; a calendar failure never blocks the local save.
    gcal_event: dict[str, Any] | None = None
    gcal_error: str | None = None
    try:
        gcal_event = get_calendar_client().create_event(
            user_id, title, norm_date, norm_time, description,
        )
    except CalendarAPIError as e:
        logger.error("Google Calendar sync failed for %s: %s", user_id, e)
        gcal_error = str(e)

    try:
        saved = get_appointment_store().insert(
            user_id,
            title,
            norm_date,
            norm_time,
            description,
            google_event_id=gcal_event["id"] if gcal_event else None,
            google_calendar_link=gcal_event["htmlLink"] if gcal_event else None,
        )
    except PyMongoError as e:
        logger.error("Failed to save appointment for %s: %s", user_id, e)
        return _result(success=False, message=f"Sorry, I couldn't save the appointment. Error: {e}")

    if gcal_event:
        message = (
            f'Appointment "{title}" scheduled for {norm_date} at {norm_time} '
            f"and added to Google Calendar!"
        )
    elif gcal_error:
        message = (
            f'Appointment "{title}" scheduled for {norm_date} at {norm_time} '
            f"(saved locally; Google Calendar sync failed: {gcal_error})"
        )
    else:
        message = (
            f'Appointment "{title}" scheduled for {norm_date} at {norm_time} '
            f"(local only - connect Google Calendar to sync)"
        )

    return _result(
        success=True,
        message=message,
        appointment={
            "id": str(saved["_id"]),
            "title": saved["title"],
            "date": saved["date"],
            "time": saved["time"],
        },
        googleCalendarLink=gcal_event["htmlLink"] if gcal_event else None,
    )


# ── Tool 2: List appointments ───────────────────────────────────────


@tool
def get_appointments(config: RunnableConfig, date: str | None = None) -> str:
    """Retrieve appointments. Always show the ID, title, date and time for each appointment.

    Args:
        date: Optional specific date in YYYY-MM-DD format.
    """
    user_id = _user_id(config)
    if date:
        norm_date = _normalize_date(date)
        if norm_date is None:
            return _result(
                success=False,
                message=f'"{date}" is not a valid date. Use the YYYY-MM-DD format.',
            )
        date = norm_date

    try:
        appointments = get_appointment_store().list_for_user(user_id, date)
    except PyMongoError as e:
        logger.error("Failed to list appointments for %s: %s", user_id, e)
        return _result(success=False, message=f"Sorry, I couldn't load the appointments. Error: {e}")

    return _result(
        success=True,
        count=len(appointments),
        appointments=[
            {
                "id": str(apt["_id"]),
                "title": apt.get("title", ""),
                "date": apt.get("date", ""),
                "time": apt.get("time", ""),
                "description": apt.get("description", ""),
            }
            for apt in appointments
        ],
    )


# ── Tool 3: Delete an appointment ───────────────────────────────────


@tool
def delete_appointment(identifier: str, config: RunnableConfig) -> str:
    """Delete an appointment by its title or ID.

    Args:
        identifier: The appointment title or ID to delete.
    """
    user_id = _user_id(config)
    store = get_appointment_store()

    try:
        appointment = store.find_by_identifier(user_id, identifier)
    except PyMongoError as e:
        logger.error("Failed to look up appointment %r: %s", identifier, e)
        return _result(success=False, message=f"Sorry, I couldn't look up that appointment. Error: {e}")

    if appointment is None:
        return _result(
            success=False,
            message=(
                "Appointment not found. Please check the list of appointments "
                "and use the correct ID or title."
            ),
        )

    event_id = appointment.get("googleEventId")
    if event_id:
        try:
            get_calendar_client().delete_event(user_id, event_id)
        except CalendarAPIError as e:
            logger.error("Error deleting Google Calendar event %s: %s", event_id, e)

    appointment_id = str(appointment["_id"])
    try:
        store.delete(appointment["_id"])
    except PyMongoError as e:
        logger.error("Failed to delete appointment %s: %s", appointment_id, e)
        return _result(success=False, message=f"Sorry, I couldn't delete the appointment. Error: {e}")

    return _result(
        success=True,
        message=f'Deleted appointment: "{appointment["title"]}" (ID: {appointment_id})',
        appointment={"id": appointment_id, "title": appointment["title"]},
    )


APPOINTMENT_TOOLS = [schedule_appointment, get_appointments, delete_appointment]
