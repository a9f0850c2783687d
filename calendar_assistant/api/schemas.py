"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from calendar_assistant.config import DEFAULT_USER_ID


class ChatRequest(BaseModel):
    """Incoming chat message from the frontend."""

    message: str = Field(..., min_length=1, max_length=2000, description="The user's message")
    user_id: str = Field(
        DEFAULT_USER_ID,
        min_length=1,
        max_length=100,
        description="Whose appointments and calendar the request acts on",
    )
    session_id: str | None = Field(
        None,
        min_length=1,
        max_length=100,
        description="Conversation identifier; omit to start a fresh conversation",
    )


class ChatResponse(BaseModel):
    """Response from the agent."""

    reply: str = Field(..., description="The assistant's response message")
    session_id: str = Field(..., description="The session ID for this conversation")
    appointments: int = Field(..., description="Number of stored appointments for the user")
    google_connected: bool = Field(..., description="Whether Google Calendar is connected")


class AppointmentOut(BaseModel):
    id: str
    title: str
    date: str
    time: str
    description: str = ""
    reminded: bool = False
    googleEventId: str | None = None
    googleCalendarLink: str | None = None


class AppointmentsResponse(BaseModel):
    appointments: list[AppointmentOut]
    google_connected: bool


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "calendar-assistant"
