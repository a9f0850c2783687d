"""FastAPI route definitions for the Calendar Assistant API."""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, Query, Request
from pymongo.errors import PyMongoError

from calendar_assistant.agent import run_agent
from calendar_assistant.api.schemas import (
    AppointmentsResponse,
    ChatRequest,
    ChatResponse,
    HealthResponse,
)
from calendar_assistant.config import DEFAULT_USER_ID
from calendar_assistant.services.appointment_store import (
    get_appointment_store,
    serialize_appointment,
)
from calendar_assistant.services.google_calendar_client import get_calendar_client

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_agent(request: Request):
    """Retrieve the compiled LangGraph agent from app state (set by the lifespan)."""
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return agent


def _chat_turn(agent, message: str, user_id: str, session_id: str) -> ChatResponse:
    """Run the agent and gather the status fields (all blocking I/O)."""
    reply = run_agent(agent, message, user_id=user_id, session_id=session_id)
    return ChatResponse(
        reply=reply,
        session_id=session_id,
        appointments=get_appointment_store().count_for_user(user_id),
        google_connected=get_calendar_client().is_connected(user_id),
    )


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the assistant and get its reply.

    Pass the returned ``session_id`` back to continue the same conversation.
    The agent, MongoDB and Google APIs are all blocking, so the whole turn
    runs in a worker thread.
    """
    agent = _get_agent(http_request)
    request_id = getattr(http_request.state, "request_id", "?")
    session_id = request.session_id or str(uuid.uuid4())

    try:
        return await asyncio.to_thread(
            _chat_turn, agent, request.message, request.user_id, session_id,
        )
    except Exception as e:
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="Something went wrong. Please try again.",
        ) from e


@router.get("/appointments", response_model=AppointmentsResponse)
def list_appointments(
    http_request: Request,
    user_id: str = Query(DEFAULT_USER_ID, min_length=1, max_length=100),
):
    """All stored appointments for a user, in chronological order."""
    try:
        appointments = get_appointment_store().list_for_user(user_id)
        connected = get_calendar_client().is_connected(user_id)
    except PyMongoError as e:
        request_id = getattr(http_request.state, "request_id", "?")
        logger.exception("[%s] Error loading appointments", request_id)
        raise HTTPException(status_code=500, detail="Could not load appointments.") from e

    return AppointmentsResponse(
        appointments=[serialize_appointment(apt) for apt in appointments],
        google_connected=connected,
    )
