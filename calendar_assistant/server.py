"""FastAPI server for the Calendar Assistant.

Run with:
    uvicorn calendar_assistant.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from calendar_assistant.agent import create_calendar_agent
from calendar_assistant.api.auth import router as auth_router
from calendar_assistant.api.routes import router
from calendar_assistant.config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT
from calendar_assistant.services.database import close_database, ping_database
from calendar_assistant.services.reminders import ReminderScheduler

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: check MongoDB, compile the agent, start the reminder thread.

    An unreachable database aborts start-up.
    """
    ping_database()

    logger.info("Compiling LangGraph agent…")
    application.state.agent = create_calendar_agent()
    logger.info("Agent ready.")

    application.state.reminders = ReminderScheduler()
    application.state.reminders.start()
    yield
    application.state.reminders.stop()
    close_database()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Calendar Assistant",
    description=(
        "Conversational scheduling assistant: schedule, list and delete "
        "appointments, synced to Google Calendar."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed in the ``X-Request-ID`` response header.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")
app.include_router(auth_router)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Calendar Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
        "connect_google": "/auth/google",
    }


if __name__ == "__main__":
    logger.info("Starting Calendar Assistant on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "calendar_assistant.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
