"""Calendar Assistant — a conversational scheduling assistant.

Architecture Overview
=====================

A chat endpoint forwards free-text requests to an LLM (Gemini by default)
that can call three tools:

1. **schedule_appointment** — saves an appointment and mirrors it into the
   user's Google Calendar when they have connected it.
2. **get_appointments** — lists stored appointments (optionally for a date).
3. **delete_appointment** — deletes by ID or title, in both places.

Routing: chatbot → (tool calls?) → tools → chatbot (loop until no tool calls → END)

Key Design Decisions
--------------------
- **LangGraph** drives the function-calling loop; every tool result of a
  turn goes back to the model.
- **MongoDB** stores appointments and per-user OAuth tokens.
- **Google Calendar** mirroring is best-effort: a calendar failure never
  loses the local appointment.  API calls retry with exponential backoff.
- **Reminders**: a daemon thread scans once a minute and logs a reminder
  fifteen minutes before each appointment.

Package Structure
-----------------
- ``calendar_assistant/agent.py`` — LangGraph StateGraph definition
- ``calendar_assistant/config.py`` — configuration from environment variables
- ``calendar_assistant/prompts.py`` — system prompt
- ``calendar_assistant/server.py`` — FastAPI application
- ``calendar_assistant/main.py`` — CLI chat interface
- ``calendar_assistant/services/`` — MongoDB stores, Google Calendar/OAuth, reminders, metrics
- ``calendar_assistant/tools/`` — LangChain appointment tools
- ``calendar_assistant/api/`` — FastAPI routes and Pydantic schemas
"""
