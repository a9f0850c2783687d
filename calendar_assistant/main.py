"""CLI entry point for the Calendar Assistant.

This provides a simple terminal-based chat interface for testing and
development. For production, use the FastAPI server
(``calendar_assistant/server.py``).

Usage:
    python -m calendar_assistant.main                 # chat (quiet)
    python -m calendar_assistant.main --debug         # show API calls
    python -m calendar_assistant.main --user alice    # act as another user
    python -m calendar_assistant.main --list-models   # Gemini models for the key
"""

from __future__ import annotations

import argparse
import logging
import uuid

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("googleapiclient").setLevel(logging.WARNING)

    logging.getLogger("calendar_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_models() -> int:
    from calendar_assistant.services.model_catalog import ModelCatalogError, list_models

    try:
        models = list_models()
    except ModelCatalogError as e:
        print(f"Error: {e}")
        return 1

    print("\nAvailable models:")
    for model in models:
        print(f"  - {model['name']}")
        print(f"    Supports: {', '.join(model['methods'])}")
    return 0


def _chat_loop(user_id: str) -> None:
    from calendar_assistant.agent import create_calendar_agent, run_agent

    print("\n" + "=" * 60)
    print("  Calendar Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    agent = create_calendar_agent()
    session_id = str(uuid.uuid4())
    logger.info("Started new session: %s (user %s)", session_id, user_id)

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye!")
            break

        if user_input.lower() == "new":
            session_id = str(uuid.uuid4())
            print(f"\n>> New session started: {session_id[:8]}...\n")
            continue

        try:
            reply = run_agent(agent, user_input, user_id=user_id, session_id=session_id)
            print(f"\nAssistant: {reply}\n")
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nAssistant: Sorry, something went wrong: {e}")
            print("     Please try again or type 'new' to start a fresh session.\n")


def main() -> int:
    parser = argparse.ArgumentParser(description="Calendar Assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--user", default=None,
        help="User ID whose appointments to manage (default: DEFAULT_USER_ID)",
    )
    parser.add_argument(
        "--list-models", action="store_true",
        help="List the Gemini models available to GOOGLE_API_KEY and exit",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    if args.list_models:
        return _print_models()

    from calendar_assistant.config import DEFAULT_USER_ID

    _chat_loop(args.user or DEFAULT_USER_ID)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
