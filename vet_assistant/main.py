"""CLI entry point for the Vet Assistant.

A terminal chat loop over the same :class:`ChatService` the HTTP API uses,
for development and manual testing.  Use ``STORAGE_BACKEND=memory`` to run
without MongoDB.

Usage:
    python -m vet_assistant.main            # normal mode (quiet)
    python -m vet_assistant.main --debug    # debug mode (shows booking steps and API calls)
"""

from __future__ import annotations

import argparse
import logging
from datetime import timedelta
from zoneinfo import ZoneInfo

from vet_assistant.config import get_settings
from vet_assistant.services.chat_service import ChatService
from vet_assistant.services.responder import GenerationError, VetResponder
from vet_assistant.services.store import StoreError, create_stores

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )
    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("vet_assistant").setLevel(logging.DEBUG if debug else logging.INFO)


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Vet Assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including booking transitions",
    )
    args = parser.parse_args()
    _configure_logging(debug=args.debug)

    settings = get_settings()
    sessions, appointments, close_stores = create_stores(settings)
    service = ChatService(
        sessions,
        appointments,
        VetResponder.from_settings(settings),
        tz=ZoneInfo(settings.clinic_timezone),
        booking_timeout=timedelta(minutes=settings.booking_timeout_minutes),
    )

    print("\n" + "=" * 60)
    print("  Vet Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    session, welcome = service.create_session(source="cli")
    print(f"Assistant: {welcome}\n")

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye! Give your pet a pat from us!")
                break

            if user_input.lower() == "new":
                session, welcome = service.create_session(source="cli")
                print(f"\n>> New session started: {session.session_id[:8]}...\n")
                print(f"Assistant: {welcome}\n")
                continue

            try:
                reply = service.send_message(session.session_id, user_input)
                print(f"\nAssistant: {reply.content}\n")
            except (GenerationError, StoreError) as e:
                logger.exception("Error processing message")
                print(f"\nAssistant: I'm sorry, something went wrong: {e}")
                print("     Please try again or type 'new' to start a fresh session.\n")
    finally:
        close_stores()


if __name__ == "__main__":
    main()
