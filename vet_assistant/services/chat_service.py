"""Session lifecycle and per-message processing.

``send_message`` is the full read-modify-write cycle for one user turn:
load the session, record the user message, expire an abandoned booking,
run the conversation graph, record the reply and persist.  The cycle runs
under a per-session lock.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta, tzinfo

from vet_assistant.agent import create_conversation_graph
from vet_assistant.booking.flow import BookingFlow
from vet_assistant.models import ChatMessage, Session
from vet_assistant.prompts import welcome_message
from vet_assistant.services.locks import SessionLocks
from vet_assistant.services.metrics import metrics
from vet_assistant.services.responder import VetResponder
from vet_assistant.services.store import AppointmentStore, SessionStore

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class ChatService:
    def __init__(
        self,
        sessions: SessionStore,
        appointments: AppointmentStore,
        responder: VetResponder,
        *,
        tz: tzinfo = UTC,
        booking_timeout: timedelta | None = timedelta(minutes=30),
        clock: Callable[[], datetime] | None = None,
        locks: SessionLocks | None = None,
    ) -> None:
        self._sessions = sessions
        self._appointments = appointments
        self._clock = clock or (lambda: datetime.now(UTC))
        self._booking_timeout = booking_timeout
        self._locks = locks or SessionLocks()
        self.booking_flow = BookingFlow(sessions, appointments, tz=tz, clock=self._clock)
        self._graph = create_conversation_graph(self.booking_flow, responder, appointments)

    def create_session(
        self,
        *,
        user_id: str | None = None,
        user_name: str | None = None,
        pet_name: str | None = None,
        source: str | None = None,
    ) -> tuple[Session, str]:
        """Open a new conversation and return it with its welcome text."""
        session = Session(
            session_id=str(uuid.uuid4()),
            user_id=user_id,
            user_name=user_name,
            pet_name=pet_name,
            source=source,
        )
        welcome = welcome_message(user_name)
        session.add_message("assistant", welcome)
        self._sessions.create(session)
        logger.info("Created session %s (source=%s)", session.session_id, source)
        return session, welcome

    def get_history(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def send_message(self, session_id: str, message: str) -> ChatMessage:
        """Process one user turn and return the assistant's reply."""
        with self._locks.hold(session_id):
            session = self.get_history(session_id)
            session.add_message("user", message)
            self._expire_stale_booking(session)

            result = self._graph.invoke({"session": session, "message": message})
            session = result.get("session", session)

            reply = session.add_message("assistant", result["reply"])
            self._sessions.save(session)
            return reply

    def _expire_stale_booking(self, session: Session) -> None:
        if not self._booking_timeout:
            return
        state = session.booking_state
        now = self._clock()
        if state.is_stale(now, self._booking_timeout):
            logger.info(
                "Booking for session %s idle since %s; resetting",
                session.session_id, state.updated_at.isoformat(),
            )
            state.reset(now)
            metrics.record_booking("expired")
