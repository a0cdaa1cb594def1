"""The step-by-step appointment booking dialogue.

Each call to :meth:`BookingFlow.advance` consumes one user message, performs
at most one transition of the session's :class:`BookingState` and returns
the text to show next::

    idle → ownerName → petName → phone → dateTime → confirm → idle

Bad answers never raise: the flow stays on the same step, leaves the
collected data untouched and replies with a corrective prompt.  Only
transitions are persisted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo

from vet_assistant.booking.datetime_parser import format_datetime, parse_datetime
from vet_assistant.booking.validators import (
    OWNER_NAME_MIN_LENGTH,
    PET_NAME_MIN_LENGTH,
    is_valid_name,
    is_valid_phone,
)
from vet_assistant.models import (
    Appointment,
    AppointmentStatus,
    BookingStep,
    CollectedData,
    Session,
)
from vet_assistant.services.metrics import metrics
from vet_assistant.services.store import AppointmentStore, SessionStore, StoreError

logger = logging.getLogger(__name__)

DATE_EXAMPLE = "e.g., 'January 20, 2026 at 3:00 PM'"

BOOKING_PROMPTS: dict[BookingStep, str] = {
    BookingStep.OWNER_NAME: "Great! Let's book your appointment. What is the pet owner's name?",
    BookingStep.PET_NAME: "Thank you! And what is your pet's name?",
    BookingStep.PHONE: "Perfect! What phone number can we reach you at?",
    BookingStep.DATE_TIME: (
        "Almost done! When would you prefer to schedule the appointment? "
        f"(Please provide date and time, {DATE_EXAMPLE})"
    ),
}

INVALID_OWNER_NAME = "Please provide a valid name (at least 2 characters)."
INVALID_PET_NAME = "Please provide your pet's name."
INVALID_PHONE = "Please provide a valid phone number (at least 10 digits)."
UNPARSEABLE_DATE = f"I couldn't understand that date/time. Please try again ({DATE_EXAMPLE})."
PAST_DATE = "That date seems to be in the past. Please provide a future date and time."
CONFIRM_OR_CANCEL = 'Please type **"confirm"** to book the appointment or **"cancel"** to start over.'
BOOKING_CANCELLED = (
    "No problem! I've cancelled the booking process. Feel free to ask me any "
    "veterinary questions or start a new appointment booking whenever you're ready."
)
START_OVER = "Something went wrong. Let's start over. Would you like to book an appointment?"

CONFIRM_WORDS = frozenset({"confirm", "yes"})
CANCEL_WORDS = frozenset({"cancel", "no"})


@dataclass
class BookingResult:
    message: str
    appointment_created: bool = False
    appointment_id: str | None = None


def summary_message(data: CollectedData, when: datetime) -> str:
    return (
        "Great! Here's a summary of your appointment request:\n\n"
        "📋 **Appointment Details**\n"
        f"• Pet Owner: {data.owner_name}\n"
        f"• Pet Name: {data.pet_name}\n"
        f"• Phone: {data.phone_number}\n"
        f"• Preferred Time: {format_datetime(when)}\n\n"
        'Please type **"confirm"** to book this appointment or **"cancel"** to start over.'
    )


def success_message(appointment: Appointment) -> str:
    return (
        "🎉 **Appointment Booked Successfully!**\n\n"
        "Your appointment has been scheduled. Here are your details:\n"
        f"• Appointment ID: {appointment.id}\n"
        f"• Pet Owner: {appointment.owner_name}\n"
        f"• Pet Name: {appointment.pet_name}\n"
        f"• Date/Time: {format_datetime(appointment.preferred_date_time)}\n\n"
        f"We'll contact you at {appointment.phone_number} to confirm. "
        "Is there anything else I can help you with?"
    )


class BookingFlow:
    """Drives a session's booking dialogue one message at a time.

    ``clock`` returns the current aware ``datetime``; it decides what counts
    as "in the past" and supplies the default year for dates without one.
    Dates without an explicit offset are read in ``tz`` (the clinic's zone).
    """

    def __init__(
        self,
        sessions: SessionStore,
        appointments: AppointmentStore,
        *,
        tz: tzinfo = UTC,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._sessions = sessions
        self._appointments = appointments
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(UTC))
        self._handlers: dict[BookingStep, Callable[[Session, str], BookingResult]] = {
            BookingStep.OWNER_NAME: self._on_owner_name,
            BookingStep.PET_NAME: self._on_pet_name,
            BookingStep.PHONE: self._on_phone,
            BookingStep.DATE_TIME: self._on_date_time,
            BookingStep.CONFIRM: self._on_confirm,
        }

    @staticmethod
    def is_in_progress(session: Session) -> bool:
        return session.booking_state.in_progress

    def advance(self, session: Session, user_message: str) -> BookingResult:
        state = session.booking_state

        if not state.in_progress:
            # The message that opened the flow is not an answer to anything.
            state.start(self._clock())
            self._sessions.save(session)
            metrics.record_booking("started")
            logger.info("Booking started for session %s", session.session_id)
            return BookingResult(BOOKING_PROMPTS[BookingStep.OWNER_NAME])

        handler = self._handlers.get(state.step)
        if handler is None:
            logger.warning(
                "Session %s has an active booking on step %r; resetting",
                session.session_id, state.step,
            )
            state.reset(self._clock())
            self._sessions.save(session)
            return BookingResult(START_OVER)

        return handler(session, user_message.strip())

    # ── Step handlers ────────────────────────────────────────────────

    def _on_owner_name(self, session: Session, text: str) -> BookingResult:
        if not is_valid_name(text, OWNER_NAME_MIN_LENGTH):
            return BookingResult(INVALID_OWNER_NAME)
        session.booking_state.collected_data.owner_name = text
        return self._move(session, BookingStep.PET_NAME)

    def _on_pet_name(self, session: Session, text: str) -> BookingResult:
        if not is_valid_name(text, PET_NAME_MIN_LENGTH):
            return BookingResult(INVALID_PET_NAME)
        session.booking_state.collected_data.pet_name = text
        return self._move(session, BookingStep.PHONE)

    def _on_phone(self, session: Session, text: str) -> BookingResult:
        if not is_valid_phone(text):
            return BookingResult(INVALID_PHONE)
        session.booking_state.collected_data.phone_number = text
        return self._move(session, BookingStep.DATE_TIME)

    def _on_date_time(self, session: Session, text: str) -> BookingResult:
        now = self._clock()
        when = parse_datetime(text, now=now, tz=self._tz)
        if when is None:
            return BookingResult(UNPARSEABLE_DATE)
        if when < now:
            return BookingResult(PAST_DATE)

        data = session.booking_state.collected_data
        data.preferred_date_time = when.isoformat()
        self._move(session, BookingStep.CONFIRM)
        return BookingResult(summary_message(data, when))

    def _on_confirm(self, session: Session, text: str) -> BookingResult:
        answer = text.lower()
        state = session.booking_state

        if answer in CONFIRM_WORDS:
            # Claim the transition first so a losing concurrent confirm books nothing.
            snapshot = state.model_copy(deep=True)
            data = snapshot.collected_data
            state.reset(self._clock())
            self._sessions.save(session)
            try:
                appointment = self._appointments.create(
                    Appointment(
                        session_id=session.session_id,
                        owner_name=data.owner_name,
                        pet_name=data.pet_name,
                        phone_number=data.phone_number,
                        preferred_date_time=datetime.fromisoformat(data.preferred_date_time),
                        status=AppointmentStatus.PENDING,
                    )
                )
            except StoreError:
                logger.exception(
                    "Could not store appointment for session %s; restoring booking",
                    session.session_id,
                )
                session.booking_state = snapshot
                self._sessions.save(session)
                raise
            metrics.record_booking("appointment_created")
            logger.info(
                "Appointment %s created for session %s", appointment.id, session.session_id,
            )
            return BookingResult(
                success_message(appointment),
                appointment_created=True,
                appointment_id=appointment.id,
            )

        if answer in CANCEL_WORDS:
            state.reset(self._clock())
            self._sessions.save(session)
            metrics.record_booking("cancelled")
            logger.info("Booking cancelled for session %s", session.session_id)
            return BookingResult(BOOKING_CANCELLED)

        return BookingResult(CONFIRM_OR_CANCEL)

    def _move(self, session: Session, step: BookingStep) -> BookingResult:
        session.booking_state.advance_to(step, self._clock())
        self._sessions.save(session)
        logger.debug("Session %s booking moved to %s", session.session_id, step.value)
        return BookingResult(BOOKING_PROMPTS.get(step, ""))
