"""Keyword gate that decides whether a message should open the booking flow.

Deliberately crude: a substring match in front of the much more expensive
LLM turn, not a language-understanding component.
"""

from __future__ import annotations

# Asking about appointments that already exist is never a new booking.
VIEWING_PHRASES: tuple[str, ...] = (
    "show my",
    "what is my",
    "what's my",
    "when is my",
    "when's my",
    "my current",
    "my existing",
    "my upcoming",
    "remind me",
    "check my",
    "view my",
    "see my",
    "list my",
    "details of my",
)

BOOKING_KEYWORDS: tuple[str, ...] = (
    "book",
    "appointment",
    "schedule",
    "visit",
    "checkup",
    "check-up",
    "booking",
    "reserve",
    "slot",
    "meet the vet",
    "see the vet",
    "vet visit",
)


def detect_appointment_intent(message: str) -> bool:
    """Return ``True`` if *message* asks to book a new appointment.

    Viewing phrases are checked first and win over booking keywords, so
    "when is my appointment?" is not treated as a booking request.
    """
    lowered = message.lower()
    if any(phrase in lowered for phrase in VIEWING_PHRASES):
        return False
    return any(keyword in lowered for keyword in BOOKING_KEYWORDS)
