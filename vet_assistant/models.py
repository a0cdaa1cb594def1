"""Domain records shared by the booking flow, the stores and the API.

Field names are snake_case in Python and camelCase on the wire and in the
document store (``sessionId``, ``bookingState``...), matching what the chat
widget sends and reads.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(UTC)


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BookingStep(str, Enum):
    """Position in the booking dialogue; each step names the field it collects."""

    IDLE = "idle"
    OWNER_NAME = "ownerName"
    PET_NAME = "petName"
    PHONE = "phone"
    DATE_TIME = "dateTime"
    CONFIRM = "confirm"


class CollectedData(_Record):
    """Answers gathered so far.  Every field stays ``None`` until its step passes."""

    owner_name: str | None = None
    pet_name: str | None = None
    phone_number: str | None = None
    preferred_date_time: str | None = None  # ISO 8601


class BookingState(_Record):
    in_progress: bool = False
    step: BookingStep = BookingStep.IDLE
    collected_data: CollectedData = Field(default_factory=CollectedData)
    updated_at: datetime | None = None

    def start(self, now: datetime) -> None:
        """Enter the dialogue at the first question with nothing collected."""
        self.in_progress = True
        self.step = BookingStep.OWNER_NAME
        self.collected_data = CollectedData()
        self.updated_at = now

    def advance_to(self, step: BookingStep, now: datetime) -> None:
        self.step = step
        self.updated_at = now

    def reset(self, now: datetime | None = None) -> None:
        """Return to idle and drop everything collected."""
        self.in_progress = False
        self.step = BookingStep.IDLE
        self.collected_data = CollectedData()
        self.updated_at = now

    def is_stale(self, now: datetime, ttl: timedelta) -> bool:
        """True when an active booking has not moved for longer than *ttl*."""
        if not self.in_progress or self.updated_at is None:
            return False
        return now - self.updated_at > ttl


class ChatMessage(_Record):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Session(_Record):
    session_id: str
    user_id: str | None = None
    user_name: str | None = None
    pet_name: str | None = None
    source: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    booking_state: BookingState = Field(default_factory=BookingState)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    # Bumped by the store on every successful save (optimistic locking).
    version: int = 0

    def add_message(self, role: Literal["user", "assistant"], content: str) -> ChatMessage:
        message = ChatMessage(role=role, content=content)
        self.messages.append(message)
        return message


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Appointment(_Record):
    id: str | None = None
    session_id: str
    owner_name: str
    pet_name: str
    phone_number: str
    preferred_date_time: datetime
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
