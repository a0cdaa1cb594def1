"""Pydantic schemas for the FastAPI endpoints.

JSON bodies use camelCase (``sessionId``) to match the chat widget.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vet_assistant.models import Appointment, ChatMessage


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionRequest(_Schema):
    """Optional details the host page knows about the visitor."""

    user_id: str | None = Field(None, max_length=100)
    user_name: str | None = Field(None, max_length=100)
    pet_name: str | None = Field(None, max_length=100)
    source: str | None = Field(None, max_length=100)


class CreateSessionResponse(_Schema):
    session_id: str
    welcome_message: str


class SendMessageRequest(_Schema):
    """Both fields are checked by the route so a missing one yields a 400."""

    session_id: str | None = Field(None, max_length=100)
    message: str | None = Field(None, max_length=2000)


class SendMessageResponse(_Schema):
    response: str = Field(..., description="The assistant's reply")
    timestamp: datetime


class HistoryResponse(_Schema):
    session_id: str
    messages: list[ChatMessage]
    created_at: datetime


class Pagination(_Schema):
    page: int
    limit: int
    total: int
    total_pages: int


class AppointmentListResponse(_Schema):
    appointments: list[Appointment]
    pagination: Pagination


class SessionAppointmentsResponse(_Schema):
    appointments: list[Appointment]


class UpdateStatusRequest(_Schema):
    status: str | None = None


class AppointmentResponse(_Schema):
    appointment: Appointment


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "vet-assistant"
