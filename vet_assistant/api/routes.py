"""FastAPI route definitions for the chat and appointment APIs."""

from __future__ import annotations

import asyncio
import logging
import math

from fastapi import APIRouter, HTTPException, Query, Request

from vet_assistant.api.schemas import (
    AppointmentListResponse,
    AppointmentResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    HealthResponse,
    HistoryResponse,
    Pagination,
    SendMessageRequest,
    SendMessageResponse,
    SessionAppointmentsResponse,
    UpdateStatusRequest,
)
from vet_assistant.models import AppointmentStatus
from vet_assistant.services.chat_service import ChatService, SessionNotFoundError
from vet_assistant.services.responder import GenerationError
from vet_assistant.services.store import AppointmentStore, SessionConflictError, StoreError

logger = logging.getLogger(__name__)

router = APIRouter()
chat_router = APIRouter(prefix="/chat", tags=["chat"])
appointments_router = APIRouter(prefix="/appointments", tags=["appointments"])

INTERNAL_ERROR = "An internal error occurred. Please try again."


def _get_chat_service(request: Request) -> ChatService:
    """Retrieve the chat service the lifespan stored on app state."""
    service = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return service


def _get_appointment_store(request: Request) -> AppointmentStore:
    store = getattr(request.app.state, "appointments", None)
    if store is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return store


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


# ── Health ───────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


# ── Chat ─────────────────────────────────────────────────────────────


@chat_router.post("/session", response_model=CreateSessionResponse, status_code=201)
async def create_session(http_request: Request, body: CreateSessionRequest | None = None):
    """Open a new conversation and return its id with a welcome message."""
    service = _get_chat_service(http_request)
    body = body or CreateSessionRequest()
    try:
        session, welcome = await asyncio.to_thread(
            service.create_session,
            user_id=body.user_id,
            user_name=body.user_name,
            pet_name=body.pet_name,
            source=body.source,
        )
    except StoreError as e:
        logger.exception("[%s] Failed to create session", _request_id(http_request))
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e
    return CreateSessionResponse(session_id=session.session_id, welcome_message=welcome)


@chat_router.post("/message", response_model=SendMessageResponse)
async def send_message(body: SendMessageRequest, http_request: Request):
    """Send a user message and get the assistant's reply.

    Booking turns are answered locally; everything else goes to the
    generative model, a blocking call that is offloaded to a worker thread
    so the event loop keeps serving other requests.
    """
    if not body.session_id or not body.message or not body.message.strip():
        raise HTTPException(status_code=400, detail="sessionId and message are required")

    service = _get_chat_service(http_request)
    request_id = _request_id(http_request)

    try:
        reply = await asyncio.to_thread(service.send_message, body.session_id, body.message)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail="Session not found") from e
    except SessionConflictError as e:
        logger.warning("[%s] %s", request_id, e)
        raise HTTPException(
            status_code=409,
            detail="This conversation was updated by another request. Please resend your message.",
        ) from e
    except (GenerationError, StoreError) as e:
        logger.exception("[%s] Error processing chat message", request_id)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e

    return SendMessageResponse(response=reply.content, timestamp=reply.timestamp)


@chat_router.get("/history/{session_id}", response_model=HistoryResponse)
async def get_history(session_id: str, http_request: Request):
    service = _get_chat_service(http_request)
    try:
        session = await asyncio.to_thread(service.get_history, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail="Session not found") from e
    except StoreError as e:
        logger.exception("[%s] Failed to load history", _request_id(http_request))
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e
    return HistoryResponse(
        session_id=session.session_id,
        messages=session.messages,
        created_at=session.created_at,
    )


# ── Appointments ─────────────────────────────────────────────────────


def _parse_status(raw: str | None) -> AppointmentStatus:
    try:
        return AppointmentStatus(raw)
    except ValueError as e:
        raise HTTPException(status_code=400, detail="Invalid status") from e


@appointments_router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    http_request: Request,
    status: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
):
    """List all appointments, newest first, optionally filtered by status."""
    store = _get_appointment_store(http_request)
    status_filter = _parse_status(status) if status else None
    try:
        items, total = await asyncio.to_thread(
            store.list, status_filter, page=page, limit=limit,
        )
    except StoreError as e:
        logger.exception("[%s] Failed to list appointments", _request_id(http_request))
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e
    return AppointmentListResponse(
        appointments=items,
        pagination=Pagination(
            page=page, limit=limit, total=total, total_pages=math.ceil(total / limit),
        ),
    )


@appointments_router.get("/session/{session_id}", response_model=SessionAppointmentsResponse)
async def list_session_appointments(session_id: str, http_request: Request):
    store = _get_appointment_store(http_request)
    try:
        items = await asyncio.to_thread(store.list_for_session, session_id)
    except StoreError as e:
        logger.exception("[%s] Failed to list appointments", _request_id(http_request))
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e
    return SessionAppointmentsResponse(appointments=items)


@appointments_router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str, body: UpdateStatusRequest, http_request: Request,
):
    store = _get_appointment_store(http_request)
    status = _parse_status(body.status)
    try:
        appointment = await asyncio.to_thread(store.update_status, appointment_id, status)
    except StoreError as e:
        logger.exception("[%s] Failed to update appointment", _request_id(http_request))
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR) from e
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    logger.info("Appointment %s status set to %s", appointment_id, status.value)
    return AppointmentResponse(appointment=appointment)


router.include_router(chat_router)
router.include_router(appointments_router)
