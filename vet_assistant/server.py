"""FastAPI server for the Vet Assistant chat widget.

Run with:
    uvicorn vet_assistant.server:app --reload --host 0.0.0.0 --port 5000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import timedelta
from zoneinfo import ZoneInfo

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from vet_assistant.api.routes import router
from vet_assistant.config import get_settings
from vet_assistant.services.chat_service import ChatService
from vet_assistant.services.responder import VetResponder
from vet_assistant.services.store import create_stores

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: open the stores, build the chat service once, keep it on app state."""
    logger.info("Starting Vet Assistant (storage=%s)…", settings.storage_backend)
    sessions, appointments, close_stores = create_stores(settings)
    application.state.appointments = appointments
    application.state.chat_service = ChatService(
        sessions,
        appointments,
        VetResponder.from_settings(settings),
        tz=ZoneInfo(settings.clinic_timezone),
        booking_timeout=timedelta(minutes=settings.booking_timeout_minutes),
    )
    logger.info("Chat service ready.")
    yield
    application.state.chat_service = None
    application.state.appointments = None
    close_stores()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Vet Assistant",
    description=(
        "Veterinary assistant chat backend — answers pet-care questions "
        "and books appointments."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (needed for the embeddable widget) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
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


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Vet Assistant",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


if __name__ == "__main__":
    logger.info("Starting Vet Assistant API server on %s:%d", settings.server_host, settings.server_port)
    uvicorn.run(
        "vet_assistant.server:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=True,
    )
