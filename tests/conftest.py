"""Shared test fixtures for the Vet Assistant test suite."""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

# 1 Jan 2026, 09:00 UTC, before the dates used in booking scenarios.
NOW = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ["STORAGE_BACKEND"] = "memory"
    os.environ["METRICS_ENABLED"] = "false"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def sessions():
    from vet_assistant.services.memory_store import InMemorySessionStore

    return InMemorySessionStore()


@pytest.fixture
def appointments():
    from vet_assistant.services.memory_store import InMemoryAppointmentStore

    return InMemoryAppointmentStore()


@pytest.fixture
def session(sessions):
    """A stored session with an idle booking state."""
    from vet_assistant.models import Session

    return sessions.create(Session(session_id="session-1"))


@pytest.fixture
def flow(sessions, appointments, clock):
    from vet_assistant.booking.flow import BookingFlow

    return BookingFlow(sessions, appointments, clock=clock)


@pytest.fixture
def responder():
    """Stand-in for the generative model wrapper."""
    mock = MagicMock()
    mock.generate.return_value = "Dogs usually need their first vaccines at 6-8 weeks."
    return mock


@pytest.fixture
def chat_service(sessions, appointments, responder, clock):
    from vet_assistant.services.chat_service import ChatService

    return ChatService(
        sessions,
        appointments,
        responder,
        clock=clock,
        booking_timeout=timedelta(minutes=30),
    )
