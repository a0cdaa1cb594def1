"""Persistence ports for chat sessions and appointments.

Two backends implement these: :mod:`memory_store` (development and tests)
and :mod:`mongo_store` (production).  :func:`create_stores` picks one from
the settings.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Literal

from vet_assistant.config import Settings
from vet_assistant.models import Appointment, AppointmentStatus, Session

logger = logging.getLogger(__name__)

AppointmentSort = Literal["created", "preferred"]


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""


class SessionConflictError(StoreError):
    """Raised when a session was saved by someone else since it was read."""

    def __init__(self, session_id: str, expected_version: int):
        self.session_id = session_id
        self.expected_version = expected_version
        super().__init__(
            f"Session {session_id} was modified concurrently "
            f"(expected version {expected_version})"
        )


class SessionStore(ABC):
    @abstractmethod
    def create(self, session: Session) -> Session:
        raise NotImplementedError

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, session: Session) -> Session:
        """Persist *session* if its version is still current.

        On success ``session.version`` is incremented in place.  Raises
        :class:`SessionConflictError` when the stored version moved on.
        """
        raise NotImplementedError


class AppointmentStore(ABC):
    @abstractmethod
    def create(self, appointment: Appointment) -> Appointment:
        """Insert *appointment* and return it with its generated ``id``."""
        raise NotImplementedError

    @abstractmethod
    def list_for_session(
        self,
        session_id: str,
        *,
        sort: AppointmentSort = "created",
        limit: int | None = None,
    ) -> list[Appointment]:
        """Appointments of one session, newest first by *sort* field."""
        raise NotImplementedError

    @abstractmethod
    def list(
        self,
        status: AppointmentStatus | None = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Appointment], int]:
        """One page of appointments (newest first) and the total match count."""
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment | None:
        raise NotImplementedError


def create_stores(
    settings: Settings,
) -> tuple[SessionStore, AppointmentStore, Callable[[], None]]:
    """Build the configured stores plus a callable that releases them."""
    if settings.storage_backend == "memory":
        from vet_assistant.services.memory_store import (
            InMemoryAppointmentStore,
            InMemorySessionStore,
        )

        logger.info("Using in-memory storage (data is lost on restart)")
        return InMemorySessionStore(), InMemoryAppointmentStore(), lambda: None

    from vet_assistant.services.mongo_store import (
        MongoAppointmentStore,
        MongoSessionStore,
        connect,
    )

    client, database = connect(settings.mongodb_uri, settings.mongodb_database)
    sessions = MongoSessionStore(database)
    appointments = MongoAppointmentStore(database)
    sessions.ensure_indexes()
    appointments.ensure_indexes()
    logger.info("Using MongoDB storage (database=%s)", settings.mongodb_database)
    return sessions, appointments, client.close
