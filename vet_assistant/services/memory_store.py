"""Thread-safe in-memory stores.  Data lives only as long as the process."""

from __future__ import annotations

import threading
import uuid

from vet_assistant.models import Appointment, AppointmentStatus, Session, utcnow
from vet_assistant.services.store import (
    AppointmentSort,
    AppointmentStore,
    SessionConflictError,
    SessionStore,
    StoreError,
)


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self, session: Session) -> Session:
        with self._lock:
            if session.session_id in self._sessions:
                raise StoreError(f"Session {session.session_id} already exists")
            session.version = 1
            self._sessions[session.session_id] = session.model_copy(deep=True)
        return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            stored = self._sessions.get(session_id)
            return stored.model_copy(deep=True) if stored else None

    def save(self, session: Session) -> Session:
        with self._lock:
            stored = self._sessions.get(session.session_id)
            if stored is None or stored.version != session.version:
                raise SessionConflictError(session.session_id, session.version)
            session.version += 1
            session.updated_at = utcnow()
            self._sessions[session.session_id] = session.model_copy(deep=True)
        return session


class InMemoryAppointmentStore(AppointmentStore):
    def __init__(self) -> None:
        self._appointments: dict[str, Appointment] = {}
        self._lock = threading.Lock()

    def create(self, appointment: Appointment) -> Appointment:
        created = appointment.model_copy(update={"id": uuid.uuid4().hex})
        with self._lock:
            self._appointments[created.id] = created
        return created.model_copy()

    def list_for_session(
        self,
        session_id: str,
        *,
        sort: AppointmentSort = "created",
        limit: int | None = None,
    ) -> list[Appointment]:
        key = (
            (lambda a: a.preferred_date_time)
            if sort == "preferred"
            else (lambda a: a.created_at)
        )
        with self._lock:
            matches = [a for a in self._appointments.values() if a.session_id == session_id]
        matches.sort(key=key, reverse=True)
        if limit is not None:
            matches = matches[:limit]
        return [a.model_copy() for a in matches]

    def list(
        self,
        status: AppointmentStatus | None = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Appointment], int]:
        with self._lock:
            matches = [
                a for a in self._appointments.values()
                if status is None or a.status == status
            ]
        matches.sort(key=lambda a: a.created_at, reverse=True)
        start = (page - 1) * limit
        return [a.model_copy() for a in matches[start:start + limit]], len(matches)

    def update_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment | None:
        with self._lock:
            stored = self._appointments.get(appointment_id)
            if stored is None:
                return None
            updated = stored.model_copy(update={"status": status, "updated_at": utcnow()})
            self._appointments[appointment_id] = updated
        return updated.model_copy()
