"""MongoDB-backed stores (``sessions`` and ``appointments`` collections).

Documents use the camelCase field names of the API models.  Session saves
are guarded by a ``version`` field so that two writers racing on the same
session cannot silently overwrite each other.
"""

from __future__ import annotations

import logging
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from vet_assistant.models import Appointment, AppointmentStatus, Session, utcnow
from vet_assistant.services.store import (
    AppointmentSort,
    AppointmentStore,
    SessionConflictError,
    SessionStore,
    StoreError,
)

logger = logging.getLogger(__name__)

SESSIONS_COLLECTION = "sessions"
APPOINTMENTS_COLLECTION = "appointments"


def connect(uri: str, database_name: str) -> tuple[MongoClient, Database]:
    """Create a client (connection is lazy) and return it with the database."""
    client: MongoClient = MongoClient(uri, tz_aware=True, appname="vet-assistant")
    return client, client[database_name]


class MongoSessionStore(SessionStore):
    def __init__(self, database: Database) -> None:
        self._collection: Collection = database[SESSIONS_COLLECTION]

    def ensure_indexes(self) -> None:
        self._collection.create_index([("sessionId", ASCENDING)], unique=True)

    def create(self, session: Session) -> Session:
        session.version = 1
        try:
            self._collection.insert_one(session.model_dump(by_alias=True))
        except DuplicateKeyError as exc:
            raise StoreError(f"Session {session.session_id} already exists") from exc
        except PyMongoError as exc:
            raise StoreError("Failed to create session") from exc
        return session

    def get(self, session_id: str) -> Session | None:
        try:
            doc = self._collection.find_one({"sessionId": session_id}, {"_id": 0})
        except PyMongoError as exc:
            raise StoreError("Failed to load session") from exc
        return Session.model_validate(doc) if doc else None

    def save(self, session: Session) -> Session:
        now = utcnow()
        fields = session.model_dump(
            by_alias=True, exclude={"session_id", "version", "updated_at"},
        )
        fields["updatedAt"] = now
        try:
            result = self._collection.update_one(
                {"sessionId": session.session_id, "version": session.version},
                {"$set": fields, "$inc": {"version": 1}},
            )
        except PyMongoError as exc:
            raise StoreError("Failed to save session") from exc
        if result.matched_count == 0:
            raise SessionConflictError(session.session_id, session.version)
        session.version += 1
        session.updated_at = now
        return session


def _to_appointment(doc: dict[str, Any]) -> Appointment:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return Appointment.model_validate(doc)


class MongoAppointmentStore(AppointmentStore):
    def __init__(self, database: Database) -> None:
        self._collection: Collection = database[APPOINTMENTS_COLLECTION]

    def ensure_indexes(self) -> None:
        self._collection.create_index([("sessionId", ASCENDING)])
        self._collection.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])

    def create(self, appointment: Appointment) -> Appointment:
        doc = appointment.model_dump(by_alias=True, exclude={"id"})
        try:
            result = self._collection.insert_one(doc)
        except PyMongoError as exc:
            raise StoreError("Failed to create appointment") from exc
        return appointment.model_copy(update={"id": str(result.inserted_id)})

    def list_for_session(
        self,
        session_id: str,
        *,
        sort: AppointmentSort = "created",
        limit: int | None = None,
    ) -> list[Appointment]:
        sort_field = "preferredDateTime" if sort == "preferred" else "createdAt"
        try:
            cursor = self._collection.find({"sessionId": session_id}).sort(sort_field, DESCENDING)
            if limit is not None:
                cursor = cursor.limit(limit)
            return [_to_appointment(doc) for doc in cursor]
        except PyMongoError as exc:
            raise StoreError("Failed to list appointments") from exc

    def list(
        self,
        status: AppointmentStatus | None = None,
        *,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Appointment], int]:
        query: dict[str, Any] = {}
        if status is not None:
            query["status"] = status.value
        try:
            cursor = (
                self._collection.find(query)
                .sort("createdAt", DESCENDING)
                .skip((page - 1) * limit)
                .limit(limit)
            )
            items = [_to_appointment(doc) for doc in cursor]
            total = self._collection.count_documents(query)
        except PyMongoError as exc:
            raise StoreError("Failed to list appointments") from exc
        return items, total

    def update_status(
        self, appointment_id: str, status: AppointmentStatus,
    ) -> Appointment | None:
        try:
            object_id = ObjectId(appointment_id)
        except (InvalidId, TypeError):
            logger.debug("Not an appointment id: %r", appointment_id)
            return None
        try:
            doc = self._collection.find_one_and_update(
                {"_id": object_id},
                {"$set": {"status": status.value, "updatedAt": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StoreError("Failed to update appointment") from exc
        return _to_appointment(doc) if doc else None
