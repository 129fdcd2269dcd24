"""
MongoDB-backed session record store.

Each session is one document in a single collection:
``{"_id": ObjectId, "data": <encoded payload>, <timestamp field>: datetime}``.
The timestamp field name is fixed per store instance and is the field a
TTL index expires documents on. Every operation runs through a borrowed
handle from ClusterConnection, so a connection dropped by the cluster
only fails the call in flight.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING

from mongosession.errors.exceptions import (
    InvalidSessionIDError,
    InvalidTimestampError,
    SessionNotFoundError,
)
from mongosession.resilience.connection import BorrowedCollection, ClusterConnection
from mongosession.session.models import SessionRecord
from mongosession.session.store import RecordStore

logger = logging.getLogger(__name__)


LAST_ACCESSED_FIELD = "lastAccessed"
MODIFIED_FIELD = "modified"


def _utcnow() -> datetime:
    # BSON dates hold milliseconds
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _short(session_id: str) -> str:
    return session_id[:8] + "..."


def is_valid_session_id(session_id: object) -> bool:
    """Return True if session_id is a 24-character ObjectId hex string."""
    return isinstance(session_id, str) and len(session_id) == 24 and ObjectId.is_valid(session_id)


def _object_id(session_id: str) -> ObjectId:
    if not is_valid_session_id(session_id):
        raise InvalidSessionIDError(details={"session_id": repr(session_id)[:40]})
    return ObjectId(session_id)


class MongoRecordStore(RecordStore):
    """
    Session record store on a MongoDB collection.

    Attributes:
        collection: Name of the sessions collection
        timestamp_field: Document field holding the record timestamp,
            LAST_ACCESSED_FIELD or MODIFIED_FIELD
    """

    def __init__(
        self,
        connection: ClusterConnection,
        collection: str,
        timestamp_field: str = MODIFIED_FIELD
    ):
        self.connection = connection
        self.collection = collection
        self.timestamp_field = timestamp_field

    async def ensure_ttl_index(self, max_age: int) -> str:
        """
        Declare the TTL index on the timestamp field.

        The index is built in the background and is sparse, so only
        documents carrying the field expire. MongoDB removes documents
        max_age seconds after their timestamp; the store runs no sweep of
        its own.

        Returns:
            The index name.

        Raises:
            ValueError: If max_age is not positive.
            PyMongoError: If the index cannot be created, for example when
                an index on the field exists with a different expiry.
        """
        if max_age <= 0:
            raise ValueError("TTL expiry requires a positive max_age")

        async def create(sessions: BorrowedCollection) -> str:
            return await sessions.create_index(
                [(self.timestamp_field, ASCENDING)],
                background=True,
                sparse=True,
                expireAfterSeconds=max_age,
            )

        index_name = await self.connection.with_collection(self.collection, create)
        logger.info(
            "TTL index ensured",
            extra={"extra_data": {
                "collection": self.collection,
                "index": index_name,
                "expire_after_seconds": max_age,
            }}
        )
        return index_name

    async def load(self, session_id: str, touch: bool = False) -> SessionRecord:
        oid = _object_id(session_id)

        async with self.connection.collection(self.collection) as sessions:
            if touch:
                document = await sessions.find_one_and_update(
                    {"_id": oid},
                    {"$set": {self.timestamp_field: _utcnow()}},
                )
            else:
                document = await sessions.find_one({"_id": oid})

        if document is None:
            logger.debug(
                "Session not found",
                extra={"extra_data": {"session_id": _short(session_id)}}
            )
            raise SessionNotFoundError(details={"session_id": _short(session_id)})

        return SessionRecord.from_document(document, self.timestamp_field)

    async def upsert(self, session_id: str, data: str, timestamp: Optional[datetime] = None) -> None:
        _object_id(session_id)

        if timestamp is None:
            timestamp = _utcnow()
        elif not isinstance(timestamp, datetime):
            raise InvalidTimestampError(
                details={"type": type(timestamp).__name__}
            )

        record = SessionRecord(id=session_id, data=data, timestamp=timestamp)
        document = record.to_document(self.timestamp_field)

        async with self.connection.collection(self.collection) as sessions:
            await sessions.replace_one({"_id": document["_id"]}, document, upsert=True)

        logger.debug(
            "Session saved",
            extra={"extra_data": {"session_id": _short(session_id)}}
        )

    async def delete(self, session_id: str) -> None:
        oid = _object_id(session_id)

        async with self.connection.collection(self.collection) as sessions:
            result = await sessions.delete_one({"_id": oid})

        logger.debug(
            "Session deleted",
            extra={"extra_data": {
                "session_id": _short(session_id),
                "deleted": getattr(result, "deleted_count", None),
            }}
        )

    async def health_check(self) -> bool:
        try:
            return await self.connection.ping()
        except Exception as e:
            logger.warning(
                "Session store health check failed",
                extra={"extra_data": {"error": str(e)}}
            )
            return False
