"""
Store abstractions for server-side sessions.

RecordStore is the persistence contract for opaque session records keyed
by identity. SessionStore is the request-facing contract that ties a
client token to a record: new, get and save.

All methods are async to support non-blocking I/O with the database.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response

from mongosession.session.models import Session, SessionRecord


class RecordStore(ABC):
    """
    Abstract base class for session record persistence.

    Implementations validate identities before any I/O and let database
    errors propagate unmodified.
    """

    @abstractmethod
    async def load(self, session_id: str, touch: bool = False) -> SessionRecord:
        """
        Load the record for session_id.

        Args:
            session_id: Session identity.
            touch: Rewrite the record timestamp to now as part of the read.

        Returns:
            The stored record.

        Raises:
            InvalidSessionIDError: If session_id is malformed.
            SessionNotFoundError: If no record exists or it has expired.
        """
        pass

    @abstractmethod
    async def upsert(self, session_id: str, data: str, timestamp: Optional[datetime] = None) -> None:
        """
        Insert or replace the record for session_id.

        Args:
            session_id: Session identity.
            data: Encoded session payload.
            timestamp: Record timestamp. Uses the current time when None.

        Raises:
            InvalidSessionIDError: If session_id is malformed.
            InvalidTimestampError: If timestamp is not a datetime.
        """
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """
        Delete the record for session_id.

        This operation is idempotent - deleting a non-existent
        record does not raise an error.

        Raises:
            InvalidSessionIDError: If session_id is malformed.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity and health of the underlying database.

        Note:
            This method should not raise exceptions - connectivity issues
            should be caught and result in a False return value.
        """
        pass


class SessionStore(ABC):
    """
    Abstract base class for request-facing session stores.
    """

    @abstractmethod
    async def get(self, request: Request, name: str) -> Session:
        """
        Return the session for name, cached for the rest of the request.
        """
        pass

    @abstractmethod
    async def new(self, request: Request, name: str) -> Session:
        """
        Return the session for name without caching it on the request.

        An absent or undecodable token yields a new session rather than
        an error.
        """
        pass

    @abstractmethod
    async def save(self, request: Request, response: Response, session: Session) -> None:
        """
        Persist session and write its token to response.

        A negative max_age deletes the session and clears the token.
        """
        pass
