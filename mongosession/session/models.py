"""
Session data model.

Options holds the cookie attributes a session is written with, Session is
the in-memory value handed to request handlers, and SessionRecord is the
at-rest MongoDB document keyed by the session identity.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from bson import ObjectId

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from mongosession.session.store import SessionStore


# Thirty days, the conventional default lifetime for a session cookie
DEFAULT_MAX_AGE = 86400 * 30

FLASHES_KEY = "_flash"


@dataclass
class Options:
    """
    Cookie attributes for a session.

    Attributes:
        path: Cookie path
        domain: Cookie domain, or None for the request host
        max_age: Lifetime in seconds. Zero makes a browser-session cookie,
            a negative value deletes the session on save.
        secure: Only send the cookie over HTTPS
        http_only: Hide the cookie from client-side scripts
        same_site: SameSite attribute ("lax", "strict" or "none")
    """
    path: str = "/"
    domain: Optional[str] = None
    max_age: int = DEFAULT_MAX_AGE
    secure: bool = False
    http_only: bool = True
    same_site: str = "lax"

    def copy(self) -> "Options":
        """Return an independent copy, so per-session overrides stay local."""
        return replace(self)


class Session:
    """
    A named session bound to one store.

    ``id`` stays an empty string until the first successful save assigns
    one. ``timestamp`` may be set to pin the record's timestamp for the
    next save; when left as None the store uses the current time.
    """

    def __init__(self, store: "SessionStore", name: str):
        self.id: str = ""
        self.values: dict[Any, Any] = {}
        self.options = Options()
        self.is_new = True
        self.timestamp: Optional[datetime] = None
        self._store = store
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def store(self) -> "SessionStore":
        return self._store

    async def save(self, request: "Request", response: "Response") -> None:
        """Save this session through its store."""
        await self._store.save(request, response, self)

    def flashes(self, key: str = FLASHES_KEY) -> list[Any]:
        """Return and remove the flash messages stored under key."""
        return self.values.pop(key, None) or []

    def add_flash(self, value: Any, key: str = FLASHES_KEY) -> None:
        """Append a flash message under key."""
        self.values.setdefault(key, []).append(value)

    def __repr__(self) -> str:
        return f"Session(name={self._name!r}, id={self.id!r}, is_new={self.is_new})"


@dataclass
class SessionRecord:
    """
    The MongoDB document for one session.

    Attributes:
        id: Session identity (24 hex characters)
        data: Codec output for the session values, never cleartext
        timestamp: Last-modified or last-accessed time, depending on the
            store's timestamp field
    """
    id: str
    data: str
    timestamp: Optional[datetime] = field(default=None)

    def to_document(self, timestamp_field: str) -> dict[str, Any]:
        return {
            "_id": ObjectId(self.id),
            "data": self.data,
            timestamp_field: self.timestamp,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any], timestamp_field: str) -> "SessionRecord":
        return cls(
            id=str(document["_id"]),
            data=document.get("data", ""),
            timestamp=document.get(timestamp_field),
        )
