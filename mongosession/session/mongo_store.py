"""
MongoDB session store.

MongoStore binds a client-visible token to a server-side session record.
The token carries only the session identity, encrypted and authenticated
by the codec chain; the session values live in MongoDB, encoded by the
same chain. The store survives MongoDB connection cycles because every
database operation runs on a handle borrowed for that operation alone.

Example:
    client = AsyncIOMotorClient("mongodb://localhost:27017/session-db")
    store = await MongoStore.create(
        ClusterConnection(client),
        "sessions",
        Options(max_age=3600),
        True,
        False,
        b"secret-key",
    )

    @app.get("/")
    async def index(request: Request, response: Response):
        session = await store.get(request, "session-key")
        session.values["foo"] = "bar"
        await save_sessions(request, response)
"""

import logging
from typing import Optional

from bson import ObjectId
from starlette.requests import Request
from starlette.responses import Response

from mongosession.errors.exceptions import CodecError, SessionNotFoundError
from mongosession.resilience.connection import ClusterConnection
from mongosession.session.codec import codecs_from_pairs, decode_multi, encode_multi
from mongosession.session.models import Options, Session
from mongosession.session.mongo_record_store import (
    LAST_ACCESSED_FIELD,
    MODIFIED_FIELD,
    MongoRecordStore,
)
from mongosession.session.registry import get_registry
from mongosession.session.store import SessionStore
from mongosession.session.token import CookieToken, TokenTransport

logger = logging.getLogger(__name__)


class MongoStore(SessionStore):
    """
    Session store persisting sessions in a MongoDB collection.

    Attributes:
        codecs: Codec chain, newest key pair first
        options: Default options copied into every new session
        token: Token transport, CookieToken by default
        records: The underlying record store
        ensure_ttl: Whether initialize() declares the TTL index
        track_access_time: Whether every load refreshes the record
            timestamp. The timestamp field is "lastAccessed" when true
            and "modified" otherwise.
    """

    def __init__(
        self,
        connection: ClusterConnection,
        collection: str,
        options: Optional[Options] = None,
        ensure_ttl: bool = False,
        track_access_time: bool = False,
        *key_pairs: Optional[bytes],
        token: Optional[TokenTransport] = None
    ):
        """
        Initialize the store.

        Args:
            connection: Borrowed-handle provider over the caller's client
            collection: Name of the sessions collection
            options: Default session options
            ensure_ttl: Let MongoDB remove sessions max_age seconds after
                their timestamp. Takes effect in initialize().
            track_access_time: Refresh the timestamp on every load, not
                only on save
            *key_pairs: Alternating hash and block keys, newest first
            token: Token transport, CookieToken by default

        Raises:
            ValueError: If no key pair is given
        """
        if not key_pairs:
            raise ValueError("at least one key pair is required")

        self.options = options or Options()
        # Tokens and payloads stay readable for as long as the session lives
        self.codecs = codecs_from_pairs(*key_pairs, max_age=max(self.options.max_age, 0))
        self.token = token or CookieToken()
        self.ensure_ttl = ensure_ttl
        self.track_access_time = track_access_time
        self.records = MongoRecordStore(
            connection,
            collection,
            timestamp_field=LAST_ACCESSED_FIELD if track_access_time else MODIFIED_FIELD,
        )

    @classmethod
    async def create(cls, *args, **kwargs) -> "MongoStore":
        """Construct a store and run initialize() on it."""
        store = cls(*args, **kwargs)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        """
        Declare the TTL index when ensure_ttl is set.

        Raises:
            ValueError: If ensure_ttl is set and max_age is not positive
            PyMongoError: If the index cannot be created
        """
        if self.ensure_ttl:
            await self.records.ensure_ttl_index(self.options.max_age)

    async def get(self, request: Request, name: str) -> Session:
        return await get_registry(request).get(self, name)

    async def new(self, request: Request, name: str) -> Session:
        return await self._new(request, name, touch=self.track_access_time)

    async def get_and_refresh(self, request: Request, name: str) -> Session:
        """
        Like new(), but always bumps the record timestamp on load, giving
        rolling expiry on read paths whatever the store's default.
        """
        return await self._new(request, name, touch=True)

    async def _new(self, request: Request, name: str, touch: bool) -> Session:
        session = Session(self, name)
        session.options = self.options.copy()

        token = self.token.get_token(request, name)
        if token is None:
            return session

        try:
            session.id = decode_multi(name, token, self.codecs)
        except CodecError as e:
            logger.debug(
                "Ignoring undecodable session token",
                extra={"extra_data": {"name": name, "error": e.message}}
            )
            return session

        # Raises InvalidSessionIDError for a malformed identity
        try:
            record = await self.records.load(session.id, touch=touch)
        except SessionNotFoundError:
            return session

        try:
            session.values = decode_multi(name, record.data, self.codecs)
        except CodecError as e:
            logger.warning(
                "Stored session payload could not be decoded",
                extra={"extra_data": {"name": name, "error": e.message}}
            )
            return session

        session.is_new = False
        return session

    async def save(self, request: Request, response: Response, session: Session) -> None:
        if session.options.max_age < 0:
            if session.id:
                await self.records.delete(session.id)
            self.token.set_token(response, session.name, "", session.options)
            return

        if not session.id:
            session.id = str(ObjectId())

        data = encode_multi(session.name, session.values, self.codecs)
        await self.records.upsert(session.id, data, session.timestamp)

        encoded = encode_multi(session.name, session.id, self.codecs)
        self.token.set_token(response, session.name, encoded, session.options)
        session.is_new = False

    async def health_check(self) -> bool:
        return await self.records.health_check()
