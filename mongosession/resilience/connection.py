"""
Borrowed per-operation handles on a long-lived MongoDB client.

The session store never keeps a collection object between calls. Every
operation checks out a fresh driver session from the one process-wide
client, scopes it to the target collection, performs a single unit of
work and ends the session on every exit path. A cluster failover or a
dropped socket therefore only fails the operation in flight; the next
operation derives a new handle and the driver reconnects underneath it.

The client itself is owned by the caller, which creates it at startup and
closes it at shutdown.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorCollection,
)
from pymongo import ReturnDocument

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BorrowedCollection:
    """
    A collection bound to one checked-out driver session.

    Every method forwards the borrowed session to the driver so the
    operation runs on the handle that will be released afterwards.
    """

    def __init__(self, collection: AsyncIOMotorCollection, session: AsyncIOMotorClientSession):
        self._collection = collection
        self._session = session

    @property
    def name(self) -> str:
        return self._collection.name

    async def find_one(self, filter: dict[str, Any]) -> Optional[dict[str, Any]]:
        return await self._collection.find_one(filter, session=self._session)

    async def find_one_and_update(
        self,
        filter: dict[str, Any],
        update: dict[str, Any],
    ) -> Optional[dict[str, Any]]:
        """Apply update atomically and return the document after it."""
        return await self._collection.find_one_and_update(
            filter,
            update,
            return_document=ReturnDocument.AFTER,
            session=self._session,
        )

    async def replace_one(self, filter: dict[str, Any], replacement: dict[str, Any], upsert: bool = False):
        return await self._collection.replace_one(
            filter, replacement, upsert=upsert, session=self._session
        )

    async def delete_one(self, filter: dict[str, Any]):
        return await self._collection.delete_one(filter, session=self._session)

    async def create_index(self, keys: list[tuple[str, int]], **kwargs: Any) -> str:
        return await self._collection.create_index(keys, session=self._session, **kwargs)


class ClusterConnection:
    """
    Derives borrowed collection handles from one shared Motor client.

    Example:
        client = AsyncIOMotorClient("mongodb://localhost:27017/session-db")
        connection = ClusterConnection(client)

        async with connection.collection("sessions") as sessions:
            await sessions.find_one({"_id": oid})
    """

    def __init__(self, client: AsyncIOMotorClient, database: Optional[str] = None):
        """
        Initialize the connection wrapper.

        Args:
            client: The long-lived Motor client, owned by the caller
            database: Database name used when the connection URI names
                none. When the URI names a database, the URI wins.
        """
        self._client = client
        self._database = database

    @property
    def client(self) -> AsyncIOMotorClient:
        return self._client

    def _get_database(self):
        return self._client.get_default_database(self._database)

    @asynccontextmanager
    async def collection(self, name: str) -> AsyncIterator[BorrowedCollection]:
        """
        Check out a driver session scoped to collection name.

        The session is ended when the block exits, whether it completes,
        raises, or is cancelled.
        """
        async with await self._client.start_session() as session:
            yield BorrowedCollection(self._get_database()[name], session)

    async def with_collection(
        self,
        name: str,
        fn: Callable[[BorrowedCollection], Awaitable[T]],
    ) -> T:
        """
        Run fn against a borrowed handle on collection name and return its result.
        """
        async with self.collection(name) as borrowed:
            return await fn(borrowed)

    async def ping(self) -> bool:
        """
        Run the ping command through a borrowed handle.

        Raises:
            PyMongoError: If the cluster cannot be reached
        """
        async with await self._client.start_session() as session:
            result = await self._get_database().command("ping", session=session)
        return bool(result.get("ok"))
