"""
Shared pytest fixtures and configuration for all tests.

Unit tests run against an in-memory stand-in for the Motor client that
mirrors the calls the session store makes: start_session() returning an
async context manager, get_default_database(), and the handful of
collection methods used for session records. Every call is recorded so
tests can assert on what reached the database.
"""
import os
from copy import deepcopy
from types import SimpleNamespace
from typing import Any, Callable, Optional

import pytest
from hypothesis import settings, Verbosity, Phase
from starlette.requests import Request
from starlette.responses import Response

from mongosession.resilience.connection import ClusterConnection

# Configure Hypothesis profiles for different environments
# Default profile: balanced for local development
settings.register_profile(
    "default",
    max_examples=100,
    verbosity=Verbosity.normal,
    deadline=None,  # Disable deadline for async tests
    print_blob=True,
)

# CI profile: more thorough testing for continuous integration
settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    derandomize=True,
)

# Debug profile: minimal examples for quick debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
    print_blob=True,
    phases=[Phase.explicit, Phase.reuse, Phase.generate],  # Skip shrinking for speed
)

# Fast profile: quick smoke tests
settings.register_profile(
    "fast",
    max_examples=20,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "default"))


class FakeClientSession:
    """Stands in for AsyncIOMotorClientSession."""

    def __init__(self, client: "FakeMotorClient"):
        self.client = client
        self.ended = False

    async def __aenter__(self) -> "FakeClientSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.ended = True
        self.client.sessions_ended += 1


class FakeCollection:
    """In-memory collection keyed by _id."""

    def __init__(self, database: "FakeDatabase", name: str):
        self.database = database
        self.name = name
        self.documents: dict[Any, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.indexes: list[dict[str, Any]] = []

    def _record(self, method: str, session: Optional[FakeClientSession], **kwargs: Any) -> None:
        assert session is not None, f"{method} called without a borrowed session"
        assert not session.ended, f"{method} called on a released session"
        self.calls.append((method, kwargs))
        failure = self.database.client.fail_with
        if failure is not None:
            raise failure

    def call_names(self) -> list[str]:
        return [method for method, _ in self.calls]

    async def find_one(self, filter, session=None):
        self._record("find_one", session, filter=filter)
        document = self.documents.get(filter["_id"])
        return deepcopy(document) if document is not None else None

    async def find_one_and_update(self, filter, update, return_document=None, session=None):
        self._record("find_one_and_update", session, filter=filter, update=update,
                     return_document=return_document)
        document = self.documents.get(filter["_id"])
        if document is None:
            return None
        document.update(update.get("$set", {}))
        return deepcopy(document)

    async def replace_one(self, filter, replacement, upsert=False, session=None):
        self._record("replace_one", session, filter=filter, replacement=replacement, upsert=upsert)
        key = filter["_id"]
        existed = key in self.documents
        if existed or upsert:
            self.documents[key] = deepcopy(replacement)
        return SimpleNamespace(
            matched_count=1 if existed else 0,
            upserted_id=None if existed or not upsert else key,
        )

    async def delete_one(self, filter, session=None):
        self._record("delete_one", session, filter=filter)
        removed = self.documents.pop(filter["_id"], None)
        return SimpleNamespace(deleted_count=0 if removed is None else 1)

    async def create_index(self, keys, session=None, **kwargs):
        self._record("create_index", session, keys=keys, **kwargs)
        self.indexes.append({"keys": keys, **kwargs})
        return "_".join(f"{field}_{direction}" for field, direction in keys)


class FakeDatabase:
    def __init__(self, client: "FakeMotorClient", name: str):
        self.client = client
        self.name = name
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    async def command(self, command, session=None):
        assert session is not None
        if self.client.fail_with is not None:
            raise self.client.fail_with
        return {"ok": 1.0}


class FakeMotorClient:
    """
    Stands in for AsyncIOMotorClient.

    Set ``fail_with`` to an exception to make every database call raise it,
    simulating an unreachable cluster.
    """

    def __init__(self):
        self.databases: dict[str, FakeDatabase] = {}
        self.sessions_started = 0
        self.sessions_ended = 0
        self.fail_with: Optional[BaseException] = None
        self.closed = False
        self.default_database_requests: list[Optional[str]] = []

    async def start_session(self) -> FakeClientSession:
        self.sessions_started += 1
        return FakeClientSession(self)

    def get_default_database(self, default=None) -> FakeDatabase:
        self.default_database_requests.append(default)
        name = default or "test"
        if name not in self.databases:
            self.databases[name] = FakeDatabase(self, name)
        return self.databases[name]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_mongo_client() -> FakeMotorClient:
    """In-memory Motor client for unit tests."""
    return FakeMotorClient()


@pytest.fixture
def connection(fake_mongo_client) -> ClusterConnection:
    """ClusterConnection over the in-memory client."""
    return ClusterConnection(fake_mongo_client, "session-db")


@pytest.fixture
def sessions_collection(fake_mongo_client) -> FakeCollection:
    """The in-memory "sessions" collection the stores write to."""
    return fake_mongo_client.get_default_database("session-db")["sessions"]


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build a Starlette request carrying the given cookies and headers."""

    def _make(cookies: Optional[dict[str, str]] = None, headers: Optional[dict[str, str]] = None) -> Request:
        raw_headers = [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        ]
        if cookies:
            cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
            raw_headers.append((b"cookie", cookie_header.encode("latin-1")))
        return Request({
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": b"",
            "headers": raw_headers,
        })

    return _make


@pytest.fixture
def read_set_cookie() -> Callable[[Response, str], Optional[tuple[str, str]]]:
    """
    Return (value, lowercased header) of the Set-Cookie header written for
    name, or None when the response sets no such cookie.
    """

    def _read(response: Response, name: str) -> Optional[tuple[str, str]]:
        for header in response.headers.getlist("set-cookie"):
            if header.startswith(f"{name}="):
                value = header.split(";", 1)[0].split("=", 1)[1].strip('"')
                return value, header.lower()
        return None

    return _read

