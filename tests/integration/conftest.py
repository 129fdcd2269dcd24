"""
Integration test configuration and fixtures.

Tests marked ``integration`` run against a real MongoDB named by
TEST_MONGO_URI and are skipped when it is not set. Each test works in its
own uniquely named collection, dropped afterwards.

Environment Variables:
- TEST_MONGO_URI: MongoDB connection URI for testing
- TEST_MONGO_DATABASE: Database used when the URI names none (default: mongosession_test)
- TEST_MONGO_TIMEOUT_MS: Server selection timeout (default: 5000)
"""
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import PyMongoError

from mongosession.resilience.connection import ClusterConnection

logger = logging.getLogger(__name__)


@dataclass
class MongoTestConfig:
    """Configuration for the test MongoDB instance."""
    uri: str = field(default_factory=lambda: os.getenv("TEST_MONGO_URI", ""))
    database: str = field(default_factory=lambda: os.getenv("TEST_MONGO_DATABASE", "mongosession_test"))
    timeout_ms: int = field(default_factory=lambda: int(os.getenv("TEST_MONGO_TIMEOUT_MS", "5000")))

    @property
    def is_configured(self) -> bool:
        return bool(self.uri)

    def to_dict(self) -> Dict[str, Any]:
        # Never log the URI, it may carry credentials
        return {"configured": self.is_configured, "database": self.database, "timeout_ms": self.timeout_ms}


@pytest.fixture(scope="session")
def mongo_test_config() -> MongoTestConfig:
    """Provide test MongoDB configuration."""
    config = MongoTestConfig()
    logger.info(f"Test MongoDB config: {config.to_dict()}")
    return config


@pytest.fixture
def live_collection_name() -> str:
    """A collection name unique to the current test."""
    return f"sessions_test_{uuid.uuid4().hex[:12]}"


@pytest_asyncio.fixture
async def live_connection(mongo_test_config: MongoTestConfig, live_collection_name: str):
    """
    ClusterConnection over a real MongoDB client.

    Skips the test when TEST_MONGO_URI is unset or the server cannot be
    reached.
    """
    if not mongo_test_config.is_configured:
        pytest.skip("Real MongoDB not configured. Set TEST_MONGO_URI to run integration tests.")

    client = AsyncIOMotorClient(
        mongo_test_config.uri,
        serverSelectionTimeoutMS=mongo_test_config.timeout_ms,
        tz_aware=True,
    )
    connection = ClusterConnection(client, mongo_test_config.database)

    try:
        await connection.ping()
    except PyMongoError as e:
        client.close()
        pytest.skip(f"Failed to connect to MongoDB: {e}")

    yield connection

    try:
        await connection._get_database().drop_collection(live_collection_name)
    except PyMongoError as e:
        logger.warning(f"Failed to drop test collection {live_collection_name}: {e}")
    client.close()
