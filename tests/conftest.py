"""Pytest configuration and fixtures."""

import copy
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from mongo_crud.config import Settings
from mongo_crud.db.connection import MongoConnection
from mongo_crud.db.repositories.base import RecordStore
from mongo_crud.services.audited import AuditedRecordStore
from tests.data import AUDIT_COLLECTION_NAME, COLLECTION_NAME, DATABASE_NAME, make_cats


# =============================================================================
# Settings and connections
# =============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, without the connect-time ping."""
    return Settings(_env_file=None, mongo_ping_on_connect=False)


@pytest.fixture
def mongo_client():
    """In-memory Motor-compatible client."""
    return AsyncMongoMockClient()


@pytest_asyncio.fixture
async def connection(settings, mongo_client) -> MongoConnection:
    """A live connection backed by the in-memory client."""
    connection = MongoConnection(settings=settings, client_factory=lambda uri: mongo_client)
    await connection.connect()
    return connection


@pytest.fixture
def disconnected_connection(settings) -> MongoConnection:
    """A connection that was never connected."""
    return MongoConnection(settings=settings, client_factory=lambda uri: AsyncMongoMockClient())


# =============================================================================
# Seeded collections
# =============================================================================


@pytest.fixture
def cats() -> list[dict]:
    """The records seeded into the cats collection, for comparisons."""
    return make_cats()


@pytest_asyncio.fixture
async def cats_collection(connection, cats):
    """Driver collection reset to the seed records before each test."""
    collection = connection.collection(DATABASE_NAME, COLLECTION_NAME)
    await collection.delete_many({})
    await collection.insert_many(copy.deepcopy(cats))
    return collection


@pytest_asyncio.fixture
async def audit_collection(connection):
    """Empty audit collection."""
    collection = connection.collection(DATABASE_NAME, AUDIT_COLLECTION_NAME)
    await collection.delete_many({})
    return collection


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def store(connection, cats_collection, settings) -> RecordStore:
    """RecordStore over the seeded cats collection."""
    return RecordStore(connection, DATABASE_NAME, COLLECTION_NAME, settings=settings)


@pytest.fixture
def disconnected_store(disconnected_connection, settings) -> RecordStore:
    """RecordStore whose connection is not live."""
    return RecordStore(disconnected_connection, DATABASE_NAME, COLLECTION_NAME, settings=settings)


@pytest.fixture
def audited(store, audit_collection, settings) -> AuditedRecordStore:
    """AuditedRecordStore writing to an empty cat-audits collection."""
    return AuditedRecordStore(store, AUDIT_COLLECTION_NAME, settings=settings)


@pytest.fixture
def mock_collection() -> MagicMock:
    """Driver collection double for asserting the exact calls issued."""
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.find_one_and_delete = AsyncMock(return_value=None)
    collection.insert_one = AsyncMock()
    collection.count_documents = AsyncMock(return_value=0)
    return collection


@pytest.fixture
def mock_store(mock_collection, settings) -> RecordStore:
    """RecordStore wired to mock_collection through a live connection double."""
    connection = MagicMock()
    connection.is_connected = True
    connection.collection.return_value = mock_collection
    return RecordStore(connection, DATABASE_NAME, COLLECTION_NAME, settings=settings)
