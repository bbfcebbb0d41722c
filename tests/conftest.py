from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from grape.services.annotator import ContentAnnotator
from grape.services.notification_service import NotificationService


class FakeConnection:
    """Stands in for an asyncpg connection. Each query method is an AsyncMock."""

    def __init__(self) -> None:
        self.fetch = AsyncMock(return_value=[])
        self.fetchrow = AsyncMock(return_value=None)
        self.fetchval = AsyncMock(return_value=None)
        self.execute = AsyncMock(return_value="UPDATE 0")


class FakeDatabase:
    """Hands out the same FakeConnection for reads and transactions."""

    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.transactions = 0

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn

    async def close(self) -> None:
        return None


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def db(conn) -> FakeDatabase:
    return FakeDatabase(conn)


@pytest.fixture
def notifications(db) -> NotificationService:
    return NotificationService(db)


@pytest.fixture
def annotator(notifications) -> ContentAnnotator:
    return ContentAnnotator(notifications)


@pytest.fixture
def store() -> MagicMock:
    store = MagicMock()
    store.put_object = AsyncMock(side_effect=lambda key, body, content_type: f"https://cdn.test/{key}")
    store.delete_object = AsyncMock(return_value=None)
    store.presigned_upload_url = AsyncMock(return_value="https://upload.test/signed")
    store.public_url = MagicMock(side_effect=lambda key: f"https://cdn.test/{key}")
    return store
