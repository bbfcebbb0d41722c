import os
from unittest.mock import AsyncMock, MagicMock

import pytest

from grape.core.db import Database
from grape.services.annotator import ContentAnnotator
from grape.services.engagement_service import EngagementService
from grape.services.feed_service import FeedService
from grape.services.graph_service import SocialGraphService
from grape.services.notification_service import NotificationService
from grape.services.post_service import PostService
from grape.services.search_service import SearchService
from grape.services.user_service import UserService
from grape.utils.create_tables import create_schema, drop_schema

DATABASE_URL = os.getenv("GRAPE_TEST_DATABASE_URL")

requires_database = pytest.mark.skipif(not DATABASE_URL, reason="GRAPE_TEST_DATABASE_URL is not set")


@pytest.fixture
async def db():
    database = Database(DATABASE_URL, min_size=1, max_size=4)
    await database.connect()
    async with database.transaction() as conn:
        await drop_schema(conn)
        await create_schema(conn)
    yield database
    await database.close()


@pytest.fixture
def store():
    store = MagicMock()
    store.put_object = AsyncMock(side_effect=lambda key, body, content_type: f"https://cdn.test/{key}")
    store.delete_object = AsyncMock()
    store.public_url = MagicMock(side_effect=lambda key: f"https://cdn.test/{key}")
    return store


@pytest.fixture
def services(db, store):
    notifications = NotificationService(db)
    annotator = ContentAnnotator(notifications)
    return {
        "users": UserService(db, store),
        "graph": SocialGraphService(db, notifications),
        "engagement": EngagementService(db, notifications, annotator),
        "posts": PostService(db, store, annotator),
        "feed": FeedService(db),
        "search": SearchService(db),
        "notifications": notifications,
    }


async def signup(services, username):
    return await services["users"].create_user(username, f"{username}@example.com", "Secret123")
