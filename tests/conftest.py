import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("CACHE_TTL_SECONDS", "30")

import pytest
from mongomock_motor import AsyncMongoMockClient

from app.db import init_models
from app.services.attendance import BulkAttendanceService
from app.services.notifier import NotificationDispatcher
from tests.fakes import InMemoryAttendanceStore


@pytest.fixture
def store():
    return InMemoryAttendanceStore()


@pytest.fixture
def dispatcher():
    return NotificationDispatcher(queue_size=4)


@pytest.fixture
def service(store, dispatcher):
    return BulkAttendanceService(store, dispatcher)


@pytest.fixture
def notifications(dispatcher):
    seen = []
    dispatcher.add_listener(lambda group_id, event: seen.append((group_id, event)))
    return seen


@pytest.fixture
async def mongo():
    """In-memory MongoDB with every document model and index registered."""
    database = AsyncMongoMockClient()["rollcall_test"]
    await init_models(database)
    return database
