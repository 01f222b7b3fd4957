"""
Main pytest configuration for backend tests.

Fixtures for settings, in-process stores, a fake async Redis client and
the FastAPI application wired to them.
"""

import os
from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

from tests.fixtures.fakes import (
    TEST_DATABASE_URL,
    FakeClock,
    FakeRedis,
    make_database,
    make_settings,
)

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["CACHE_BACKEND"] = "memory"
os.environ["LOG_LEVEL"] = "DEBUG"

from tutors_api.core.config import Settings
from tutors_api.core.dependencies import AppServices
from tutors_api.infrastructure.store import MemoryStore
from tutors_api.main import create_app


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store(clock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def mock_database() -> MagicMock:
    return make_database()


@pytest.fixture
def services(settings, mock_database, memory_store) -> AppServices:
    return AppServices(settings=settings, database=mock_database, store=memory_store)


@pytest.fixture
def app(settings, services):
    return create_app(settings=settings, services=services)


@pytest_asyncio.fixture
async def api_client(app, services):
    """HTTP client bound to the app, with services started without lifespan."""
    await services.startup()
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    await services.shutdown()
