"""
Test configuration and fixtures for the worldserver test suite.
"""

import os

# Set before worldserver.config is imported anywhere.
os.environ.setdefault("LOGGING_ENVIRONMENT", "unit_test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from worldserver.config.models import DatabaseConfig, RealtimeConfig  # noqa: E402
from worldserver.database import DatabaseManager  # noqa: E402
from worldserver.realtime.coordinator import RealtimeCoordinator  # noqa: E402

from .fixtures.realtime_fixtures import FakeClock, InMemoryPartyStore, World  # noqa: E402

# pylint: disable=redefined-outer-name  # Reason: Test file - pytest fixture parameter names


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryPartyStore:
    return InMemoryPartyStore()


@pytest.fixture
def realtime_config() -> RealtimeConfig:
    return RealtimeConfig(
        max_chat_history=5,
        max_party_chat_history=5,
        max_chat_message_length=50,
        invite_ttl_seconds=20.0,
        invite_cooldown_seconds=8.0,
        max_message_size=4096,
    )


@pytest.fixture
def coordinator(store, realtime_config, clock) -> RealtimeCoordinator:
    """A fresh coordinator per test over the in-memory party store."""
    return RealtimeCoordinator(store, realtime_config, clock=clock)


@pytest.fixture
def world(coordinator, store) -> World:
    return World(coordinator, store)


@pytest_asyncio.fixture
async def database():
    """In-memory SQLite database with the schema created."""
    manager = DatabaseManager(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))
    await manager.create_schema()
    try:
        yield manager
    finally:
        await manager.close()
