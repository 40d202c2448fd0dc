"""
Shared fixtures: in-memory hosted database, stores and sync wiring.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chatsync.infrastructure.local.database import Base
from chatsync.infrastructure.local.key_value_storage import InMemoryKeyValueStorage
from chatsync.infrastructure.local.local_session_store import LocalSessionStore
from chatsync.infrastructure.local.remote_session_store import SqliteRemoteSessionStore
from chatsync.services.event_bus import EventBus
from chatsync.services.realtime_service import RealtimeManager


@pytest.fixture
async def engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def test_user_id():
    return "test_user"


@pytest.fixture
def realtime():
    """Fresh change feed, isolated from the module singleton."""
    return RealtimeManager()


@pytest.fixture
def remote_store(session_factory, realtime):
    return SqliteRemoteSessionStore(session_factory, publisher=realtime)


@pytest.fixture
def storage():
    return InMemoryKeyValueStorage()


@pytest.fixture
def local_store(storage):
    return LocalSessionStore(storage)


@pytest.fixture
def event_bus():
    return EventBus()
