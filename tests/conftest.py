import os
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

# Test database URL (use SQLite for simplicity or PostgreSQL)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"
os.environ.setdefault("SOCIALGRAPH_DATABASE_URL", TEST_DATABASE_URL)

from socialgraph.database import Base  # noqa: E402
from socialgraph.models import User  # noqa: E402
from socialgraph.services import (  # noqa: E402
    IdentityService, FriendshipService, SubscriptionService,
    ContentService, FeedService, MessagingService,
)

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    poolclass=NullPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Fixed clock origin for tests that care about ordering
BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory inserting identity rows directly, as the identity owner would."""

    async def _make(username: str, **kwargs) -> User:
        kwargs.setdefault("email", f"{username}@example.com")
        user = User(username=username, **kwargs)
        db_session.add(user)
        await db_session.flush()
        return user

    return _make


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user("alice")


@pytest.fixture
async def bob(make_user) -> User:
    return await make_user("bob")


@pytest.fixture
async def carol(make_user) -> User:
    return await make_user("carol")


@pytest.fixture
def identity(db_session: AsyncSession) -> IdentityService:
    return IdentityService(db_session)


@pytest.fixture
def friendships(db_session: AsyncSession) -> FriendshipService:
    return FriendshipService(db_session)


@pytest.fixture
def subscriptions(db_session: AsyncSession) -> SubscriptionService:
    return SubscriptionService(db_session)


@pytest.fixture
def content(db_session: AsyncSession) -> ContentService:
    return ContentService(db_session)


@pytest.fixture
def feed(db_session: AsyncSession) -> FeedService:
    return FeedService(db_session)


@pytest.fixture
def messaging(db_session: AsyncSession) -> MessagingService:
    return MessagingService(db_session)
