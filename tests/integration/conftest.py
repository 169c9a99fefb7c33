"""Pytest fixtures for integration tests.

Provides async database fixtures for testing the gateway, Mapper, reviewer
allocations and workflow operations against an in-memory SQLite database.
Production deployments run on PostgreSQL; the schema only uses portable
column types, so SQLite covers the storage semantics.
"""

from __future__ import annotations

from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from peerreview.database.gateway import StorageGateway
from peerreview.database.models.base import Base
from peerreview.review.mapper import Mapper

REVIEW_OBJ = 1


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine for testing.

    Yields:
        Configured AsyncEngine instance using in-memory SQLite.
    """
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a new async database session for each test.

    Args:
        session_factory: The session factory fixture.

    Yields:
        AsyncSession instance for the test.
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def gateway(db_session: AsyncSession) -> StorageGateway:
    """Storage gateway over the test session."""
    return StorageGateway(db_session)


@pytest_asyncio.fixture
async def mapper(gateway: StorageGateway) -> Mapper:
    """Mapper of the review container most tests work in."""
    return Mapper(gateway, review_obj=REVIEW_OBJ)


@pytest_asyncio.fixture
async def seed(gateway: StorageGateway) -> Callable[..., Awaitable[list[Any]]]:
    """Persist records directly, bypassing any Mapper.

    Returns:
        Coroutine function taking records and returning them once committed.
    """

    async def _seed(*records: Any) -> list[Any]:
        async with gateway.transaction():
            await gateway.save(*records)
        return list(records)

    return _seed
