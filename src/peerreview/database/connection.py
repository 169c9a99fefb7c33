"""Engine, session and gateway factories for peerreview.

One engine per process, one session per request. A request gets its
StorageGateway from open_gateway(), which closes the session afterwards:

    >>> engine = get_engine(DatabaseConfig(url="postgresql+asyncpg://localhost/peerreview"))
    >>> sessions = get_session_factory(engine)
    >>> async with open_gateway(sessions) as gateway:
    ...     mapper = Mapper(gateway, review_obj=42)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from peerreview.config import DatabaseConfig
from peerreview.database.gateway import StorageGateway


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine for the configured store.

    pool_size and max_overflow only apply to pooled backends; SQLite URLs
    get the dialect's default pool.

    Args:
        config: Database section of PeerReviewConfig.

    Returns:
        The AsyncEngine.
    """
    options: dict[str, Any] = {"echo": config.echo}
    if make_url(config.url).get_backend_name() != "sqlite":
        options.update(pool_size=config.pool_size, max_overflow=config.max_overflow)
    return create_async_engine(config.url, **options)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose sessions keep records readable after commit.

    Records cached by a Mapper outlive the commits of later writes, so
    sessions are created with expire_on_commit=False.
    """
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def open_gateway(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[StorageGateway]:
    """Open a request-scoped gateway on a fresh session.

    Uncommitted work is rolled back when the session closes.

    Yields:
        The StorageGateway of the request.
    """
    async with session_factory() as session:
        yield StorageGateway(session)
