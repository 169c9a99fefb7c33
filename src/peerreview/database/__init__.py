"""Database layer for peerreview.

This module handles database connections, the request-scoped storage gateway,
and the SQLAlchemy models of a review container.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    open_gateway: Open a request-scoped StorageGateway on a new session.
    StorageGateway: Request-scoped query/execute/insert/save primitives.
    StorageError: The single error kind for storage failures.
    Base: SQLAlchemy declarative base for all models.
"""

from peerreview.database.connection import get_engine, get_session_factory, open_gateway
from peerreview.database.gateway import StorageError, StorageGateway
from peerreview.database.models import (
    AllocationRow,
    Base,
    CacheBucket,
    CyclePhase,
    CycleQuestion,
    ReviewForm,
    ReviewFormState,
    UnknownAttributeError,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "open_gateway",
    "StorageGateway",
    "StorageError",
    "Base",
    "CacheBucket",
    "UnknownAttributeError",
    "CycleQuestion",
    "ReviewForm",
    "ReviewFormState",
    "AllocationRow",
    "CyclePhase",
]
