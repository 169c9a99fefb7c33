"""Storage gateway for peerreview.

The gateway is the single point through which entity records, the Mapper and
reviewer allocations talk to the relational store. It wraps one request-scoped
AsyncSession and offers the four primitives the core needs:

- query: run a SELECT and return the scalar rows
- execute: run a DELETE/UPDATE and return the affected row count
- insert: bulk insert field maps into a mapped table
- save: add ORM records to the session and flush them

Every SQLAlchemyError raised by the driver is translated into StorageError so
collaborators only deal with one error kind for storage failures. Writes are
grouped with ``transaction()``; nested blocks join the outermost one, which is
the only one that commits or rolls back.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Mapping

import structlog
from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Executable

logger = structlog.get_logger(__name__)


class StorageError(RuntimeError):
    """Raised when the relational store fails to perform an operation.

    Attributes:
        operation: Gateway primitive that failed (query, execute, ...).
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(f"Storage {operation} failed: {message}")


class StorageGateway:
    """Request-scoped access to the relational store.

    Attributes:
        session: The AsyncSession all primitives run on.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._depth = 0
        self._rollback_hooks: list[Callable[[], None]] = []
        self._pending_commit: list[Callable[[], None]] = []

    def add_rollback_hook(self, hook: Callable[[], None]) -> None:
        """Register a callable run after every rollback.

        A rollback expires every record held by the session, so holders of
        cached records use this to drop them.
        """
        self._rollback_hooks.append(hook)

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Run callback once the current unit of work is committed.

        Outside a transaction the callback runs immediately. Inside one it
        waits for the outermost commit and is dropped on rollback.
        """
        if self._depth == 0:
            callback()
        else:
            self._pending_commit.append(callback)

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    async def query(self, statement: Executable) -> list[Any]:
        """Execute a SELECT statement and return its scalar rows in order."""
        try:
            result = await self.session.execute(statement)
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise self._failure("query", e) from e

    async def execute(self, statement: Executable) -> int:
        """Execute a data-modifying statement and return the affected row count."""
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise self._failure("execute", e) from e
        return result.rowcount

    async def insert(self, model: type, rows: Iterable[Mapping[str, Any]]) -> None:
        """Insert one row per field map into the table of ``model``."""
        values = [dict(row) for row in rows]
        if not values:
            return
        try:
            await self.session.execute(insert(model), values)
        except SQLAlchemyError as e:
            raise self._failure("insert", e) from e

    async def save(self, *records: Any) -> None:
        """Add records to the session and flush pending changes."""
        try:
            self.session.add_all(records)
            await self.session.flush()
        except SQLAlchemyError as e:
            raise self._failure("save", e) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StorageGateway]:
        """Group storage calls into one unit of work.

        The outermost block commits on success and rolls back on any
        exception; inner blocks only join it.

        Yields:
            This gateway.
        """
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                await self._rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                await self._rollback()
                raise self._failure("commit", e) from e
            callbacks, self._pending_commit = self._pending_commit, []
            for callback in callbacks:
                callback()

    async def _rollback(self) -> None:
        self._pending_commit.clear()
        await self.session.rollback()
        for hook in self._rollback_hooks:
            hook()

    def _failure(self, operation: str, error: SQLAlchemyError) -> StorageError:
        logger.error(
            "storage_error",
            operation=operation,
            error_type=type(error).__name__,
            error=str(error),
        )
        return StorageError(operation, str(error))
