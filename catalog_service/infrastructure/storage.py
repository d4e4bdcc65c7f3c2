"""Storage gateway over the async SQL store.

Three primitives (fetch one row, fetch many rows, execute a statement)
plus an explicit transaction scope for multi-statement writes. No
business logic lives here.

Example usage:
    gateway = StorageGateway(engine)
    async with gateway.transaction():
        result = await gateway.execute(insert(Category).values(name="Books"))
        row = await gateway.fetch_one(
            select(Category).where(Category.id == result.last_insert_id)
        )
"""

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.sql import Executable

from catalog_service.domain.exceptions import StorageError

logger = structlog.get_logger()

# Connection of the transaction open in the current task, if any
_current_connection: ContextVar[AsyncConnection | None] = ContextVar(
    "catalog_transaction_connection", default=None
)


@dataclass(frozen=True)
class ExecuteResult:
    """Outcome of a write statement.

    Attributes:
        last_insert_id: Primary key of the inserted row (inserts only).
        rows_affected: Number of rows matched by the statement.
    """

    last_insert_id: int | None
    rows_affected: int


def _storage_error(exc: SQLAlchemyError) -> StorageError:
    """Wrap a driver failure, keeping the original driver message."""
    message = str(exc.orig) if isinstance(exc, DBAPIError) and exc.orig else str(exc)
    return StorageError(message, details={"error_type": type(exc).__name__})


class StorageGateway:
    """Typed wrappers over the SQL store.

    Statements issued inside ``transaction()`` share its connection and
    commit or roll back together. Outermost transactions run one at a
    time, so a check followed by a write (sibling name, SKU) cannot
    interleave with another task doing the same. Outside a transaction
    every write commits on its own.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        """Initialize gateway.

        Args:
            engine: Async SQLAlchemy engine.
        """
        self.engine = engine
        self._write_lock = asyncio.Lock()

    @property
    def in_transaction(self) -> bool:
        """Whether the current task has an open transaction."""
        return _current_connection.get() is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Open a transaction, or join the one already open in this task.

        Any exception raised inside the block, cancellation included,
        rolls the transaction back before propagating.

        Yields:
            The connection bound to the transaction.

        Raises:
            StorageError: If BEGIN, COMMIT or ROLLBACK fails.
        """
        current = _current_connection.get()
        if current is not None:
            yield current
            return

        async with self._write_lock:
            try:
                async with self.engine.begin() as conn:
                    token = _current_connection.set(conn)
                    try:
                        yield conn
                    finally:
                        _current_connection.reset(token)
            except SQLAlchemyError as exc:
                raise _storage_error(exc) from exc

    @asynccontextmanager
    async def _connection(self, write: bool) -> AsyncIterator[AsyncConnection]:
        """Get the transaction connection or a short-lived one."""
        current = _current_connection.get()
        if current is not None:
            yield current
        elif write:
            async with self.engine.begin() as conn:
                yield conn
        else:
            async with self.engine.connect() as conn:
                yield conn

    async def fetch_one(
        self,
        statement: Executable,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Fetch the first row of a query.

        Args:
            statement: SELECT statement.
            params: Optional bound parameters.

        Returns:
            Row as a dict, or None when the query matched nothing.
        """
        try:
            async with self._connection(write=False) as conn:
                result = await conn.execute(statement, params)
                row = result.mappings().first()
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return dict(row) if row is not None else None

    async def fetch_all(
        self,
        statement: Executable,
        params: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch all rows of a query.

        Args:
            statement: SELECT statement.
            params: Optional bound parameters.

        Returns:
            Rows as dicts.
        """
        try:
            async with self._connection(write=False) as conn:
                result = await conn.execute(statement, params)
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return [dict(row) for row in rows]

    async def fetch_value(
        self,
        statement: Executable,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Fetch the first column of the first row (e.g. a COUNT)."""
        try:
            async with self._connection(write=False) as conn:
                result = await conn.execute(statement, params)
                value = result.scalar()
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return value

    async def execute(
        self,
        statement: Executable,
        params: Mapping[str, Any] | None = None,
    ) -> ExecuteResult:
        """Execute a write statement.

        Args:
            statement: INSERT, UPDATE or DELETE statement.
            params: Optional bound parameters.

        Returns:
            Inserted primary key (for inserts) and affected row count.
        """
        try:
            async with self._connection(write=True) as conn:
                result = await conn.execute(statement, params)
                last_insert_id = None
                if result.is_insert and result.inserted_primary_key:
                    last_insert_id = result.inserted_primary_key[0]
                rows_affected = result.rowcount
        except SQLAlchemyError as exc:
            raise _storage_error(exc) from exc
        return ExecuteResult(last_insert_id=last_insert_id, rows_affected=rows_affected)

    async def ping(self) -> bool:
        """Check that the store answers a trivial query."""
        return await self.fetch_value(text("SELECT 1")) == 1
