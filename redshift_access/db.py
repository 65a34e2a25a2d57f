"""Connection registry and transactional executor for Redshift.

Every connection string maps to one long-lived handle. A handle wraps a
psycopg null pool: connections are opened per request and closed when
returned, so no idle socket keeps a dropped or renamed database alive,
while ``max_connections`` still bounds concurrent use.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional, Union

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncNullConnectionPool

from redshift_access.config import ConnectionSpec
from redshift_access.facts import LazyFact
from redshift_access.utils.errors import (
    CommitError,
    ConnectionOpenError,
    FactLookupError,
    TransactionError,
)

logger = logging.getLogger(__name__)

Query = Union[str, sql.Composable]


class Transaction:
    """One open transaction on a checked-out connection.

    ``rollback()`` is safe to call at any point, including after a
    successful ``commit()``, where it does nothing.
    """

    def __init__(self, conn: psycopg.AsyncConnection):
        self._conn = conn
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    async def begin(self):
        try:
            await self._conn.set_autocommit(False)
        except psycopg.Error as e:
            self._finished = True
            raise TransactionError(f"could not start transaction: {e}") from e

    async def execute(self, query: Query, params: tuple = None):
        logger.debug(f"{_render(query)} params={params}")
        await self._conn.execute(query, params)

    async def query_row(self, query: Query, params: tuple = None) -> Optional[dict]:
        logger.debug(f"{_render(query)} params={params}")
        cur = await self._conn.execute(query, params)
        return await cur.fetchone()

    async def query_value(self, query: Query, params: tuple = None) -> Any:
        row = await self.query_row(query, params)
        if row is None:
            return None
        return next(iter(row.values()))

    async def commit(self):
        try:
            await self._conn.commit()
        except psycopg.Error as e:
            raise CommitError(f"could not commit transaction: {e}") from e
        self._finished = True

    async def rollback(self):
        if self._finished:
            return
        self._finished = True
        try:
            await self._conn.rollback()
        except psycopg.Error as e:
            logger.warning(f"Rollback failed (connection will be discarded): {e}")


class RedshiftConnection:
    """A shared handle to one Redshift database.

    Callers never close it: the registry owns it for the life of the process.
    """

    def __init__(self, pool: AsyncNullConnectionPool, spec: ConnectionSpec):
        self._pool = pool
        self.spec = spec

    @classmethod
    async def open(cls, spec: ConnectionSpec) -> "RedshiftConnection":
        pool = AsyncNullConnectionPool(
            conninfo=spec.conninfo,
            max_size=spec.max_connections if spec.max_connections > 0 else None,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            timeout=spec.connect_timeout,
            name="redshift-access",
        )
        await pool.open()
        return cls(pool, spec)

    async def close(self):
        await self._pool.close()

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Check out an autocommit connection for a single statement."""
        async with self._pool.connection() as conn:
            yield conn

    async def ping(self) -> bool:
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except psycopg.Error as e:
            logger.debug(f"Liveness probe failed: {e}")
            return False

    async def execute(self, query: Query, params: tuple = None):
        logger.debug(f"{_render(query)} params={params}")
        async with self.connection() as conn:
            await conn.execute(query, params)

    async def query_row(self, query: Query, params: tuple = None) -> Optional[dict]:
        """Return the first row, or None when the query matched nothing."""
        logger.debug(f"{_render(query)} params={params}")
        async with self.connection() as conn:
            cur = await conn.execute(query, params)
            return await cur.fetchone()

    async def query_value(self, query: Query, params: tuple = None) -> Any:
        row = await self.query_row(query, params)
        if row is None:
            return None
        return next(iter(row.values()))

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Transaction, None]:
        """Run a block inside a transaction that the block must commit.

        A rollback is always attempted on exit, so an early return or an
        exception anywhere in the block leaves nothing open. After
        ``tx.commit()`` that rollback is a no-op.
        """
        try:
            conn = await self._pool.getconn()
        except psycopg.Error as e:
            raise TransactionError(f"could not start transaction: {e}") from e

        tx = Transaction(conn)
        try:
            await tx.begin()
            yield tx
        finally:
            await tx.rollback()
            await _restore_autocommit(conn)
            await self._pool.putconn(conn)


class ConnectionRegistry:
    """Process-wide map of connection string to live handle.

    Created when the server is configured and torn down with ``close_all()``
    at shutdown. The lock only guards the map and handle creation.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._connections: dict[str, RedshiftConnection] = {}

    def __len__(self):
        return len(self._connections)

    async def acquire(
        self, spec: ConnectionSpec, identity: LazyFact[str]
    ) -> RedshiftConnection:
        """Return a live handle for ``spec``, opening a new one if needed.

        A new handle must resolve ``identity`` before it is stored; a reused
        handle does not touch it.
        """
        async with self._lock:
            conn = self._connections.get(spec.conninfo)
            if conn is not None:
                if await conn.ping():
                    return conn
                logger.warning("Cached Redshift connection is no longer alive, reconnecting")
                del self._connections[spec.conninfo]
                await _close_quietly(conn)

            try:
                conn = await RedshiftConnection.open(spec)
            except psycopg.Error as e:
                raise ConnectionOpenError(
                    f"error creating Redshift driver instance (driver: {spec.driver!r}): {e}"
                ) from e

            try:
                await identity.get(conn)
            except FactLookupError as e:
                await _close_quietly(conn)
                raise ConnectionOpenError(
                    f"error retrieving username from Redshift database "
                    f"(driver: {spec.driver!r}): {e}"
                ) from e

            self._connections[spec.conninfo] = conn
            logger.info(f"Opened Redshift connection pool (max_connections={spec.max_connections})")
            return conn

    async def close_all(self):
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for conn in connections:
            await _close_quietly(conn)
        if connections:
            logger.info(f"Closed {len(connections)} Redshift connection pool(s)")


async def _restore_autocommit(conn: psycopg.AsyncConnection):
    if conn.closed:
        return
    try:
        await conn.set_autocommit(True)
    except psycopg.Error as e:
        logger.warning(f"Could not reset connection after transaction: {e}")


async def _close_quietly(conn: RedshiftConnection):
    try:
        await conn.close()
    except psycopg.Error as e:
        logger.warning(f"Error closing Redshift connection pool: {e}")


def _render(query: Query) -> str:
    if isinstance(query, str):
        return query
    return query.as_string()
