"""Shared test fixtures for Redshift Access MCP tests."""
from contextlib import asynccontextmanager
from typing import Any, Optional

import pytest
from unittest.mock import AsyncMock, MagicMock


def render(query) -> str:
    """Render a str or psycopg Composable as single-spaced SQL text."""
    text = query if isinstance(query, str) else query.as_string()
    return " ".join(text.split())


class FakeTransaction:
    def __init__(self, db: "FakeRedshift"):
        self._db = db
        self.committed = False
        self.rolled_back = False

    async def execute(self, query, params: tuple = None):
        self._db._run(query, params)

    async def query_row(self, query, params: tuple = None) -> Optional[dict]:
        return self._db._run(query, params)

    async def query_value(self, query, params: tuple = None) -> Any:
        row = self._db._run(query, params)
        return None if row is None else next(iter(row.values()))

    async def commit(self):
        self.committed = True

    async def rollback(self):
        if not self.committed:
            self.rolled_back = True


class FakeRedshift:
    """In-memory stand-in for RedshiftConnection.

    ``rows`` maps a SQL substring to the row a query containing it returns;
    ``failures`` maps a statement prefix to the exception it raises.
    """

    def __init__(self):
        self.statements: list[tuple[str, Optional[tuple]]] = []
        self.rows: dict[str, Optional[dict]] = {}
        self.failures: dict[str, Exception] = {}
        self.transactions: list[FakeTransaction] = []

    @property
    def sql(self) -> list[str]:
        return [s for s, _ in self.statements]

    def _run(self, query, params):
        text = render(query)
        self.statements.append((text, params))
        for prefix, exc in self.failures.items():
            if text.startswith(prefix):
                raise exc
        for fragment, row in self.rows.items():
            if fragment in text:
                return row
        return None

    async def execute(self, query, params: tuple = None):
        self._run(query, params)

    async def query_row(self, query, params: tuple = None) -> Optional[dict]:
        return self._run(query, params)

    async def query_value(self, query, params: tuple = None) -> Any:
        row = self._run(query, params)
        return None if row is None else next(iter(row.values()))

    @asynccontextmanager
    async def transaction(self):
        tx = FakeTransaction(self)
        self.transactions.append(tx)
        try:
            yield tx
        finally:
            await tx.rollback()


@pytest.fixture
def fake_db():
    return FakeRedshift()


@pytest.fixture
def mock_pg_conn():
    """Mock psycopg AsyncConnection for transaction tests."""
    conn = MagicMock()
    conn.closed = False
    conn.set_autocommit = AsyncMock()
    conn.execute = AsyncMock()
    conn.commit = AsyncMock()
    conn.rollback = AsyncMock()
    return conn


@pytest.fixture
def mock_pg_pool(mock_pg_conn):
    """Mock psycopg_pool AsyncNullConnectionPool handing out mock_pg_conn."""
    pool = MagicMock()
    pool.getconn = AsyncMock(return_value=mock_pg_conn)
    pool.putconn = AsyncMock()
    pool.close = AsyncMock()

    @asynccontextmanager
    async def fake_connection():
        yield mock_pg_conn

    pool.connection = fake_connection
    return pool
