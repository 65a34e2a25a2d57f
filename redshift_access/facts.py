"""Session facts that need a database round trip, computed once per client.

Two facts are cached: whether the target behaves like Redshift Serverless,
and the name of the user the server connects as.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import psycopg

from redshift_access.utils.errors import (
    FactLookupError,
    PG_INSUFFICIENT_PRIVILEGE,
    is_pq_error_with_code,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

SERVERLESS_PROBE = "SELECT 1 FROM SYS_SERVERLESS_USAGE"
PROVISIONED_PROBE = "SELECT 1 FROM SVL_QUERY_SUMMARY"
CURRENT_USER_QUERY = "SELECT current_user"


class LazyFact(Generic[T]):
    """Compute-once cell with double-checked locking.

    The unlocked check serves every call after the first; the locked
    re-check stops two first callers from both computing.

    With ``memoize_failure`` the cell is marked attempted before
    ``compute`` runs, so a failing first call raises once and every later
    call returns ``default``. Without it, only a successful result is
    stored. Callers that arrive while ``compute`` is running wait on the
    lock and see its result.
    """

    def __init__(
        self,
        name: str,
        compute: Callable[[Any], Awaitable[T]],
        default: Optional[T] = None,
        memoize_failure: bool = False,
    ):
        self.name = name
        self._compute = compute
        self._default = default
        self._memoize_failure = memoize_failure
        self._lock = asyncio.Lock()
        self._computed = False
        # read only under the lock
        self._attempted = False
        self._value: Optional[T] = default

    @property
    def computed(self) -> bool:
        return self._computed

    async def get(self, conn) -> T:
        if self._computed:
            return self._value
        async with self._lock:
            if self._computed or self._attempted:
                return self._value
            if self._memoize_failure:
                self._attempted = True
            value = await self._compute(conn)
            self._value = value
            self._computed = True
            logger.debug(f"Resolved session fact {self.name}={value!r}")
            return value


async def detect_serverless(conn) -> bool:
    """Probe system views to tell serverless from provisioned clusters.

    SYS_SERVERLESS_USAGE is readable only on serverless. Lacking privilege on
    it means provisioned, unless SVL_QUERY_SUMMARY is unreadable as well:
    multi-AZ provisioned clusters refuse it and behave like serverless.
    """
    try:
        await conn.execute(SERVERLESS_PROBE)
        return True
    except psycopg.Error as e:
        if not is_pq_error_with_code(e, PG_INSUFFICIENT_PRIVILEGE):
            raise FactLookupError(f"error checking for Redshift Serverless: {e}") from e

    try:
        await conn.execute(PROVISIONED_PROBE)
    except psycopg.Error as e:
        logger.info(f"SVL_QUERY_SUMMARY not readable, treating cluster as serverless-like: {e}")
        return True
    return False


async def fetch_current_user(conn) -> str:
    try:
        username = await conn.query_value(CURRENT_USER_QUERY)
    except psycopg.Error as e:
        raise FactLookupError(f"error retrieving current user: {e}") from e
    if not username:
        raise FactLookupError("error retrieving current user: query returned no user")
    return username


def serverless_fact() -> LazyFact[bool]:
    return LazyFact(
        "is_serverless", detect_serverless, default=False, memoize_failure=True
    )


def username_fact() -> LazyFact[str]:
    return LazyFact("current_user", fetch_current_user)
