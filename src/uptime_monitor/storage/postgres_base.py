"""
Shared helpers of the PostgreSQL stores.

Queries run on connections acquired from an asyncpg pool with a bounded wait;
database errors surface as PersistenceError.
"""

import asyncio
import logging
from typing import Any, List, Optional

from asyncpg import Pool, Record, exceptions

from uptime_monitor.errors import PersistenceError

# Module logger
logger = logging.getLogger(__name__)

# Seconds to wait for a free connection of the pool.
ACQUIRE_TIMEOUT = 10.0


class PostgresStore:
    """
    Base class of the asyncpg-backed stores.

    Wraps driver failures (server errors, broken connections, pool timeouts)
    into PersistenceError so callers deal with a single error type.
    """

    def __init__(self, pool: Pool) -> None:
        self._pool: Pool = pool

    async def _fetch(self, query: str, *args: Any) -> List[Record]:
        try:
            async with self._pool.acquire(timeout=ACQUIRE_TIMEOUT) as conn:
                return await conn.fetch(query, *args)
        except (exceptions.PostgresError, exceptions.InterfaceError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Database query failed: {e}") from e

    async def _fetchrow(self, query: str, *args: Any) -> Optional[Record]:
        try:
            async with self._pool.acquire(timeout=ACQUIRE_TIMEOUT) as conn:
                return await conn.fetchrow(query, *args)
        except (exceptions.PostgresError, exceptions.InterfaceError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Database query failed: {e}") from e

    async def _fetchval(self, query: str, *args: Any) -> Any:
        try:
            async with self._pool.acquire(timeout=ACQUIRE_TIMEOUT) as conn:
                return await conn.fetchval(query, *args)
        except (exceptions.PostgresError, exceptions.InterfaceError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Database query failed: {e}") from e

    async def _execute(self, query: str, *args: Any) -> str:
        try:
            async with self._pool.acquire(timeout=ACQUIRE_TIMEOUT) as conn:
                return await conn.execute(query, *args)
        except (exceptions.PostgresError, exceptions.InterfaceError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Database statement failed: {e}") from e


def affected_rows(status: str) -> int:
    """Parses the row count of a command status such as 'UPDATE 3' or 'DELETE 0'."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0
