"""
Redis-based implementation of the CoordinationStore interface.

Every scheduler instance of the fleet points at the same Redis server; the
atomic SET NX EX command provides the cross-instance lock.
"""

import logging
from typing import Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from uptime_monitor.contracts import CoordinationStore
from uptime_monitor.errors import PersistenceError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "monitor:scheduler:"


class RedisCoordinationStore(CoordinationStore):
    """
    Coordination store backed by a redis.asyncio client.

    All keys are namespaced with a prefix so the store can share a Redis
    database with other applications. Redis failures are raised as
    PersistenceError.
    """

    def __init__(self, client: aioredis.Redis, key_prefix: str = DEFAULT_KEY_PREFIX) -> None:
        """
        Args:
            client: A redis.asyncio client created with decode_responses=True.
            key_prefix: Prefix prepended to every key.
        """
        self._client: aioredis.Redis = client
        self._key_prefix: str = key_prefix

    def _key(self, key: str) -> str:
        return f"{self._key_prefix}{key}"

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        try:
            acquired = await self._client.set(self._key(key), value, ex=ttl, nx=True)
        except RedisError as e:
            raise PersistenceError(f"Redis SET NX failed for {key}: {e}") from e
        return bool(acquired)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(self._key(key))
        except RedisError as e:
            raise PersistenceError(f"Redis GET failed for {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(self._key(key), value)
        except RedisError as e:
            raise PersistenceError(f"Redis SET failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(self._key(key))
        except RedisError as e:
            raise PersistenceError(f"Redis DEL failed for {key}: {e}") from e

    async def close(self) -> None:
        logger.info("Closing Redis coordination client...")
        await self._client.aclose()
