"""
In-memory implementation of the CoordinationStore interface.

Suitable for a single scheduler process and for tests; several schedulers
sharing one instance of this store within a process coordinate exactly like
instances sharing a Redis server.
"""

import asyncio
import time
from typing import Callable, Dict, Optional, Tuple

from uptime_monitor.contracts import CoordinationStore


class InMemoryCoordinationStore(CoordinationStore):
    """
    A dictionary-backed coordination store with per-key expiry.

    Expired keys are evicted lazily when they are read.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """
        Args:
            clock: Returns the current time in seconds; used for key expiry.
        """
        self._clock: Callable[[], float] = clock
        self._data: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = asyncio.Lock()

    def _live_value(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        async with self._lock:
            if self._live_value(key) is not None:
                return False
            self._data[key] = (value, self._clock() + ttl)
            return True

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            return self._live_value(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = (value, None)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def close(self) -> None:
        async with self._lock:
            self._data.clear()
