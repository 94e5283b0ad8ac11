"""
Cross-instance claiming of check slots.

Checks of the same monitor must never overlap, no matter how many scheduler
instances run. Before checking, an instance takes a short-lived lock on the
monitor in the coordination store, re-reads the time of the last run, and, if
the monitor is due, writes the new last-run time before releasing the lock.
The lock only protects the claim; the check itself runs outside of it.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from uptime_monitor.contracts import CoordinationStore
from uptime_monitor.domain import Monitor

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL_SECONDS = 10
LOCK_KEY_PREFIX = "lock:"
LAST_RUN_KEY_PREFIX = "lastRun:"


class ClaimResult(str, Enum):
    """Outcome of a slot claim. LOCKED and NOT_DUE are normal, silent skips."""

    CLAIMED = "claimed"
    LOCKED = "locked"
    NOT_DUE = "not_due"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


class SlotClaimer:
    """
    Claims check slots in a CoordinationStore.

    The last-run timestamp is stored as epoch milliseconds so every instance,
    whatever its language or time zone, reads the same value.
    """

    def __init__(
        self,
        store: CoordinationStore,
        owner_id: str,
        lock_ttl: int = DEFAULT_LOCK_TTL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            store: The coordination store shared by the fleet.
            owner_id: Identifier of this instance, stored as the lock value.
            lock_ttl: Lifetime of the lock in seconds; bounds how long a crashed
                instance can block a monitor.
            clock: Returns the current UTC time.

        Raises:
            ValueError: If lock_ttl is not a positive integer.
        """
        if not isinstance(lock_ttl, int) or lock_ttl < 1:
            raise ValueError("lock_ttl must be a positive integer.")

        self._store: CoordinationStore = store
        self._owner_id: str = owner_id
        self._lock_ttl: int = lock_ttl
        self._clock: Callable[[], datetime] = clock

    async def last_run(self, monitor_id: str) -> Optional[datetime]:
        raw = await self._store.get(f"{LAST_RUN_KEY_PREFIX}{monitor_id}")
        if raw is None:
            return None
        return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)

    async def claim(self, monitor: Monitor, force: bool = False) -> ClaimResult:
        """
        Tries to claim the current check slot of a monitor.

        Args:
            monitor: The monitor to claim.
            force: Skip the interval gate (manual checks). The lock is still
                required, so a forced claim never races a scheduled one.

        Returns:
            ClaimResult: CLAIMED if this instance must run the check now.
        """
        lock_key = f"{LOCK_KEY_PREFIX}{monitor.id}"
        last_run_key = f"{LAST_RUN_KEY_PREFIX}{monitor.id}"

        if not await self._store.set_if_absent(lock_key, self._owner_id, self._lock_ttl):
            logger.debug(f"Monitor {monitor.id} is locked by another instance, skipping.")
            return ClaimResult.LOCKED

        try:
            now = self._clock()
            if not force:
                raw_last_run = await self._store.get(last_run_key)
                if raw_last_run is not None:
                    elapsed_ms = _to_millis(now) - int(raw_last_run)
                    if elapsed_ms < monitor.interval * 60 * 1000:
                        logger.debug(f"Monitor {monitor.id} was checked {elapsed_ms}ms ago, skipping.")
                        return ClaimResult.NOT_DUE

            # The new last run must be visible before the lock is released.
            await self._store.set(last_run_key, str(_to_millis(now)))
            return ClaimResult.CLAIMED
        finally:
            await self._store.delete(lock_key)
