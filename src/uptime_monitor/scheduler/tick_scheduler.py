"""
Tick-based implementation of the WorkScheduler interface.

The scheduler owns the registry of monitors this instance considers. On every
tick it looks for registered monitors whose local due time has passed and
claims their check slot in the coordination store. Only claimed monitors are
yielded to the worker, so checks of the same monitor are serialized across
every scheduler instance of the fleet.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, NamedTuple, Optional

from uptime_monitor.contracts import MonitorStore, WorkScheduler
from uptime_monitor.domain import Monitor
from uptime_monitor.scheduler.slot_claim import ClaimResult, SlotClaimer

# Module logger
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _ScheduleEntry(NamedTuple):
    monitor: Monitor
    next_due: datetime


class SchedulerStatus(NamedTuple):
    """Snapshot of the registry of one scheduler instance."""

    active_schedulers: int
    scheduler_ids: List[str]


class TickScheduler(WorkScheduler):
    """
    Yields batches of monitors whose check slot this instance has claimed.

    Registration and unregistration are explicit, synchronous operations on the
    registry: once unregister() returns, no new check of that monitor starts
    from this instance. The registry is periodically re-synchronized with the
    monitor store so monitors created, paused or deleted through another
    instance are picked up.
    """

    def __init__(
        self,
        worker_id: str,
        claimer: SlotClaimer,
        monitor_store: MonitorStore,
        tick_seconds: float = 60,
        sync_every: int = 5,
        recover_time: int = 10,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initializes a new TickScheduler instance.

        Args:
            worker_id: A unique identifier for this worker instance.
            claimer: Claims check slots in the shared coordination store.
            monitor_store: Source of monitor configuration.
            tick_seconds: Time between two ticks.
            sync_every: Number of ticks between two registry synchronizations;
                0 disables periodic synchronization.
            recover_time: Time in seconds to wait after an error before retrying.
            clock: Returns the current UTC time.

        Raises:
            ValueError: If any of the parameters have invalid values.
        """
        if not isinstance(worker_id, str) or not worker_id:
            raise ValueError("worker_id must be provided and must be not blank.")

        if not isinstance(tick_seconds, (int, float)) or tick_seconds <= 0:
            raise ValueError("tick_seconds must be a positive number.")

        if not isinstance(sync_every, int) or sync_every < 0:
            raise ValueError("sync_every must be a non-negative integer.")

        if not isinstance(recover_time, int) or recover_time < 1:
            raise ValueError("recover_time must be a positive integer.")

        self._worker_id: str = worker_id
        self._claimer: SlotClaimer = claimer
        self._monitor_store: MonitorStore = monitor_store
        self._tick_seconds: float = tick_seconds
        self._sync_every: int = sync_every
        self._recover_time: int = recover_time
        self._clock: Callable[[], datetime] = clock
        self._registry: Dict[str, _ScheduleEntry] = {}
        self._ticks: int = 0
        self._is_running: bool = False
        self._stopped = asyncio.Event()

    def register(self, monitor: Monitor) -> None:
        """
        Starts (or updates) the periodic consideration of a monitor.

        Re-registering replaces the configuration without creating a second
        entry. Registering an inactive monitor unregisters it.
        """
        if not monitor.active:
            self.unregister(monitor.id)
            return

        now = self._clock()
        existing = self._registry.get(monitor.id)
        if existing is None:
            next_due = now
            logger.info(
                f"Scheduled monitor: {monitor.name} ({monitor.id}) with interval: {monitor.interval} minutes"
            )
        else:
            # A shorter interval must take effect without waiting for the old one.
            next_due = min(existing.next_due, now + monitor.check_interval)
        self._registry[monitor.id] = _ScheduleEntry(monitor=monitor, next_due=next_due)

    def unregister(self, monitor_id: str) -> bool:
        """
        Stops all further consideration of a monitor.

        Checks already in flight are allowed to finish.

        Returns:
            bool: True if the monitor was registered.
        """
        if self._registry.pop(monitor_id, None) is None:
            return False
        logger.info(f"Unscheduled monitor: {monitor_id}")
        return True

    def is_registered(self, monitor_id: str) -> bool:
        return monitor_id in self._registry

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            active_schedulers=len(self._registry), scheduler_ids=list(self._registry)
        )

    async def sync(self) -> None:
        """
        Aligns the registry with the active monitors of the monitor store.
        """
        active = await self._monitor_store.list_active()
        active_ids = set()
        for monitor in active:
            active_ids.add(monitor.id)
            self.register(monitor)

        for monitor_id in [m for m in self._registry if m not in active_ids]:
            self.unregister(monitor_id)

        logger.info(f"Registry synchronized: {len(self._registry)} active monitors.")

    async def start(self) -> None:
        """
        Loads every active monitor and prepares the scheduler to yield work.
        """
        logger.info(f"Starting scheduler (tick: {self._tick_seconds}s)...")
        self._stopped.clear()
        self._is_running = True
        await self.sync()

    async def stop(self) -> None:
        logger.info("Closing scheduler...")
        self._is_running = False
        self._stopped.set()

    async def poll(self) -> List[Monitor]:
        """
        Performs a single tick.

        Returns:
            List[Monitor]: Fresh snapshots of the monitors claimed by this tick.
        """
        self._ticks += 1
        if self._sync_every and self._ticks % self._sync_every == 0:
            try:
                await self.sync()
            except Exception as e:
                logger.error(f"Registry synchronization failed: {e}")

        now = self._clock()
        claimed: List[Monitor] = []

        for entry in list(self._registry.values()):
            if entry.next_due > now:
                continue

            try:
                monitor = await self._claim(entry.monitor, now)
            except Exception as e:
                logger.error(f"Could not claim monitor {entry.monitor.id}: {e}")
                continue

            if monitor is not None:
                claimed.append(monitor)

        return claimed

    async def _claim(self, monitor: Monitor, now: datetime) -> Optional[Monitor]:
        result = await self._claimer.claim(monitor)

        if result == ClaimResult.LOCKED:
            return None

        if result == ClaimResult.NOT_DUE:
            last_run = await self._claimer.last_run(monitor.id)
            self._reschedule(monitor.id, (last_run or now) + monitor.check_interval)
            return None

        self._reschedule(monitor.id, now + monitor.check_interval)

        fresh = await self._monitor_store.get(monitor.id)
        if fresh is None or not fresh.active:
            logger.info(f"Monitor {monitor.id} was removed or paused elsewhere.")
            self.unregister(monitor.id)
            return None

        # Unregistered while the claim was in progress.
        if not self.is_registered(monitor.id):
            return None

        self._registry[monitor.id] = self._registry[monitor.id]._replace(monitor=fresh)
        return fresh

    def _reschedule(self, monitor_id: str, next_due: datetime) -> None:
        entry = self._registry.get(monitor_id)
        if entry is not None:
            self._registry[monitor_id] = entry._replace(next_due=next_due)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def __anext__(self) -> List[Monitor]:
        """
        Waits for and returns the next batch of claimed monitors.

        Raises:
            StopAsyncIteration: When the scheduler has been stopped.
        """
        while self._is_running:
            try:
                batch = await self.poll()
                if batch:
                    return batch

                logger.debug(f"No monitors due. Sleeping for {self._tick_seconds:.2f} seconds.")
                await self._sleep(self._tick_seconds)

            except Exception as e:
                # Log any errors and wait before retrying
                logger.error(f"Error in scheduler loop: {e}")
                await self._sleep(self._recover_time)

        # If we're no longer running, signal the end of iteration
        raise StopAsyncIteration
