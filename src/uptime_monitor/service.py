"""
Public facade of the monitoring engine.

The API layer talks to the engine through MonitoringService only: it schedules
and unschedules monitors, triggers manual checks and reads uptime figures.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Union

from .contracts import EventStore
from .domain import CheckResult, Monitor, UptimeDay
from .errors import CheckInProgressError
from .scheduler.slot_claim import ClaimResult, SlotClaimer
from .scheduler.tick_scheduler import SchedulerStatus, TickScheduler
from .uptime import get_uptime, get_uptime_history
from .validation import validate_monitor
from .worker import MonitoringWorker

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_UPTIME_WINDOW_DAYS = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitoringService:
    """
    Entry point of the engine for callers outside of it.

    Scheduled monitors must exist in the monitor store the scheduler reads
    from: before each check the scheduler refreshes the monitor from it.
    """

    def __init__(
        self,
        scheduler: TickScheduler,
        claimer: SlotClaimer,
        worker: MonitoringWorker,
        events: EventStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._scheduler: TickScheduler = scheduler
        self._claimer: SlotClaimer = claimer
        self._worker: MonitoringWorker = worker
        self._events: EventStore = events
        self._clock: Callable[[], datetime] = clock

    def schedule_monitor(self, monitor: Union[Monitor, Mapping[str, Any]]) -> Monitor:
        """
        Starts the periodic checks of a monitor, or updates its schedule.

        Args:
            monitor: A Monitor, or a raw monitor document which is validated first.

        Returns:
            Monitor: The scheduled monitor.

        Raises:
            ConfigValidationError: If the monitor document is invalid; nothing
                is scheduled in that case.
        """
        if not isinstance(monitor, Monitor):
            monitor = validate_monitor(monitor)
        self._scheduler.register(monitor)
        return monitor

    def unschedule_monitor(self, monitor_id: str) -> bool:
        """
        Stops the periodic checks of a monitor.

        No check of the monitor starts on this instance once this returns;
        checks already running complete and are recorded.
        """
        return self._scheduler.unregister(monitor_id)

    async def run_check_now(self, monitor: Monitor) -> CheckResult:
        """
        Checks a monitor immediately, outside of its schedule.

        The check skips the interval gate but still takes the monitor's lock,
        and it goes through the same recording and transition pipeline as a
        scheduled check. The lock is only held while claiming, so a check
        already running on this instance is detected separately and refused.

        Raises:
            CheckInProgressError: If another check of the monitor holds its lock
                or is running on this instance.
        """
        if self._worker.is_checking(monitor.id):
            raise CheckInProgressError(f"A check of monitor {monitor.id} is already in progress")

        claim = await self._claimer.claim(monitor, force=True)
        # A scheduled check may have started while claiming.
        if claim == ClaimResult.LOCKED or self._worker.is_checking(monitor.id):
            raise CheckInProgressError(f"A check of monitor {monitor.id} is already in progress")

        logger.info(f"Running manual check of monitor {monitor.id}")
        outcome = await self._worker.check_and_process(monitor)
        return outcome.result

    async def get_uptime(self, monitor_id: str, window_days: int = DEFAULT_UPTIME_WINDOW_DAYS) -> float:
        return await get_uptime(self._events, monitor_id, window_days, self._clock())

    async def get_uptime_history(
        self, monitor_id: str, window_days: int = DEFAULT_UPTIME_WINDOW_DAYS
    ) -> List[UptimeDay]:
        return await get_uptime_history(self._events, monitor_id, window_days, self._clock())

    def scheduler_status(self) -> SchedulerStatus:
        return self._scheduler.status()
