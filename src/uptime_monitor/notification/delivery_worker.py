"""
Background task running notification delivery passes and queue cleanup.
"""

import asyncio
import logging
from asyncio import Task
from typing import Callable, Optional

from uptime_monitor.notification.dispatcher import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETENTION_DAYS,
    DeliveryReport,
    NotificationDispatcher,
)

# Module logger
logger = logging.getLogger(__name__)


class DeliveryWorker:
    """
    Background task draining the notification queue.

    Runs a delivery pass every `delivery_interval` seconds and removes old
    processed items every `cleanup_interval` seconds. Delivery runs apart from
    the check executors, so slow channels never delay checks.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        delivery_interval: int = 60,
        cleanup_interval: int = 3600,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        """
        Args:
            dispatcher: Performs the delivery passes and the cleanup.
            delivery_interval: Seconds between two delivery passes.
            cleanup_interval: Seconds between two cleanups.
            retention_days: Age after which processed items are removed.
            batch_size: Maximum number of items per delivery pass.
            clock: Monotonic clock in seconds; defaults to the event loop time.

        Raises:
            ValueError: If any of the intervals is not positive.
        """
        if delivery_interval <= 0 or cleanup_interval <= 0:
            raise ValueError("delivery_interval and cleanup_interval must be positive.")

        self._dispatcher: NotificationDispatcher = dispatcher
        self._delivery_interval: int = delivery_interval
        self._cleanup_interval: int = cleanup_interval
        self._retention_days: int = retention_days
        self._batch_size: int = batch_size
        self._clock: Optional[Callable[[], float]] = clock
        self._last_cleanup: Optional[float] = None
        self._task: Optional[Task] = None

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def run_once(self) -> DeliveryReport:
        """
        Performs one delivery pass, followed by a cleanup when one is due.
        """
        report = await self._dispatcher.process_queue(self._batch_size)

        now = self._now()
        if self._last_cleanup is None or now - self._last_cleanup >= self._cleanup_interval:
            await self._dispatcher.cleanup(self._retention_days)
            self._last_cleanup = now

        return report

    async def _run(self) -> None:
        while True:
            try:
                try:
                    await self.run_once()
                except Exception as e:
                    logger.error(f"Error processing notification queue: {e}")
                await asyncio.sleep(self._delivery_interval)
            except asyncio.CancelledError:
                logger.info("Delivery worker stopping.")
                break

    def start(self) -> None:
        logger.info(f"Starting delivery worker (interval: {self._delivery_interval}s)...")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Delivery worker stopped.")
