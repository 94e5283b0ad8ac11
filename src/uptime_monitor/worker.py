"""
Core worker implementation for the uptime monitoring system.

This module provides the MonitoringWorker class, which orchestrates the entire
monitoring process by coordinating the scheduler, the checker registry, and the
result processor. It implements a producer-consumer pattern with a queue for
backpressure control.
"""

import asyncio
import logging
from asyncio import Queue, Task
from datetime import datetime, timezone
from typing import Callable, List, Set

from .checker.registry import CheckerRegistry
from .contracts import ResultProcessor, WorkScheduler
from .domain import CheckOutcome, CheckResult, Monitor, MonitorStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitoringWorker:
    """
    Coordinates the monitoring workflow using a producer-consumer pattern.

    This class manages a pool of executor tasks that consume monitors from a
    queue. The monitors are produced by a scheduler, checked through the
    checker registry and handed to a result processor. A slow or hanging
    check only occupies one executor, so other due monitors keep flowing.
    """

    def __init__(
        self,
        worker_id: str,
        scheduler: WorkScheduler,
        registry: CheckerRegistry,
        processor: ResultProcessor,
        num_workers: int,
        queue_size: int,
        queue_size_monitoring_interval: int = 20,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Initializes a new MonitoringWorker instance.

        Args:
            worker_id: A unique identifier for this worker instance.
            scheduler: Component that provides claimed monitors.
            registry: Dispatches each monitor to the checker of its type.
            processor: Component that processes the results of checks.
            num_workers: Number of concurrent executor tasks to create.
            queue_size: Maximum size of the work queue before backpressure is applied.
            clock: Returns the current UTC time; used to stamp outcomes.
        """
        self._worker_id: str = worker_id
        self._scheduler: WorkScheduler = scheduler
        self._registry: CheckerRegistry = registry
        self._processor: ResultProcessor = processor
        self._num_workers: int = num_workers
        self._clock: Callable[[], datetime] = clock
        self._logger: logging.Logger = logging.getLogger(__name__)
        self._queue_size = queue_size
        # The queue provides backpressure. The producer will pause if the queue is full.
        self._queue: Queue[Monitor] = Queue(maxsize=queue_size)
        self._queue_size_monitoring_interval: int = queue_size_monitoring_interval
        # Ids of the monitors whose check is running on this instance
        self._in_flight: Set[str] = set()
        self._worker_tasks: List[Task] = []
        self._monitor_task: Task = asyncio.create_task(self._monitor_queue())

    async def check_and_process(self, monitor: Monitor) -> CheckOutcome:
        """
        Runs one check of a monitor and processes its outcome.

        Scheduled and manual checks both go through this method.

        Args:
            monitor: The monitor to check.

        Returns:
            CheckOutcome: The outcome handed to the processor.
        """
        self._in_flight.add(monitor.id)
        try:
            try:
                result = await self._registry.execute(monitor)
            except Exception as e:
                # The registry already converts checker failures; this covers its own bugs.
                self._logger.exception(f"Check of monitor {monitor.id} failed unexpectedly: {e}")
                result = CheckResult(
                    status=MonitorStatus.DOWN,
                    response_time_ms=0,
                    message=f"Error during check: {e}",
                    details={"error": "CHECK_FAILED", "errorName": type(e).__name__, "errorMessage": str(e)},
                )

            outcome = CheckOutcome(monitor=monitor, result=result, checked_at=self._clock())
            await self._processor.process(outcome)
            return outcome
        finally:
            self._in_flight.discard(monitor.id)

    def is_checking(self, monitor_id: str) -> bool:
        """Tells whether a check of the monitor is running on this instance."""
        return monitor_id in self._in_flight

    async def _executor(self, worker_num: int) -> None:
        """
        Consumer task that processes monitors from the queue.

        Args:
            worker_num: The identifier number of this executor task.
        """
        worker_logger: logging.Logger = logging.getLogger(f"executor-{worker_num}")

        while True:
            try:
                # 1. Wait for an item from the queue
                monitor: Monitor = await self._queue.get()

                # 2. Process the item, unless it was unregistered while queued
                if not self._scheduler.is_registered(monitor.id):
                    worker_logger.info(f"Skipping monitor {monitor.id}: unregistered while queued.")
                else:
                    try:
                        await self.check_and_process(monitor)
                    except Exception as e:
                        worker_logger.exception(
                            f"Pipeline failed for monitor {monitor.id} with error: {e}"
                        )

                # 3. Notify the queue that the item is done
                self._queue.task_done()

            except asyncio.CancelledError:
                worker_logger.info("Stopping.")
                break

    async def _monitor_queue(self) -> None:
        """
        A task that monitors the queue size and logs it periodically.
        """
        monitor_logger: logging.Logger = logging.getLogger(f"{self._worker_id}-QueueMonitor")

        while True:
            try:
                await asyncio.sleep(self._queue_size_monitoring_interval)
                qsize = self._queue.qsize()
                if self._queue.maxsize > 0 and qsize > self._queue.maxsize * 0.9:
                    monitor_logger.warning(
                        f"Queue size ({qsize}) is above 90% of capacity ({self._queue.maxsize})"
                    )
                else:
                    monitor_logger.debug(f"Current queue size: {qsize}")
            except asyncio.CancelledError:
                monitor_logger.info("Shutting down.")
                break

    async def start(self) -> None:
        """
        Starts the producer and all the executor (consumer) tasks.

        Raises:
            Exception: If the producer loop fails for any reason.
        """
        self._logger.info(f"Starting monitoring worker with {self._num_workers} workers.")

        # 1. Start all the consumer workers in the background
        self._worker_tasks = [
            asyncio.create_task(self._executor(i + 1)) for i in range(self._num_workers)
        ]

        # 2. Start the producer loop
        try:
            await self._scheduler.start()

            async for batch in self._scheduler:
                if not batch:
                    continue

                self._logger.debug(f"Producer adding {len(batch)} monitors to the queue.")
                for monitor in batch:
                    await self._queue.put(monitor)

        except Exception as e:
            self._logger.error(f"Producer loop failed: {e}")
            raise

    async def stop(self) -> None:
        """
        Gracefully stops all executor tasks.

        The scheduler is stopped first so no new work is added, then queued
        checks are allowed to complete before the background tasks are cancelled.
        """
        self._logger.info("Initiating graceful shutdown...")

        self._logger.info("Stopping scheduler...")
        await self._scheduler.stop()

        self._logger.info(f"Waiting for {self._queue.qsize()} pending checks to complete...")
        await self._queue.join()
        self._logger.info("All pending checks completed")

        all_background_tasks = self._worker_tasks + [self._monitor_task]
        self._logger.info(f"Cancelling {len(all_background_tasks)} background tasks...")

        for task in all_background_tasks:
            task.cancel()

        await asyncio.gather(*all_background_tasks, return_exceptions=True)

        self._logger.info("Flushing results processor...")
        await self._processor.flush()

        self._logger.info("Worker shutdown complete")
