"""
Result processor turning check outcomes into events and status changes.

Each outcome is appended as an event, the monitor's live status is updated
and a status transition, when detected, is handed to the notification
dispatcher. Store writes are retried a few times before being given up.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Optional

from uptime_monitor.contracts import EventStore, MonitorStore, ResultProcessor
from uptime_monitor.domain import CheckOutcome, Event, Monitor
from uptime_monitor.errors import PersistenceError
from uptime_monitor.notification.dispatcher import NotificationDispatcher
from uptime_monitor.transitions import detect_transition

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_PERSISTENCE_ATTEMPTS = 3


def _new_id() -> str:
    return str(uuid.uuid4())


class StatusPipeline(ResultProcessor):
    """
    Records check outcomes and turns status changes into notification triggers.

    For every outcome the pipeline appends an Event, updates the monitor's
    status fields and, when the status changed, enqueues a trigger on the
    dispatcher. Store failures are retried a bounded number of times; an
    outcome that still cannot be stored is logged and dropped so the
    scheduler never blocks on persistence.
    """

    def __init__(
        self,
        monitors: MonitorStore,
        events: EventStore,
        dispatcher: NotificationDispatcher,
        persistence_attempts: int = DEFAULT_PERSISTENCE_ATTEMPTS,
        retry_delay: float = 0.5,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        """
        Initializes the pipeline.

        Args:
            monitors: Store holding monitor configuration and status.
            events: Append-only event store.
            dispatcher: Receives the triggers of detected transitions.
            persistence_attempts: How many times a store write is attempted.
            retry_delay: Pause in seconds between two attempts.
            id_factory: Generates event identifiers.
        """
        if persistence_attempts < 1:
            raise ValueError("persistence_attempts must be a positive integer.")

        self._monitors: MonitorStore = monitors
        self._events: EventStore = events
        self._dispatcher: NotificationDispatcher = dispatcher
        self._persistence_attempts: int = persistence_attempts
        self._retry_delay: float = retry_delay
        self._id_factory: Callable[[], str] = id_factory

    def _to_event(self, outcome: CheckOutcome) -> Event:
        result = outcome.result
        return Event(
            id=self._id_factory(),
            monitor_id=outcome.monitor.id,
            status=result.status,
            response_time=max(0, int(result.response_time_ms)),
            message=result.message,
            created_at=outcome.checked_at,
            status_code=result.status_code,
            details=dict(result.details),
        )

    async def _persist(self, write: Callable[[], Awaitable[None]], description: str) -> bool:
        for attempt in range(1, self._persistence_attempts + 1):
            try:
                await write()
                return True
            except PersistenceError as e:
                if attempt == self._persistence_attempts:
                    logger.error(f"Could not store {description} after {attempt} attempts: {e}")
                    return False
                logger.warning(f"Storing {description} failed (attempt {attempt}): {e}")
                await asyncio.sleep(self._retry_delay)
        return False

    async def _current_monitor(self, snapshot: Monitor) -> Monitor:
        try:
            stored: Optional[Monitor] = await self._monitors.get(snapshot.id)
        except PersistenceError as e:
            logger.warning(f"Could not read monitor {snapshot.id}, using the checked snapshot: {e}")
            return snapshot
        return stored if stored is not None else snapshot

    async def process(self, outcome: CheckOutcome) -> None:
        """
        Appends the event, updates the monitor and detects the transition.
        """
        monitor = outcome.monitor
        event = self._to_event(outcome)

        if not await self._persist(lambda: self._events.append(event), f"event of monitor {monitor.id}"):
            return

        current = await self._current_monitor(monitor)
        previous_status = current.status

        updated = await self._persist(
            lambda: self._monitors.update(
                monitor.id,
                status=event.status,
                last_checked=outcome.checked_at,
                next_check_due=outcome.checked_at + monitor.check_interval,
                last_response_time=event.response_time,
            ),
            f"status of monitor {monitor.id}",
        )
        if not updated:
            return

        logger.debug(f"Monitor {monitor.id}: {previous_status.value} -> {event.status.value}")

        trigger = detect_transition(previous_status, current, event)
        if trigger is not None:
            logger.info(
                f"Monitor {monitor.id} changed from {previous_status.value} to {event.status.value}"
            )
            await self._dispatcher.enqueue(trigger)

    async def flush(self) -> None:
        # Outcomes are written as they arrive; nothing is buffered.
        pass
