"""
Core interfaces for the uptime monitoring system.

This module defines the abstract base classes that form the foundation of the
monitoring system's architecture. Components depend on these contracts only,
so every collaborator (storage technology, coordination backend, notification
channel) can be swapped or replaced by an in-memory fake in tests.
"""

import abc
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from .domain import (
    Channel,
    CheckOutcome,
    CheckResult,
    Event,
    Monitor,
    MonitorStatus,
    NotificationTrigger,
    QueueItem,
)


class WorkScheduler(abc.ABC):
    """
    Abstract interface for a work scheduler.

    Its responsibility is to provide an asynchronous stream of batches of
    monitors whose check slot has been claimed by this instance.
    """

    @abc.abstractmethod
    async def start(self) -> None:
        """
        Prepares the scheduler to start yielding work.

        This method should be called before using the scheduler in an async for loop.
        """
        pass

    @abc.abstractmethod
    def is_registered(self, monitor_id: str) -> bool:
        """
        Tells whether the monitor is still scheduled on this instance.

        Monitors unregistered after being yielded must not start a new check.
        """
        pass

    @abc.abstractmethod
    async def stop(self) -> None:
        """
        Gracefully stops the scheduler.

        After this call the iteration ends with StopAsyncIteration.
        """
        pass

    def __aiter__(self) -> AsyncIterator[List[Monitor]]:
        """
        Allows the scheduler to be used in an 'async for' loop.

        Returns:
            AsyncIterator[List[Monitor]]: The scheduler instance itself.
        """
        return self

    @abc.abstractmethod
    async def __anext__(self) -> List[Monitor]:
        """
        Waits for and returns the next batch of claimed monitors.

        Raises:
            StopAsyncIteration: When the scheduler has been stopped.
        """
        raise StopAsyncIteration


class Checker(abc.ABC):
    """
    Abstract interface for a protocol-specific probe.

    A checker performs the network I/O for one monitor and returns a structured
    result. Every network call must respect the supplied deadline.
    """

    @abc.abstractmethod
    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        """
        Probes the monitor's target.

        Args:
            monitor: The monitor to check, with a target matching this checker.
            deadline: Event loop time (loop.time()) by which the check must end.

        Returns:
            CheckResult: The outcome of the check.

        Raises:
            CheckError: Implementations may raise protocol errors; the registry
                converts them into down results.
        """
        pass


class ResultProcessor(abc.ABC):
    """
    Abstract interface for a component that processes a check outcome.
    """

    @abc.abstractmethod
    async def process(self, outcome: CheckOutcome) -> None:
        """
        Processes a single check outcome.

        Args:
            outcome: The result of a check with the monitor it was produced for.
        """
        pass

    @abc.abstractmethod
    async def flush(self) -> None:
        """
        Forces the persistence of any buffered results.

        For processors that do not buffer data, this method can be a no-op.
        """
        pass


class CoordinationStore(abc.ABC):
    """
    Shared key-value store used to coordinate scheduler instances.

    Values are strings. Implementations must make set_if_absent atomic across
    every instance sharing the store.
    """

    @abc.abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """
        Atomically stores the value if the key does not exist.

        Args:
            key: The key to set.
            value: The value to store.
            ttl: Expiry of the key in seconds.

        Returns:
            bool: True if the key was set, False if it already existed.
        """
        pass

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abc.abstractmethod
    async def set(self, key: str, value: str) -> None:
        pass

    @abc.abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abc.abstractmethod
    async def close(self) -> None:
        """Releases any connection held by the store."""
        pass


class MonitorStore(abc.ABC):
    """Durable persistence of monitor configuration and status."""

    @abc.abstractmethod
    async def get(self, monitor_id: str) -> Optional[Monitor]:
        pass

    @abc.abstractmethod
    async def list_active(self) -> List[Monitor]:
        pass

    @abc.abstractmethod
    async def update(self, monitor_id: str, **fields: Any) -> None:
        """
        Partially updates a monitor.

        Only the given fields are written, so concurrent writes to unrelated
        fields are never clobbered.

        Raises:
            PersistenceError: If the update cannot be stored.
        """
        pass

    @abc.abstractmethod
    async def add(self, monitor: Monitor) -> None:
        pass


class EventStore(abc.ABC):
    """Append-only persistence of check events."""

    @abc.abstractmethod
    async def append(self, event: Event) -> None:
        """
        Raises:
            PersistenceError: If the event cannot be stored.
        """
        pass

    @abc.abstractmethod
    async def query(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> List[Event]:
        """Returns the monitor's events in [start, end], oldest first."""
        pass

    @abc.abstractmethod
    async def count(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> int:
        pass


class NotificationQueue(abc.ABC):
    """
    Durable retry queue of notification triggers.

    Every state change is a compare-and-set on the current state, so a
    concurrent delivery pass can never overwrite a newer state.
    """

    @abc.abstractmethod
    async def push(self, trigger: NotificationTrigger) -> QueueItem:
        pass

    @abc.abstractmethod
    async def get(self, item_id: str) -> Optional[QueueItem]:
        pass

    @abc.abstractmethod
    async def claim_eligible(
        self, limit: int, max_attempts: int, lease_seconds: int
    ) -> List[QueueItem]:
        """
        Leases up to `limit` pending items and failed items below `max_attempts`.

        Leased items are invisible to other claimers until they are marked or
        the lease expires. Items are returned oldest first.
        """
        pass

    @abc.abstractmethod
    async def mark_sent(self, item_id: str, delivered_channels: List[str]) -> bool:
        pass

    @abc.abstractmethod
    async def mark_failed(
        self, item_id: str, error: str, delivered_channels: List[str]
    ) -> bool:
        """Increments the attempt count and records the error."""
        pass

    @abc.abstractmethod
    async def mark_cancelled(self, item_id: str, reason: str) -> bool:
        pass

    @abc.abstractmethod
    async def delete_processed_before(self, cutoff: datetime) -> int:
        """Removes processed items whose processed_at is older than cutoff."""
        pass


class ChannelStore(abc.ABC):
    """Read access to the notification channels users have configured."""

    @abc.abstractmethod
    async def list_for_user(self, user_id: str) -> List[Channel]:
        pass


class NotificationChannel(abc.ABC):
    """A delivery mechanism for one kind of channel."""

    @abc.abstractmethod
    async def deliver(self, payload: Dict[str, Any], channel: Channel) -> None:
        """
        Delivers the payload through the given channel.

        Raises:
            NotificationDeliveryError: If the delivery failed.
        """
        pass
