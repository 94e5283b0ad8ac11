"""
In-memory implementations of the persistence contracts.

These stores back single-process deployments without a database and are the
fakes used throughout the test suite. They honour the same semantics as the
PostgreSQL stores: partial monitor updates, append-only events, and
compare-and-set transitions on queue items.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from uptime_monitor.contracts import EventStore, MonitorStore, NotificationQueue
from uptime_monitor.domain import (
    Event,
    Monitor,
    MonitorStatus,
    NotificationTrigger,
    QueueItem,
    QueueState,
)

# Queue states from which a delivery outcome may still be recorded.
_OPEN_STATES = (QueueState.PENDING, QueueState.FAILED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryMonitorStore(MonitorStore):
    def __init__(self) -> None:
        self._monitors: Dict[str, Monitor] = {}

    async def add(self, monitor: Monitor) -> None:
        self._monitors[monitor.id] = monitor

    async def get(self, monitor_id: str) -> Optional[Monitor]:
        return self._monitors.get(monitor_id)

    async def list_active(self) -> List[Monitor]:
        return [monitor for monitor in self._monitors.values() if monitor.active]

    async def update(self, monitor_id: str, **fields) -> None:
        unknown = set(fields) - set(Monitor._fields)
        if unknown:
            raise ValueError(f"Unknown monitor fields: {', '.join(sorted(unknown))}")

        monitor = self._monitors.get(monitor_id)
        if monitor is None:
            return
        self._monitors[monitor_id] = monitor._replace(**fields)


class InMemoryEventStore(EventStore):
    def __init__(self) -> None:
        self._events: List[Event] = []

    @property
    def events(self) -> List[Event]:
        return list(self._events)

    async def append(self, event: Event) -> None:
        self._events.append(event)

    def _select(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus],
    ) -> List[Event]:
        return [
            event
            for event in self._events
            if event.monitor_id == monitor_id
            and start <= event.created_at <= end
            and (status is None or event.status == status)
        ]

    async def query(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> List[Event]:
        return sorted(self._select(monitor_id, start, end, status), key=lambda e: e.created_at)

    async def count(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> int:
        return len(self._select(monitor_id, start, end, status))


class InMemoryNotificationQueue(NotificationQueue):
    """
    Dictionary-backed notification queue.

    Claimed items are leased for a number of seconds measured with a monotonic
    clock; a leased item is skipped by other claims until its outcome is
    recorded or the lease expires.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock: Callable[[], datetime] = clock
        self._monotonic: Callable[[], float] = monotonic
        self._items: Dict[str, QueueItem] = {}
        self._leases: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    @property
    def items(self) -> List[QueueItem]:
        return sorted(self._items.values(), key=lambda item: item.created_at)

    async def push(self, trigger: NotificationTrigger) -> QueueItem:
        now = self._clock()
        item = QueueItem(
            id=str(uuid.uuid4()),
            trigger=trigger,
            state=QueueState.PENDING,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._items[item.id] = item
        return item

    async def get(self, item_id: str) -> Optional[QueueItem]:
        return self._items.get(item_id)

    def _is_leased(self, item_id: str) -> bool:
        expires_at = self._leases.get(item_id)
        return expires_at is not None and expires_at > self._monotonic()

    async def claim_eligible(
        self, limit: int, max_attempts: int, lease_seconds: int
    ) -> List[QueueItem]:
        async with self._lock:
            eligible = [
                item
                for item in self.items
                if not item.processed
                and item.state in _OPEN_STATES
                and item.attempts < max_attempts
                and not self._is_leased(item.id)
            ][:limit]

            expires_at = self._monotonic() + lease_seconds
            for item in eligible:
                self._leases[item.id] = expires_at
            return eligible

    async def _transition(self, item_id: str, increment_attempts: bool = False, **changes) -> bool:
        async with self._lock:
            item = self._items.get(item_id)
            if item is None or item.processed or item.state not in _OPEN_STATES:
                return False
            if increment_attempts:
                changes["attempts"] = item.attempts + 1
            self._items[item_id] = item._replace(updated_at=self._clock(), **changes)
            self._leases.pop(item_id, None)
            return True

    async def mark_sent(self, item_id: str, delivered_channels: List[str]) -> bool:
        now = self._clock()
        return await self._transition(
            item_id,
            state=QueueState.SENT,
            processed=True,
            processed_at=now,
            error=None,
            delivered_channels=frozenset(delivered_channels),
        )

    async def mark_failed(self, item_id: str, error: str, delivered_channels: List[str]) -> bool:
        return await self._transition(
            item_id,
            increment_attempts=True,
            state=QueueState.FAILED,
            error=error,
            delivered_channels=frozenset(delivered_channels),
        )

    async def mark_cancelled(self, item_id: str, reason: str) -> bool:
        return await self._transition(
            item_id,
            state=QueueState.CANCELLED,
            processed=True,
            processed_at=self._clock(),
            error=reason,
        )

    async def delete_processed_before(self, cutoff: datetime) -> int:
        async with self._lock:
            expired = [
                item.id
                for item in self._items.values()
                if item.processed and item.processed_at is not None and item.processed_at < cutoff
            ]
            for item_id in expired:
                del self._items[item_id]
                self._leases.pop(item_id, None)
            return len(expired)
