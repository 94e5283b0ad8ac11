"""
Unit tests for the notification dispatcher, against the in-memory stores.
"""

from datetime import datetime, timezone
from typing import List
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from uptime_monitor.contracts import NotificationChannel
from uptime_monitor.domain import (
    Channel,
    ChannelFilters,
    MonitorStatus,
    MonitorType,
    NotificationPreferences,
    NotificationTrigger,
    QueueState,
)
from uptime_monitor.errors import NotificationDeliveryError
from uptime_monitor.notification.channel_store import InMemoryChannelStore
from uptime_monitor.notification.dispatcher import (
    MONITOR_DELETED,
    NOTIFICATIONS_DISABLED,
    DeliveryReport,
    NotificationDispatcher,
    channel_matches,
)
from uptime_monitor.storage.memory import InMemoryMonitorStore, InMemoryNotificationQueue

NOW = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


class RecordingChannel(NotificationChannel):
    """Records deliveries; channel ids listed in `failing` raise."""

    def __init__(self, failing: List[str] = ()) -> None:
        self.failing = set(failing)
        self.delivered: List[str] = []

    async def deliver(self, payload, channel):
        if channel.id in self.failing:
            raise NotificationDeliveryError("connection refused")
        self.delivered.append(channel.id)


class CrashingChannel(RecordingChannel):
    """Raises an unexpected error for the channel ids listed in `crashing`."""

    def __init__(self, crashing: List[str] = ()) -> None:
        super().__init__()
        self.crashing = set(crashing)

    async def deliver(self, payload, channel):
        if channel.id in self.crashing:
            raise RuntimeError("transport bug")
        await super().deliver(payload, channel)


def make_trigger(current: MonitorStatus = MonitorStatus.DOWN, monitor_id: str = "m1") -> NotificationTrigger:
    previous = MonitorStatus.UP if current == MonitorStatus.DOWN else MonitorStatus.DOWN
    return NotificationTrigger(
        monitor_id=monitor_id,
        user_id="u1",
        previous_status=previous,
        current_status=current,
        event_id="e1",
        created_at=NOW,
        monitor_type=MonitorType.WEBSITE,
    )


def make_channel(channel_id: str, **fields) -> Channel:
    values = {"id": channel_id, "user_id": "u1", "type": "webhook", "config": {"url": "http://hooks.local"}}
    values.update(fields)
    return Channel(**values)


@pytest.fixture
def queue() -> InMemoryNotificationQueue:
    return InMemoryNotificationQueue(clock=lambda: NOW)


@pytest_asyncio.fixture
async def monitors(make_monitor) -> InMemoryMonitorStore:
    store = InMemoryMonitorStore()
    await store.add(make_monitor())
    return store


def make_dispatcher(queue, monitors, channels, transport, max_attempts=5) -> NotificationDispatcher:
    return NotificationDispatcher(
        queue=queue,
        monitors=monitors,
        channels=InMemoryChannelStore(channels),
        transports={"webhook": transport},
        max_attempts=max_attempts,
        clock=lambda: NOW,
    )


def test_channel_filters():
    trigger = make_trigger(MonitorStatus.UP)

    assert channel_matches(make_channel("c1"), trigger)
    assert not channel_matches(make_channel("c1", active=False), trigger)
    assert not channel_matches(make_channel("c1", filters=ChannelFilters(notify_on_up=False)), trigger)
    assert not channel_matches(make_channel("c1", filters=ChannelFilters(monitor_ids=frozenset({"m2"}))), trigger)
    assert channel_matches(
        make_channel("c1", filters=ChannelFilters(monitor_types=frozenset({MonitorType.WEBSITE}))), trigger
    )


def test_max_attempts_must_be_positive(queue):
    with pytest.raises(ValueError):
        make_dispatcher(queue, InMemoryMonitorStore(), [], RecordingChannel(), max_attempts=0)


@pytest.mark.asyncio
async def test_enqueue_never_raises():
    failing_queue = AsyncMock()
    failing_queue.push.side_effect = RuntimeError("database down")
    dispatcher = make_dispatcher(failing_queue, InMemoryMonitorStore(), [], RecordingChannel())

    assert await dispatcher.enqueue(make_trigger()) is None


@pytest.mark.asyncio
async def test_item_is_sent_to_every_matching_channel(queue, monitors):
    # Arrange
    transport = RecordingChannel()
    dispatcher = make_dispatcher(queue, monitors, [make_channel("c1"), make_channel("c2")], transport)
    item = await dispatcher.enqueue(make_trigger())

    # Act
    report = await dispatcher.process_queue()

    # Assert
    assert report == DeliveryReport(total=1, sent=1, failed=0, cancelled=0)
    assert sorted(transport.delivered) == ["c1", "c2"]
    sent = await queue.get(item.id)
    assert sent.state == QueueState.SENT
    assert sent.delivered_channels == frozenset({"c1", "c2"})


@pytest.mark.asyncio
async def test_retry_only_targets_failed_channels(queue, monitors):
    # Arrange
    transport = RecordingChannel(failing=["c2"])
    dispatcher = make_dispatcher(queue, monitors, [make_channel("c1"), make_channel("c2")], transport)
    item = await dispatcher.enqueue(make_trigger())
    first = await dispatcher.process_queue()
    transport.failing.clear()

    # Act
    second = await dispatcher.process_queue()

    # Assert
    assert first.failed == 1
    assert second.sent == 1
    assert transport.delivered == ["c1", "c2"]
    delivered = await queue.get(item.id)
    assert delivered.attempts == 1
    assert delivered.state == QueueState.SENT


@pytest.mark.asyncio
async def test_item_fails_terminally_after_max_attempts(queue, monitors):
    transport = RecordingChannel(failing=["c1"])
    dispatcher = make_dispatcher(queue, monitors, [make_channel("c1")], transport, max_attempts=3)
    item = await dispatcher.enqueue(make_trigger())

    reports = [await dispatcher.process_queue() for _ in range(5)]

    assert [report.failed for report in reports] == [1, 1, 1, 0, 0]
    failed = await queue.get(item.id)
    assert failed.state == QueueState.FAILED
    assert failed.attempts == 3
    assert failed.error == "c1: connection refused"


@pytest.mark.asyncio
async def test_item_of_deleted_monitor_is_cancelled(queue):
    dispatcher = make_dispatcher(queue, InMemoryMonitorStore(), [make_channel("c1")], RecordingChannel())
    item = await dispatcher.enqueue(make_trigger())

    report = await dispatcher.process_queue()

    assert report.cancelled == 1
    cancelled = await queue.get(item.id)
    assert cancelled.state == QueueState.CANCELLED
    assert cancelled.error == MONITOR_DELETED


@pytest.mark.asyncio
async def test_preference_disabled_after_enqueue_cancels_item(queue, monitors):
    transport = RecordingChannel()
    dispatcher = make_dispatcher(queue, monitors, [make_channel("c1")], transport)
    item = await dispatcher.enqueue(make_trigger(MonitorStatus.DOWN))
    await monitors.update("m1", notification_preferences=NotificationPreferences(notify_on_down=False))

    await dispatcher.process_queue()

    cancelled = await queue.get(item.id)
    assert cancelled.state == QueueState.CANCELLED
    assert cancelled.error == NOTIFICATIONS_DISABLED
    assert transport.delivered == []


@pytest.mark.asyncio
async def test_item_without_matching_channel_is_sent(queue, monitors):
    transport = RecordingChannel()
    channels = [make_channel("c1", filters=ChannelFilters(notify_on_down=False)), make_channel("c2", type="sms")]
    dispatcher = make_dispatcher(queue, monitors, channels, transport)
    item = await dispatcher.enqueue(make_trigger(MonitorStatus.DOWN))

    report = await dispatcher.process_queue()

    assert report.sent == 1
    assert transport.delivered == []
    assert (await queue.get(item.id)).delivered_channels == frozenset()


@pytest.mark.asyncio
async def test_unexpected_error_marks_item_failed(queue, monitors):
    channels = AsyncMock()
    channels.list_for_user.side_effect = RuntimeError("channel store down")
    dispatcher = NotificationDispatcher(
        queue=queue, monitors=monitors, channels=channels, transports={}, clock=lambda: NOW
    )
    item = await dispatcher.enqueue(make_trigger())

    report = await dispatcher.process_queue()

    assert report.failed == 1
    failed = await queue.get(item.id)
    assert failed.state == QueueState.FAILED
    assert failed.error == "channel store down"


@pytest.mark.asyncio
async def test_empty_queue_gives_empty_report(queue, monitors):
    dispatcher = make_dispatcher(queue, monitors, [], RecordingChannel())

    assert await dispatcher.process_queue() == DeliveryReport()


@pytest.mark.asyncio
async def test_cleanup_uses_retention_window():
    queue = AsyncMock()
    queue.delete_processed_before.return_value = 3
    dispatcher = make_dispatcher(queue, InMemoryMonitorStore(), [], RecordingChannel())

    removed = await dispatcher.cleanup(retention_days=7)

    assert removed == 3
    queue.delete_processed_before.assert_awaited_once_with(datetime(2029, 12, 31, 12, 0, tzinfo=timezone.utc))


@pytest.mark.asyncio
async def test_unexpected_transport_error_keeps_earlier_deliveries(queue, monitors):
    # Arrange
    transport = CrashingChannel(crashing=["c2"])
    dispatcher = make_dispatcher(queue, monitors, [make_channel("c1"), make_channel("c2")], transport)
    item = await dispatcher.enqueue(make_trigger())
    first = await dispatcher.process_queue()
    transport.crashing.clear()

    # Act
    second = await dispatcher.process_queue()

    # Assert
    assert first.failed == 1
    assert second.sent == 1
    assert transport.delivered == ["c1", "c2"]
    assert (await queue.get(item.id)).delivered_channels == frozenset({"c1", "c2"})


@pytest.mark.asyncio
async def test_failure_to_record_failure_does_not_abandon_batch(queue, monitors):
    # Arrange
    channels = AsyncMock()
    channels.list_for_user.side_effect = RuntimeError("channel store down")
    dispatcher = NotificationDispatcher(
        queue=queue, monitors=monitors, channels=channels, transports={}, clock=lambda: NOW
    )
    await dispatcher.enqueue(make_trigger())
    await dispatcher.enqueue(make_trigger(MonitorStatus.UP))
    queue.mark_failed = AsyncMock(side_effect=RuntimeError("database down"))

    # Act
    report = await dispatcher.process_queue()

    # Assert
    assert report == DeliveryReport(total=2, sent=0, failed=0, cancelled=0)
    assert channels.list_for_user.await_count == 2
