"""
Unit tests for uptime calculations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from uptime_monitor.domain import Event, MonitorStatus
from uptime_monitor.storage.memory import InMemoryEventStore
from uptime_monitor.uptime import (
    calculate_uptime,
    get_uptime,
    get_uptime_history,
    uptime_percentage,
)

NOW = datetime(2030, 1, 7, 12, 0, tzinfo=timezone.utc)


def make_event(index: int, status: MonitorStatus, created_at: datetime) -> Event:
    return Event(
        id=f"e{index}",
        monitor_id="m1",
        status=status,
        response_time=50,
        message="",
        created_at=created_at,
    )


def test_empty_history_has_zero_uptime():
    assert calculate_uptime([]) == 0
    assert uptime_percentage(0, 0) == 0.0


def test_uptime_is_share_of_up_events():
    events = [
        make_event(i, status, NOW)
        for i, status in enumerate([MonitorStatus.UP, MonitorStatus.UP, MonitorStatus.UP, MonitorStatus.DOWN])
    ]

    assert calculate_uptime(events) == 75.0


@pytest.mark.asyncio
async def test_get_uptime_counts_window_only():
    # Arrange
    store = InMemoryEventStore()
    await store.append(make_event(1, MonitorStatus.UP, NOW - timedelta(hours=1)))
    await store.append(make_event(2, MonitorStatus.DOWN, NOW - timedelta(hours=2)))
    await store.append(make_event(3, MonitorStatus.DOWN, NOW - timedelta(days=3)))

    # Act
    uptime = await get_uptime(store, "m1", 1, NOW)

    # Assert
    assert uptime == 50.0


@pytest.mark.asyncio
async def test_get_uptime_without_events_is_zero():
    assert await get_uptime(InMemoryEventStore(), "m1", 30, NOW) == 0.0


@pytest.mark.asyncio
async def test_history_has_one_entry_per_day_oldest_first():
    # Arrange
    store = InMemoryEventStore()
    await store.append(make_event(1, MonitorStatus.UP, NOW))
    await store.append(make_event(2, MonitorStatus.DOWN, NOW))
    await store.append(make_event(3, MonitorStatus.DOWN, NOW))
    await store.append(make_event(4, MonitorStatus.UP, NOW - timedelta(days=2)))

    # Act
    history = await get_uptime_history(store, "m1", 3, NOW)

    # Assert
    assert [day.date.isoformat() for day in history] == ["2030-01-05", "2030-01-06", "2030-01-07"]
    assert [day.total_checks for day in history] == [1, 0, 3]
    assert [day.successful_checks for day in history] == [1, 0, 1]
    assert [day.uptime for day in history] == [100.0, 0.0, 33.33]
