"""
Unit tests for the delivery worker.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from uptime_monitor.notification.delivery_worker import DeliveryWorker
from uptime_monitor.notification.dispatcher import DeliveryReport


class FakeClock:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


@pytest.fixture
def dispatcher() -> MagicMock:
    dispatcher = MagicMock()
    dispatcher.process_queue = AsyncMock(return_value=DeliveryReport(total=1, sent=1))
    dispatcher.cleanup = AsyncMock(return_value=0)
    return dispatcher


def test_intervals_must_be_positive(dispatcher):
    with pytest.raises(ValueError):
        DeliveryWorker(dispatcher, delivery_interval=0)


@pytest.mark.asyncio
async def test_cleanup_runs_on_first_pass_then_every_interval(dispatcher):
    # Arrange
    clock = FakeClock()
    worker = DeliveryWorker(dispatcher, cleanup_interval=3600, retention_days=7, batch_size=20, clock=clock)

    # Act
    report = await worker.run_once()
    clock.value = 1800
    await worker.run_once()
    clock.value = 3600
    await worker.run_once()

    # Assert
    assert report == DeliveryReport(total=1, sent=1)
    assert dispatcher.process_queue.await_count == 3
    dispatcher.process_queue.assert_awaited_with(20)
    assert dispatcher.cleanup.await_count == 2
    dispatcher.cleanup.assert_awaited_with(7)


@pytest.mark.asyncio
async def test_background_task_survives_errors_and_stops(dispatcher):
    # Arrange
    calls = []

    async def process_queue(limit):
        calls.append(limit)
        if len(calls) == 1:
            raise RuntimeError("database down")
        return DeliveryReport()

    dispatcher.process_queue.side_effect = process_queue
    worker = DeliveryWorker(dispatcher, delivery_interval=0.01)

    # Act
    worker.start()
    await asyncio.sleep(0.05)
    await worker.stop()

    # Assert
    assert dispatcher.process_queue.await_count >= 2
    assert worker._task is None
