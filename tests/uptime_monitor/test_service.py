"""
Tests of the MonitoringService facade wired to the in-memory backends.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from uptime_monitor.coordination.memory_store import InMemoryCoordinationStore
from uptime_monitor.domain import CheckResult, MonitorStatus, QueueState
from uptime_monitor.errors import CheckInProgressError, ConfigValidationError
from uptime_monitor.notification.channel_store import InMemoryChannelStore
from uptime_monitor.notification.dispatcher import NotificationDispatcher
from uptime_monitor.processor.status_pipeline import StatusPipeline
from uptime_monitor.scheduler.slot_claim import SlotClaimer
from uptime_monitor.scheduler.tick_scheduler import TickScheduler
from uptime_monitor.service import MonitoringService
from uptime_monitor.storage.memory import (
    InMemoryEventStore,
    InMemoryMonitorStore,
    InMemoryNotificationQueue,
)
from uptime_monitor.worker import MonitoringWorker


def result(status: MonitorStatus) -> CheckResult:
    return CheckResult(status=status, response_time_ms=50, message=status.value)


class Engine:
    """The service and the stores behind it."""

    def __init__(self, clock) -> None:
        self.clock = clock
        self.coordination = InMemoryCoordinationStore()
        self.monitors = InMemoryMonitorStore()
        self.events = InMemoryEventStore()
        self.queue = InMemoryNotificationQueue(clock=clock)
        self.registry = MagicMock()
        self.registry.execute = AsyncMock(return_value=result(MonitorStatus.UP))

        dispatcher = NotificationDispatcher(
            queue=self.queue,
            monitors=self.monitors,
            channels=InMemoryChannelStore(),
            transports={},
            clock=clock,
        )
        self.claimer = SlotClaimer(self.coordination, owner_id="w1", clock=clock)
        self.scheduler = TickScheduler(
            worker_id="w1", claimer=self.claimer, monitor_store=self.monitors, clock=clock
        )
        self.worker = MonitoringWorker(
            worker_id="w1",
            scheduler=self.scheduler,
            registry=self.registry,
            processor=StatusPipeline(self.monitors, self.events, dispatcher),
            num_workers=1,
            queue_size=10,
            clock=clock,
        )
        self.service = MonitoringService(
            scheduler=self.scheduler,
            claimer=self.claimer,
            worker=self.worker,
            events=self.events,
            clock=clock,
        )


@pytest_asyncio.fixture
async def engine(clock):
    engine = Engine(clock)
    yield engine
    await engine.worker.stop()


@pytest.mark.asyncio
async def test_schedule_validates_documents(engine):
    with pytest.raises(ConfigValidationError):
        engine.service.schedule_monitor({"id": "m1", "type": "port", "host": "127.0.0.1"})

    assert engine.service.scheduler_status().active_schedulers == 0


@pytest.mark.asyncio
async def test_schedule_and_unschedule(engine):
    monitor = engine.service.schedule_monitor(
        {"id": "m1", "userId": "u1", "name": "Home", "type": "website", "url": "https://example.com"}
    )

    assert monitor.id == "m1"
    assert engine.service.scheduler_status().scheduler_ids == ["m1"]
    assert engine.service.unschedule_monitor("m1") is True
    assert engine.service.scheduler_status().active_schedulers == 0


@pytest.mark.asyncio
async def test_manual_check_is_recorded_like_scheduled_one(engine, make_monitor):
    # Arrange
    monitor = make_monitor(status=MonitorStatus.UP)
    await engine.monitors.add(monitor)
    engine.registry.execute.return_value = result(MonitorStatus.DOWN)

    # Act
    check = await engine.service.run_check_now(monitor)

    # Assert
    assert check.status == MonitorStatus.DOWN
    assert [e.status for e in engine.events.events] == [MonitorStatus.DOWN]
    assert (await engine.monitors.get("m1")).status == MonitorStatus.DOWN
    assert [item.state for item in engine.queue.items] == [QueueState.PENDING]
    assert await engine.claimer.last_run("m1") == engine.clock.now


@pytest.mark.asyncio
async def test_manual_check_refused_while_locked(engine, make_monitor):
    monitor = make_monitor()
    await engine.coordination.set_if_absent("lock:m1", "w2", 10)

    with pytest.raises(CheckInProgressError):
        await engine.service.run_check_now(monitor)

    engine.registry.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_manual_check_refused_while_check_runs_on_this_instance(engine, make_monitor):
    # Arrange
    monitor = make_monitor()
    await engine.monitors.add(monitor)
    release = asyncio.Event()

    async def execute(monitor):
        await release.wait()
        return result(MonitorStatus.UP)

    engine.registry.execute.side_effect = execute
    running = asyncio.create_task(engine.worker.check_and_process(monitor))
    await asyncio.sleep(0)

    # Act
    with pytest.raises(CheckInProgressError):
        await engine.service.run_check_now(monitor)
    release.set()
    await running

    # Assert
    assert engine.registry.execute.await_count == 1
    assert engine.worker.is_checking("m1") is False


@pytest.mark.asyncio
async def test_uptime_reflects_recorded_checks(engine, make_monitor):
    # Arrange
    monitor = make_monitor()
    await engine.monitors.add(monitor)
    for status in [MonitorStatus.UP, MonitorStatus.UP, MonitorStatus.UP, MonitorStatus.DOWN]:
        engine.registry.execute.return_value = result(status)
        await engine.service.run_check_now(monitor)
        engine.clock.advance(timedelta(minutes=5))

    # Act
    uptime = await engine.service.get_uptime("m1", window_days=1)
    history = await engine.service.get_uptime_history("m1", window_days=2)

    # Assert
    assert uptime == 75.0
    assert [day.total_checks for day in history] == [0, 4]
    assert history[-1].uptime == 75.0
