"""
Unit tests for slot claiming.
"""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from uptime_monitor.coordination.memory_store import InMemoryCoordinationStore
from uptime_monitor.scheduler.slot_claim import ClaimResult, SlotClaimer


def test_lock_ttl_must_be_positive():
    with pytest.raises(ValueError):
        SlotClaimer(InMemoryCoordinationStore(), owner_id="w1", lock_ttl=0)


@pytest.mark.asyncio
async def test_first_claim_wins_and_records_last_run(make_monitor, clock):
    # Arrange
    store = InMemoryCoordinationStore()
    claimer = SlotClaimer(store, owner_id="w1", clock=clock)

    # Act
    result = await claimer.claim(make_monitor())

    # Assert
    assert result == ClaimResult.CLAIMED
    assert await claimer.last_run("m1") == clock.now
    assert await store.get("lock:m1") is None


@pytest.mark.asyncio
async def test_two_instances_claim_a_slot_once(make_monitor, clock):
    # Arrange
    store = InMemoryCoordinationStore()
    first = SlotClaimer(store, owner_id="w1", clock=clock)
    second = SlotClaimer(store, owner_id="w2", clock=clock)
    monitor = make_monitor(interval=5)

    # Act
    results = [await first.claim(monitor), await second.claim(monitor)]
    clock.advance(timedelta(minutes=5))
    results += [await second.claim(monitor), await first.claim(monitor)]

    # Assert
    assert results == [
        ClaimResult.CLAIMED,
        ClaimResult.NOT_DUE,
        ClaimResult.CLAIMED,
        ClaimResult.NOT_DUE,
    ]


@pytest.mark.asyncio
async def test_held_lock_skips_claim(make_monitor, clock):
    store = InMemoryCoordinationStore()
    await store.set_if_absent("lock:m1", "other", 10)
    claimer = SlotClaimer(store, owner_id="w1", clock=clock)

    assert await claimer.claim(make_monitor()) == ClaimResult.LOCKED
    assert await claimer.claim(make_monitor(), force=True) == ClaimResult.LOCKED
    assert await claimer.last_run("m1") is None


@pytest.mark.asyncio
async def test_forced_claim_ignores_interval(make_monitor, clock):
    claimer = SlotClaimer(InMemoryCoordinationStore(), owner_id="w1", clock=clock)
    await claimer.claim(make_monitor())

    clock.advance(timedelta(seconds=30))
    result = await claimer.claim(make_monitor(), force=True)

    assert result == ClaimResult.CLAIMED
    assert await claimer.last_run("m1") == clock.now


@pytest.mark.asyncio
async def test_lock_is_released_when_store_fails(make_monitor, clock):
    # Arrange
    store = InMemoryCoordinationStore()
    store.get = AsyncMock(side_effect=RuntimeError("store down"))
    claimer = SlotClaimer(store, owner_id="w1", clock=clock)

    # Act
    with pytest.raises(RuntimeError):
        await claimer.claim(make_monitor())

    # Assert
    assert await store.set_if_absent("lock:m1", "w2", 10) is True
