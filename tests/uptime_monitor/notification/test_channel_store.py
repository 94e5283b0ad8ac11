"""
Unit tests for the channel stores.
"""

import pytest

from uptime_monitor.domain import Channel
from uptime_monitor.notification.channel_store import InMemoryChannelStore, StaticChannelStore


@pytest.mark.asyncio
async def test_static_store_gives_every_user_the_relay():
    store = StaticChannelStore("http://notifications.local/")

    channels = await store.list_for_user("u42")

    assert len(channels) == 1
    assert channels[0].user_id == "u42"
    assert channels[0].type == "relay"
    assert channels[0].config == {"url": "http://notifications.local/api/notifications"}


@pytest.mark.asyncio
async def test_memory_store_lists_channels_of_user():
    store = InMemoryChannelStore([Channel(id="c1", user_id="u1", type="webhook", config={})])
    store.add(Channel(id="c2", user_id="u2", type="webhook", config={}))

    assert [c.id for c in await store.list_for_user("u1")] == ["c1"]
    assert [c.id for c in await store.list_for_user("u2")] == ["c2"]
    assert await store.list_for_user("u3") == []
