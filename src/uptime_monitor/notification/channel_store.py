"""
Channel stores resolving the notification channels of a user.
"""

from typing import Dict, List, Optional

from uptime_monitor.contracts import ChannelStore
from uptime_monitor.domain import Channel

RELAY_CHANNEL_TYPE = "relay"
WEBHOOK_CHANNEL_TYPE = "webhook"
RELAY_PATH = "/api/notifications"


class StaticChannelStore(ChannelStore):
    """
    Gives every user the same single relay channel.

    Used when delivery is delegated to an external notification service that
    owns the per-user channel configuration.
    """

    def __init__(self, service_url: str) -> None:
        self._service_url: str = service_url.rstrip("/")

    async def list_for_user(self, user_id: str) -> List[Channel]:
        return [
            Channel(
                id=RELAY_CHANNEL_TYPE,
                user_id=user_id,
                type=RELAY_CHANNEL_TYPE,
                config={"url": f"{self._service_url}{RELAY_PATH}"},
            )
        ]


class InMemoryChannelStore(ChannelStore):
    def __init__(self, channels: Optional[List[Channel]] = None) -> None:
        self._channels: Dict[str, Channel] = {channel.id: channel for channel in channels or []}

    def add(self, channel: Channel) -> None:
        self._channels[channel.id] = channel

    async def list_for_user(self, user_id: str) -> List[Channel]:
        return [channel for channel in self._channels.values() if channel.user_id == user_id]
