"""
Notification channel posting triggers as JSON to an HTTP endpoint.
"""

import asyncio
import logging
from typing import Any, Dict

import aiohttp

from uptime_monitor.contracts import NotificationChannel
from uptime_monitor.domain import Channel
from uptime_monitor.errors import NotificationDeliveryError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_TIMEOUT = 5.0


class HttpRelayChannel(NotificationChannel):
    """
    Posts the notification payload as JSON to the url configured on the channel.

    Used for webhook channels and for handing notifications over to a separate
    notification service. Any non-2xx response is a failed delivery.
    """

    def __init__(self, session: aiohttp.ClientSession, timeout: float = DEFAULT_DELIVERY_TIMEOUT) -> None:
        self._session: aiohttp.ClientSession = session
        self._timeout: aiohttp.ClientTimeout = aiohttp.ClientTimeout(total=timeout)

    async def deliver(self, payload: Dict[str, Any], channel: Channel) -> None:
        url = channel.config.get("url")
        if not url:
            raise NotificationDeliveryError(f"Channel {channel.id} has no url configured")

        headers = dict(channel.config.get("headers") or {})
        try:
            async with self._session.post(
                url, json=payload, headers=headers, timeout=self._timeout
            ) as response:
                if not 200 <= response.status < 300:
                    raise NotificationDeliveryError(
                        f"{url} answered with status code {response.status}"
                    )
        except asyncio.TimeoutError as e:
            raise NotificationDeliveryError(f"Timeout while posting to {url}") from e
        except aiohttp.ClientError as e:
            raise NotificationDeliveryError(f"Could not post to {url}: {e}") from e

        logger.debug(f"Notification delivered to {url} via channel {channel.id}")
