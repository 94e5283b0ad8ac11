"""
Notification dispatcher.

Triggers produced by the status pipeline are persisted in a retry queue and
delivered later by a delivery pass. Delivery is at-least-once per channel: a
channel that already received an item is remembered, so retries only target
the channels that failed.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional

from uptime_monitor.contracts import ChannelStore, MonitorStore, NotificationChannel, NotificationQueue
from uptime_monitor.domain import Channel, MonitorStatus, NotificationTrigger, QueueItem, QueueState
from uptime_monitor.errors import NotificationDeliveryError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BATCH_SIZE = 50
DEFAULT_LEASE_SECONDS = 60
DEFAULT_RETENTION_DAYS = 7

MONITOR_DELETED = "Monitor no longer exists"
NOTIFICATIONS_DISABLED = "Notifications disabled for this monitor"
NO_MATCHING_CHANNELS = "No matching notification channels"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryReport(NamedTuple):
    """Counts of the outcomes of one delivery pass."""

    total: int = 0
    sent: int = 0
    failed: int = 0
    cancelled: int = 0


def channel_matches(channel: Channel, trigger: NotificationTrigger) -> bool:
    """
    Applies a channel's filters to a trigger.

    Empty monitor id and monitor type filters match every monitor.
    """
    if not channel.active:
        return False

    filters = channel.filters
    if filters.monitor_ids and trigger.monitor_id not in filters.monitor_ids:
        return False
    if filters.monitor_types and trigger.monitor_type not in filters.monitor_types:
        return False
    if trigger.current_status == MonitorStatus.UP and not filters.notify_on_up:
        return False
    if trigger.current_status == MonitorStatus.DOWN and not filters.notify_on_down:
        return False
    return True


class NotificationDispatcher:
    """
    Enqueues notification triggers and drives their delivery.

    Attributes:
        max_attempts: Number of failed deliveries after which an item is
            terminally failed.
    """

    def __init__(
        self,
        queue: NotificationQueue,
        monitors: MonitorStore,
        channels: ChannelStore,
        transports: Mapping[str, NotificationChannel],
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            queue: The durable retry queue.
            monitors: Used to re-check notification preferences at delivery time.
            channels: Source of the channels configured by each user.
            transports: Delivery mechanism for each channel type.
            max_attempts: Delivery attempts before an item is given up.
            lease_seconds: How long a claimed item stays invisible to other passes.
            clock: Returns the current UTC time.
        """
        if not isinstance(max_attempts, int) or max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer.")

        self._queue: NotificationQueue = queue
        self._monitors: MonitorStore = monitors
        self._channels: ChannelStore = channels
        self._transports: Dict[str, NotificationChannel] = dict(transports)
        self.max_attempts: int = max_attempts
        self._lease_seconds: int = lease_seconds
        self._clock: Callable[[], datetime] = clock

    async def enqueue(self, trigger: NotificationTrigger) -> Optional[QueueItem]:
        """
        Persists a trigger with state 'pending' and returns immediately.

        Failures are logged and never raised to the caller.
        """
        try:
            item = await self._queue.push(trigger)
        except Exception as e:
            logger.error(
                f"Could not enqueue notification for monitor {trigger.monitor_id} "
                f"({trigger.previous_status.value} -> {trigger.current_status.value}): {e}"
            )
            return None

        logger.debug(f"Queued notification {item.id} for monitor {trigger.monitor_id}")
        return item

    async def process_queue(self, limit: int = DEFAULT_BATCH_SIZE) -> DeliveryReport:
        """
        Delivers up to `limit` eligible queue items, oldest first.

        Returns:
            DeliveryReport: How many items were sent, failed and cancelled.
        """
        items = await self._queue.claim_eligible(limit, self.max_attempts, self._lease_seconds)
        if not items:
            logger.debug("No pending notifications to process")
            return DeliveryReport()

        logger.info(f"Processing {len(items)} pending notifications")
        outcomes = {QueueState.SENT: 0, QueueState.FAILED: 0, QueueState.CANCELLED: 0}

        for item in items:
            # Filled as channels succeed so a failure mid-item keeps their progress.
            delivered: List[str] = sorted(item.delivered_channels)
            try:
                state = await self._process_item(item, delivered)
            except Exception as e:
                logger.exception(f"Error processing notification {item.id}: {e}")
                state = await self._fail_unexpectedly(item, str(e), delivered)
            if state is not None:
                outcomes[state] += 1

        report = DeliveryReport(
            total=len(items),
            sent=outcomes[QueueState.SENT],
            failed=outcomes[QueueState.FAILED],
            cancelled=outcomes[QueueState.CANCELLED],
        )
        logger.info(
            f"Processed {report.total} notifications: {report.sent} sent, "
            f"{report.failed} failed, {report.cancelled} cancelled"
        )
        return report

    async def _fail_unexpectedly(
        self, item: QueueItem, error: str, delivered: List[str]
    ) -> Optional[QueueState]:
        try:
            changed = await self._queue.mark_failed(item.id, error, delivered)
        except Exception as e:
            # The lease expires and the item becomes eligible again.
            logger.error(f"Could not mark notification {item.id} as failed: {e}")
            return None
        return QueueState.FAILED if changed else None

    async def _process_item(self, item: QueueItem, delivered: List[str]) -> Optional[QueueState]:
        trigger = item.trigger

        monitor = await self._monitors.get(trigger.monitor_id)
        if monitor is None:
            return await self._cancel(item, MONITOR_DELETED)
        if not monitor.notification_preferences.allows(trigger.current_status):
            return await self._cancel(item, NOTIFICATIONS_DISABLED)

        channels = [
            channel
            for channel in await self._channels.list_for_user(trigger.user_id)
            if channel_matches(channel, trigger) and channel.type in self._transports
        ]
        if not channels:
            logger.info(f"{NO_MATCHING_CHANNELS} for notification {item.id}")
            return QueueState.SENT if await self._queue.mark_sent(item.id, []) else None

        payload = trigger.as_payload()
        errors: List[str] = []

        for channel in channels:
            if channel.id in item.delivered_channels:
                continue
            try:
                await self._transports[channel.type].deliver(payload, channel)
                delivered.append(channel.id)
            except NotificationDeliveryError as e:
                logger.warning(f"Delivery of notification {item.id} via channel {channel.id} failed: {e}")
                errors.append(f"{channel.id}: {e}")

        if errors:
            changed = await self._queue.mark_failed(item.id, "; ".join(errors), delivered)
            if changed and item.attempts + 1 >= self.max_attempts:
                logger.error(f"Notification {item.id} failed {item.attempts + 1} times, giving up")
            return QueueState.FAILED if changed else None

        return QueueState.SENT if await self._queue.mark_sent(item.id, delivered) else None

    async def _cancel(self, item: QueueItem, reason: str) -> Optional[QueueState]:
        logger.info(f"Cancelling notification {item.id}: {reason}")
        return QueueState.CANCELLED if await self._queue.mark_cancelled(item.id, reason) else None

    async def cleanup(self, retention_days: int = DEFAULT_RETENTION_DAYS) -> int:
        """
        Removes processed queue items older than `retention_days` days.

        Returns:
            int: The number of removed items.
        """
        cutoff = self._clock() - timedelta(days=retention_days)
        removed = await self._queue.delete_processed_before(cutoff)
        logger.info(f"Removed {removed} old notifications from queue")
        return removed
