"""
PostgreSQL-based implementation of the NotificationQueue interface.

Several delivery workers may drain the same queue. Claims lease rows with
FOR UPDATE SKIP LOCKED so two workers never pick the same item, and every
outcome is written with a conditional UPDATE on the current state so a late
writer can never overwrite a terminal state.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from asyncpg import Pool, Record

from uptime_monitor.contracts import NotificationQueue
from uptime_monitor.domain import (
    MonitorStatus,
    MonitorType,
    NotificationTrigger,
    QueueItem,
    QueueState,
)
from uptime_monitor.storage.postgres_base import PostgresStore, affected_rows

# Module logger
logger = logging.getLogger(__name__)

QUEUE_COLUMNS = """
    id, monitor_id, user_id, previous_status, current_status, event_id, triggered_at,
    monitor_name, monitor_type, target, message, response_time, state, attempts,
    processed, processed_at, error, delivered_channels, created_at, updated_at
"""

PREFIXED_QUEUE_COLUMNS = ", ".join(f"q.{column.strip()}" for column in QUEUE_COLUMNS.split(","))

PUSH_QUERY = f"""
    INSERT INTO notification_queue (
        id, monitor_id, user_id, previous_status, current_status, event_id, triggered_at,
        monitor_name, monitor_type, target, message, response_time
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
    RETURNING {QUEUE_COLUMNS}
"""

GET_QUERY = f"SELECT {QUEUE_COLUMNS} FROM notification_queue WHERE id = $1"

# Leases the oldest eligible items; rows locked by a concurrent claim are skipped.
CLAIM_QUERY = f"""
    WITH eligible AS (SELECT id
                      FROM notification_queue
                      WHERE processed = FALSE
                        AND state IN ('pending', 'failed')
                        AND attempts < $2
                        AND (lease_expires_at IS NULL OR lease_expires_at <= NOW())
                      ORDER BY created_at
                      LIMIT $1 FOR UPDATE SKIP LOCKED)
    UPDATE notification_queue q
    SET lease_expires_at = NOW() + make_interval(secs => $3::double precision),
        updated_at       = NOW()
    FROM eligible e
    WHERE q.id = e.id
    RETURNING {PREFIXED_QUEUE_COLUMNS}
"""

# Outcome updates only apply to items that are still open.
OPEN_ITEM_CONDITION = "id = $1 AND processed = FALSE AND state IN ('pending', 'failed')"

MARK_SENT_QUERY = f"""
    UPDATE notification_queue
    SET state = 'sent', processed = TRUE, processed_at = NOW(), error = NULL,
        delivered_channels = $2, lease_expires_at = NULL, updated_at = NOW()
    WHERE {OPEN_ITEM_CONDITION}
"""

MARK_FAILED_QUERY = f"""
    UPDATE notification_queue
    SET state = 'failed', attempts = attempts + 1, error = $2,
        delivered_channels = $3, lease_expires_at = NULL, updated_at = NOW()
    WHERE {OPEN_ITEM_CONDITION}
"""

MARK_CANCELLED_QUERY = f"""
    UPDATE notification_queue
    SET state = 'cancelled', processed = TRUE, processed_at = NOW(), error = $2,
        lease_expires_at = NULL, updated_at = NOW()
    WHERE {OPEN_ITEM_CONDITION}
"""

DELETE_PROCESSED_QUERY = """
    DELETE FROM notification_queue WHERE processed = TRUE AND processed_at < $1
"""


def map_queue_item(record: Record) -> QueueItem:
    monitor_type = record["monitor_type"]
    trigger = NotificationTrigger(
        monitor_id=record["monitor_id"],
        user_id=record["user_id"],
        previous_status=MonitorStatus(record["previous_status"]),
        current_status=MonitorStatus(record["current_status"]),
        event_id=record["event_id"],
        created_at=record["triggered_at"],
        monitor_name=record["monitor_name"],
        monitor_type=MonitorType(monitor_type) if monitor_type else None,
        target=record["target"],
        message=record["message"],
        response_time=record["response_time"],
    )
    return QueueItem(
        id=record["id"],
        trigger=trigger,
        state=QueueState(record["state"]),
        created_at=record["created_at"],
        attempts=record["attempts"],
        processed=record["processed"],
        processed_at=record["processed_at"],
        error=record["error"],
        delivered_channels=frozenset(record["delivered_channels"] or ()),
        updated_at=record["updated_at"],
    )


class PostgresNotificationQueue(PostgresStore, NotificationQueue):
    """
    Notification queue persisted in the 'notification_queue' table.
    """

    def __init__(self, pool: Pool) -> None:
        super().__init__(pool)

    async def push(self, trigger: NotificationTrigger) -> QueueItem:
        record = await self._fetchrow(
            PUSH_QUERY,
            str(uuid.uuid4()),
            trigger.monitor_id,
            trigger.user_id,
            trigger.previous_status.value,
            trigger.current_status.value,
            trigger.event_id,
            trigger.created_at,
            trigger.monitor_name,
            trigger.monitor_type.value if trigger.monitor_type else None,
            trigger.target,
            trigger.message,
            trigger.response_time,
        )
        return map_queue_item(record)

    async def get(self, item_id: str) -> Optional[QueueItem]:
        record = await self._fetchrow(GET_QUERY, item_id)
        return map_queue_item(record) if record is not None else None

    async def claim_eligible(
        self, limit: int, max_attempts: int, lease_seconds: int
    ) -> List[QueueItem]:
        records = await self._fetch(CLAIM_QUERY, limit, max_attempts, float(lease_seconds))
        items = [map_queue_item(record) for record in records]
        # RETURNING does not preserve the order of the CTE.
        return sorted(items, key=lambda item: item.created_at)

    async def mark_sent(self, item_id: str, delivered_channels: List[str]) -> bool:
        status = await self._execute(MARK_SENT_QUERY, item_id, list(delivered_channels))
        return affected_rows(status) == 1

    async def mark_failed(self, item_id: str, error: str, delivered_channels: List[str]) -> bool:
        status = await self._execute(MARK_FAILED_QUERY, item_id, error, list(delivered_channels))
        return affected_rows(status) == 1

    async def mark_cancelled(self, item_id: str, reason: str) -> bool:
        status = await self._execute(MARK_CANCELLED_QUERY, item_id, reason)
        return affected_rows(status) == 1

    async def delete_processed_before(self, cutoff: datetime) -> int:
        status = await self._execute(DELETE_PROCESSED_QUERY, cutoff)
        return affected_rows(status)
