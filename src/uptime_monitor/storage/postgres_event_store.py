import json
import logging
from datetime import datetime
from typing import List, Optional

from asyncpg import Pool, Record

from uptime_monitor.contracts import EventStore
from uptime_monitor.domain import Event, MonitorStatus
from uptime_monitor.storage.postgres_base import PostgresStore

# Module logger
logger = logging.getLogger(__name__)

INSERT_EVENT_QUERY = """
    INSERT INTO events (id, monitor_id, status, response_time, status_code, message, details, created_at)
    VALUES ($1, $2, $3, $4, $5, $6, $7::jsonb, $8)
"""

QUERY_EVENTS_QUERY = """
    SELECT id, monitor_id, status, response_time, status_code, message, details, created_at
    FROM events
    WHERE monitor_id = $1
      AND created_at BETWEEN $2 AND $3
      AND ($4::text IS NULL OR status = $4)
    ORDER BY created_at
"""

COUNT_EVENTS_QUERY = """
    SELECT COUNT(*)
    FROM events
    WHERE monitor_id = $1
      AND created_at BETWEEN $2 AND $3
      AND ($4::text IS NULL OR status = $4)
"""


def map_event(record: Record) -> Event:
    details = record["details"]
    return Event(
        id=record["id"],
        monitor_id=record["monitor_id"],
        status=MonitorStatus(record["status"]),
        response_time=record["response_time"],
        message=record["message"],
        created_at=record["created_at"],
        status_code=record["status_code"],
        details=json.loads(details) if isinstance(details, str) else dict(details or {}),
    )


class PostgresEventStore(PostgresStore, EventStore):
    """
    Append-only event persistence in the 'events' table.

    Details are stored as JSONB; values that are not JSON serializable (dates)
    are stored as their string form.
    """

    def __init__(self, pool: Pool) -> None:
        super().__init__(pool)

    async def append(self, event: Event) -> None:
        await self._execute(
            INSERT_EVENT_QUERY,
            event.id,
            event.monitor_id,
            event.status.value,
            event.response_time,
            event.status_code,
            event.message,
            json.dumps(dict(event.details), default=str),
            event.created_at,
        )

    async def query(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> List[Event]:
        records = await self._fetch(
            QUERY_EVENTS_QUERY, monitor_id, start, end, status.value if status else None
        )
        return [map_event(record) for record in records]

    async def count(
        self,
        monitor_id: str,
        start: datetime,
        end: datetime,
        status: Optional[MonitorStatus] = None,
    ) -> int:
        total = await self._fetchval(
            COUNT_EVENTS_QUERY, monitor_id, start, end, status.value if status else None
        )
        return int(total or 0)
