"""
PostgreSQL-based implementation of the MonitorStore interface.

Targets are stored in typed nullable columns (url, domain, host, port...); the
monitor type decides which of them form the target payload.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from asyncpg import Pool, Record

from uptime_monitor.contracts import MonitorStore
from uptime_monitor.domain import (
    CertificateTarget,
    DomainTarget,
    HostTarget,
    HttpTarget,
    Monitor,
    MonitorStatus,
    MonitorTarget,
    MonitorType,
    NotificationPreferences,
    SocketTarget,
)
from uptime_monitor.storage.postgres_base import PostgresStore

# Module logger
logger = logging.getLogger(__name__)

SELECT_COLUMNS = """
    id, user_id, name, type, url, expected_status_code, keyword, domain, host, port,
    interval_minutes, timeout_seconds, retries, active, status, last_checked,
    next_check_due, last_response_time, notify_on_up, notify_on_down
"""

GET_MONITOR_QUERY = f"SELECT {SELECT_COLUMNS} FROM monitors WHERE id = $1"

LIST_ACTIVE_QUERY = f"SELECT {SELECT_COLUMNS} FROM monitors WHERE active ORDER BY id"

UPSERT_MONITOR_QUERY = """
    INSERT INTO monitors (
        id, user_id, name, type, url, expected_status_code, keyword, domain, host, port,
        interval_minutes, timeout_seconds, retries, active, status, last_checked,
        next_check_due, last_response_time, notify_on_up, notify_on_down
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17, $18, $19, $20)
    ON CONFLICT (id) DO UPDATE SET
        user_id = EXCLUDED.user_id,
        name = EXCLUDED.name,
        url = EXCLUDED.url,
        expected_status_code = EXCLUDED.expected_status_code,
        keyword = EXCLUDED.keyword,
        domain = EXCLUDED.domain,
        host = EXCLUDED.host,
        port = EXCLUDED.port,
        interval_minutes = EXCLUDED.interval_minutes,
        timeout_seconds = EXCLUDED.timeout_seconds,
        retries = EXCLUDED.retries,
        active = EXCLUDED.active,
        notify_on_up = EXCLUDED.notify_on_up,
        notify_on_down = EXCLUDED.notify_on_down
"""

# Monitor fields stored in a column of a different name.
_COLUMN_NAMES = {
    "interval": "interval_minutes",
    "timeout": "timeout_seconds",
}

_SCALAR_FIELDS = {
    "user_id",
    "name",
    "interval",
    "timeout",
    "retries",
    "active",
    "status",
    "last_checked",
    "next_check_due",
    "last_response_time",
}


def map_target(monitor_type: MonitorType, record: Record) -> MonitorTarget:
    if monitor_type in (MonitorType.WEBSITE, MonitorType.CRON, MonitorType.KEYWORD):
        return HttpTarget(
            url=record["url"],
            expected_status_code=record["expected_status_code"],
            keyword=record["keyword"],
        )
    if monitor_type == MonitorType.SSL:
        return CertificateTarget(domain=record["domain"], port=record["port"] or 443)
    if monitor_type == MonitorType.DOMAIN:
        return DomainTarget(domain=record["domain"])
    if monitor_type == MonitorType.PING:
        return HostTarget(host=record["host"])
    return SocketTarget(host=record["host"], port=record["port"])


def map_monitor(record: Record) -> Monitor:
    """
    Converts a database record to a Monitor domain object.
    """
    monitor_type = MonitorType(record["type"])
    return Monitor(
        id=record["id"],
        user_id=record["user_id"],
        name=record["name"],
        type=monitor_type,
        target=map_target(monitor_type, record),
        interval=record["interval_minutes"],
        timeout=record["timeout_seconds"],
        retries=record["retries"],
        active=record["active"],
        status=MonitorStatus(record["status"]),
        last_checked=record["last_checked"],
        next_check_due=record["next_check_due"],
        last_response_time=record["last_response_time"],
        notification_preferences=NotificationPreferences(
            notify_on_up=record["notify_on_up"], notify_on_down=record["notify_on_down"]
        ),
    )


def target_columns(target: MonitorTarget) -> Dict[str, Any]:
    columns: Dict[str, Any] = {
        "url": None,
        "expected_status_code": None,
        "keyword": None,
        "domain": None,
        "host": None,
        "port": None,
    }
    if isinstance(target, HttpTarget):
        columns.update(
            url=target.url, expected_status_code=target.expected_status_code, keyword=target.keyword
        )
    elif isinstance(target, CertificateTarget):
        columns.update(domain=target.domain, port=target.port)
    elif isinstance(target, DomainTarget):
        columns.update(domain=target.domain)
    elif isinstance(target, SocketTarget):
        columns.update(host=target.host, port=target.port)
    else:
        columns.update(host=target.host)
    return columns


def _column_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def build_update(monitor_id: str, fields: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """
    Builds a partial UPDATE statement touching only the given fields.

    Raises:
        ValueError: If a field cannot be updated.
    """
    columns: Dict[str, Any] = {}
    for field, value in fields.items():
        if field in _SCALAR_FIELDS:
            columns[_COLUMN_NAMES.get(field, field)] = _column_value(value)
        elif field == "target":
            columns.update(target_columns(value))
        elif field == "notification_preferences":
            columns["notify_on_up"] = value.notify_on_up
            columns["notify_on_down"] = value.notify_on_down
        else:
            raise ValueError(f"Monitor field cannot be updated: {field}")

    assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(columns, start=2))
    return f"UPDATE monitors SET {assignments} WHERE id = $1", [monitor_id, *columns.values()]


class PostgresMonitorStore(PostgresStore, MonitorStore):
    """
    Monitor persistence in the 'monitors' table.
    """

    def __init__(self, pool: Pool) -> None:
        super().__init__(pool)

    async def get(self, monitor_id: str) -> Optional[Monitor]:
        record = await self._fetchrow(GET_MONITOR_QUERY, monitor_id)
        return map_monitor(record) if record is not None else None

    async def list_active(self) -> List[Monitor]:
        records = await self._fetch(LIST_ACTIVE_QUERY)
        return [map_monitor(record) for record in records]

    async def update(self, monitor_id: str, **fields: Any) -> None:
        if not fields:
            return
        query, args = build_update(monitor_id, fields)
        await self._execute(query, *args)

    async def add(self, monitor: Monitor) -> None:
        target = target_columns(monitor.target)
        await self._execute(
            UPSERT_MONITOR_QUERY,
            monitor.id,
            monitor.user_id,
            monitor.name,
            monitor.type.value,
            target["url"],
            target["expected_status_code"],
            target["keyword"],
            target["domain"],
            target["host"],
            target["port"],
            monitor.interval,
            monitor.timeout,
            monitor.retries,
            monitor.active,
            monitor.status.value,
            monitor.last_checked,
            monitor.next_check_due,
            monitor.last_response_time,
            monitor.notification_preferences.notify_on_up,
            monitor.notification_preferences.notify_on_down,
        )
