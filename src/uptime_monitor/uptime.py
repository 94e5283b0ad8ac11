"""
Uptime calculations over recorded events.

Uptime is the share of 'up' events among all events of a window. A window
without events has an uptime of 0, never a division error.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List

from .contracts import EventStore
from .domain import Event, MonitorStatus, UptimeDay


def uptime_percentage(up: int, total: int) -> float:
    if total == 0:
        return 0.0
    return 100.0 * up / total


def calculate_uptime(events: Iterable[Event]) -> float:
    total = 0
    up = 0
    for event in events:
        total += 1
        if event.status == MonitorStatus.UP:
            up += 1
    return uptime_percentage(up, total)


async def get_uptime(
    events: EventStore, monitor_id: str, window_days: int, now: datetime
) -> float:
    """
    Computes the uptime of a monitor over the last `window_days` days.

    Args:
        events: The event store to count from.
        monitor_id: The monitor to compute the uptime for.
        window_days: Size of the window, ending at `now`.
        now: End of the window.

    Returns:
        float: The uptime percentage in [0, 100].
    """
    start = now - timedelta(days=window_days)
    total = await events.count(monitor_id, start, now)
    if total == 0:
        return 0.0
    up = await events.count(monitor_id, start, now, status=MonitorStatus.UP)
    return uptime_percentage(up, total)


async def get_uptime_history(
    events: EventStore, monitor_id: str, days: int, now: datetime
) -> List[UptimeDay]:
    """
    Computes the uptime of each UTC calendar day of the last `days` days.

    The list includes today and is ordered oldest first. Uptime values are
    rounded to two decimals.
    """
    today: date = now.astimezone(timezone.utc).date()
    history: List[UptimeDay] = []

    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        end = datetime.combine(day, time.max, tzinfo=timezone.utc)

        total = await events.count(monitor_id, start, end)
        up = await events.count(monitor_id, start, end, status=MonitorStatus.UP) if total else 0
        history.append(
            UptimeDay(
                date=day,
                uptime=round(uptime_percentage(up, total), 2),
                total_checks=total,
                successful_checks=up,
            )
        )

    return history
