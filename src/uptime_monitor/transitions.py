"""
Status transition detection.

A notification is due only when a monitor leaves a known status for a
different one. The first check of a monitor (leaving 'pending') establishes a
baseline and never notifies.
"""

from datetime import datetime
from typing import Optional

from .domain import Event, Monitor, MonitorStatus, NotificationPreferences, NotificationTrigger


def is_notifiable(
    previous: MonitorStatus, current: MonitorStatus, preferences: NotificationPreferences
) -> bool:
    if previous == MonitorStatus.PENDING or previous == current:
        return False
    return preferences.allows(current)


def detect_transition(
    previous: MonitorStatus,
    monitor: Monitor,
    event: Event,
    created_at: Optional[datetime] = None,
) -> Optional[NotificationTrigger]:
    """
    Builds the notification trigger for a check, if the check changed the status.

    Args:
        previous: The monitor's status before this check.
        monitor: The monitor snapshot the check was run for; its preferences
            decide whether the new status is worth a notification.
        event: The event recorded for this check.
        created_at: Time stamped on the trigger; defaults to the event time.

    Returns:
        Optional[NotificationTrigger]: None when no notification is due.
    """
    if not is_notifiable(previous, event.status, monitor.notification_preferences):
        return None

    return NotificationTrigger(
        monitor_id=monitor.id,
        user_id=monitor.user_id,
        previous_status=previous,
        current_status=event.status,
        event_id=event.id,
        created_at=created_at or event.created_at,
        monitor_name=monitor.name,
        monitor_type=monitor.type,
        target=monitor.target_label(),
        message=event.message,
        response_time=event.response_time,
    )
