"""
Unit tests for status transition detection.
"""

from datetime import datetime, timedelta, timezone

from uptime_monitor.domain import Event, MonitorStatus, NotificationPreferences
from uptime_monitor.transitions import detect_transition, is_notifiable

UP = MonitorStatus.UP
DOWN = MonitorStatus.DOWN
PENDING = MonitorStatus.PENDING


def make_event(index: int, status: MonitorStatus) -> Event:
    return Event(
        id=f"e{index}",
        monitor_id="m1",
        status=status,
        response_time=100,
        message=status.value,
        created_at=datetime(2030, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=index),
    )


def test_first_check_never_notifies():
    assert not is_notifiable(PENDING, UP, NotificationPreferences())
    assert not is_notifiable(PENDING, DOWN, NotificationPreferences())


def test_sequence_produces_one_trigger_per_change(make_monitor):
    # Arrange
    monitor = make_monitor()
    previous = PENDING
    triggers = []

    # Act
    for index, status in enumerate([UP, UP, DOWN, DOWN, UP]):
        trigger = detect_transition(previous, monitor, make_event(index, status))
        if trigger is not None:
            triggers.append(trigger)
        previous = status

    # Assert
    assert [(t.previous_status, t.current_status) for t in triggers] == [(UP, DOWN), (DOWN, UP)]
    assert [t.event_id for t in triggers] == ["e2", "e4"]


def test_disabled_preference_suppresses_trigger(make_monitor):
    monitor = make_monitor(notification_preferences=NotificationPreferences(notify_on_up=False))

    assert detect_transition(DOWN, monitor, make_event(1, UP)) is None
    assert detect_transition(UP, monitor, make_event(2, DOWN)) is not None


def test_trigger_carries_monitor_context(make_monitor):
    monitor = make_monitor(name="Home page")
    event = make_event(3, DOWN)

    trigger = detect_transition(UP, monitor, event)

    assert trigger.monitor_id == "m1"
    assert trigger.user_id == "u1"
    assert trigger.monitor_name == "Home page"
    assert trigger.target == "https://example.com"
    assert trigger.created_at == event.created_at
    assert trigger.response_time == 100
