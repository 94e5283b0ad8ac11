"""
Domain models for the uptime monitoring system.

This module defines the core data structures used throughout the application,
including monitors and their typed targets, check results, events, and the
notification triggers produced on status transitions. These models serve as the
foundation for the monitoring system's data flow.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Mapping, NamedTuple, Optional, Union


# Shared read-only details of results and events built without any
NO_DETAILS: Mapping[str, Any] = MappingProxyType({})


class MonitorType(str, Enum):
    """
    The closed set of monitor types.

    Inheriting from 'str' allows enum members to behave like strings, so the
    values can be persisted and compared directly. The values are part of the
    persisted contract and must not change.
    """

    WEBSITE = "website"
    SSL = "ssl"
    DOMAIN = "domain"
    PING = "ping"
    PORT = "port"
    TCP = "tcp"
    CRON = "cron"
    KEYWORD = "keyword"


class MonitorStatus(str, Enum):
    """Status of a monitor. Events only ever carry UP or DOWN."""

    PENDING = "pending"
    UP = "up"
    DOWN = "down"


class QueueState(str, Enum):
    """Delivery state of a notification queue item."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class HttpTarget(NamedTuple):
    """Target of website, cron and keyword monitors."""

    url: str
    expected_status_code: Optional[int] = None
    keyword: Optional[str] = None


class CertificateTarget(NamedTuple):
    """Target of ssl monitors."""

    domain: str
    port: int = 443


class DomainTarget(NamedTuple):
    """Target of domain monitors."""

    domain: str


class HostTarget(NamedTuple):
    """Target of ping monitors."""

    host: str


class SocketTarget(NamedTuple):
    """Target of port and tcp monitors."""

    host: str
    port: int


MonitorTarget = Union[HttpTarget, CertificateTarget, DomainTarget, HostTarget, SocketTarget]


class NotificationPreferences(NamedTuple):
    """Gates whether a transition towards a given status produces a notification."""

    notify_on_up: bool = True
    notify_on_down: bool = True

    def allows(self, status: MonitorStatus) -> bool:
        if status == MonitorStatus.UP:
            return self.notify_on_up
        if status == MonitorStatus.DOWN:
            return self.notify_on_down
        return False


class Monitor(NamedTuple):
    """
    A single probe configuration with its scheduling state.

    The target is a typed payload bound to the monitor type at validation time,
    so checkers never have to guess which fields exist.

    Attributes:
        id: The unique identifier of the monitor.
        user_id: The owner of the monitor.
        name: Human-readable name.
        type: The monitor type, fixed at creation.
        target: The typed target payload matching the type.
        interval: Check interval in minutes.
        timeout: Timeout of a single check in seconds.
        retries: Extra attempts performed while the outcome is down.
        active: False when the monitor is paused.
        status: Last known status.
        last_checked: Time of the last completed check.
        next_check_due: Time the next check is expected.
        last_response_time: Response time of the last check in milliseconds.
        notification_preferences: Which transitions produce notifications.
    """

    id: str
    user_id: str
    name: str
    type: MonitorType
    target: MonitorTarget
    interval: int = 5
    timeout: int = 30
    retries: int = 0
    active: bool = True
    status: MonitorStatus = MonitorStatus.PENDING
    last_checked: Optional[datetime] = None
    next_check_due: Optional[datetime] = None
    last_response_time: Optional[int] = None
    notification_preferences: NotificationPreferences = NotificationPreferences()

    @property
    def check_interval(self) -> timedelta:
        return timedelta(minutes=self.interval)

    def target_label(self) -> str:
        """Returns the url, domain or host the monitor points at."""
        target = self.target
        if isinstance(target, HttpTarget):
            return target.url
        if isinstance(target, (CertificateTarget, DomainTarget)):
            return target.domain
        if isinstance(target, SocketTarget):
            return f"{target.host}:{target.port}"
        return target.host

    def as_document(self) -> Dict[str, Any]:
        """Serializes the monitor using the persisted field names."""
        document: Dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "type": self.type.value,
            "interval": self.interval,
            "timeout": self.timeout,
            "retries": self.retries,
            "active": self.active,
            "status": self.status.value,
            "lastChecked": self.last_checked,
            "nextCheckDue": self.next_check_due,
            "lastResponseTime": self.last_response_time,
            "notificationPreferences": {
                "notifyOnUp": self.notification_preferences.notify_on_up,
                "notifyOnDown": self.notification_preferences.notify_on_down,
            },
        }
        target = self.target
        if isinstance(target, HttpTarget):
            document["url"] = target.url
            if target.expected_status_code is not None:
                document["expectedStatusCode"] = target.expected_status_code
            if target.keyword is not None:
                document["keyword"] = target.keyword
        elif isinstance(target, (CertificateTarget, DomainTarget)):
            document["domain"] = target.domain
        elif isinstance(target, SocketTarget):
            document["host"] = target.host
            document["port"] = target.port
        else:
            document["host"] = target.host
        return document


class CheckResult(NamedTuple):
    """
    The outcome of a single check as produced by a checker.

    Attributes:
        status: UP or DOWN.
        response_time_ms: Duration of the check in milliseconds.
        message: Human-readable outcome.
        status_code: Protocol status code, when the protocol has one.
        details: Structured protocol-specific payload.
    """

    status: MonitorStatus
    response_time_ms: int
    message: str
    status_code: Optional[int] = None
    details: Mapping[str, Any] = NO_DETAILS


class CheckOutcome(NamedTuple):
    """A check result together with the monitor snapshot it was produced for."""

    monitor: Monitor
    result: CheckResult
    checked_at: datetime


class Event(NamedTuple):
    """An immutable record of one check execution."""

    id: str
    monitor_id: str
    status: MonitorStatus
    response_time: int
    message: str
    created_at: datetime
    status_code: Optional[int] = None
    details: Mapping[str, Any] = NO_DETAILS

    def as_document(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "monitorId": self.monitor_id,
            "status": self.status.value,
            "responseTime": self.response_time,
            "statusCode": self.status_code,
            "message": self.message,
            "details": dict(self.details),
            "createdAt": self.created_at,
        }


class NotificationTrigger(NamedTuple):
    """
    A detected status transition awaiting delivery.

    Besides the transition itself, the trigger carries enough monitor context
    for channels to render a message without reading the monitor again.
    """

    monitor_id: str
    user_id: str
    previous_status: MonitorStatus
    current_status: MonitorStatus
    event_id: str
    created_at: datetime
    monitor_name: str = ""
    monitor_type: Optional[MonitorType] = None
    target: str = ""
    message: str = ""
    response_time: int = 0

    def as_payload(self) -> Dict[str, Any]:
        """Builds the payload handed to notification channels."""
        return {
            "type": "status_change",
            "monitor": {
                "id": self.monitor_id,
                "name": self.monitor_name,
                "type": self.monitor_type.value if self.monitor_type else None,
                "url": self.target,
            },
            "event": {
                "id": self.event_id,
                "previousStatus": self.previous_status.value,
                "currentStatus": self.current_status.value,
                "message": self.message,
                "responseTime": self.response_time,
                "time": self.created_at.isoformat(),
            },
            "userId": self.user_id,
        }


class QueueItem(NamedTuple):
    """A notification trigger persisted in the retry queue."""

    id: str
    trigger: NotificationTrigger
    state: QueueState
    created_at: datetime
    attempts: int = 0
    processed: bool = False
    processed_at: Optional[datetime] = None
    error: Optional[str] = None
    delivered_channels: FrozenSet[str] = frozenset()
    updated_at: Optional[datetime] = None


class ChannelFilters(NamedTuple):
    """Restricts which notifications a channel receives. Empty lists mean 'all'."""

    monitor_ids: FrozenSet[str] = frozenset()
    monitor_types: FrozenSet[MonitorType] = frozenset()
    notify_on_up: bool = True
    notify_on_down: bool = True


class Channel(NamedTuple):
    """A delivery channel configured by a user."""

    id: str
    user_id: str
    type: str
    config: Dict[str, Any]
    active: bool = True
    filters: ChannelFilters = ChannelFilters()


class UptimeDay(NamedTuple):
    """Uptime of a monitor over a single calendar day."""

    date: date
    uptime: float
    total_checks: int
    successful_checks: int
