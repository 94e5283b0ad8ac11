"""
Shared fixtures of the test suite.

Most engine tests run against the in-memory stores, which implement the same
contracts as the PostgreSQL and Redis backends.
"""

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from uptime_monitor.domain import (
    CertificateTarget,
    DomainTarget,
    HostTarget,
    HttpTarget,
    Monitor,
    MonitorType,
    SocketTarget,
)

FIXED_NOW = datetime(2030, 1, 7, 12, 0, 0, tzinfo=timezone.utc)

_DEFAULT_TARGETS = {
    MonitorType.WEBSITE: HttpTarget(url="https://example.com"),
    MonitorType.CRON: HttpTarget(url="https://example.com/heartbeat"),
    MonitorType.KEYWORD: HttpTarget(url="https://example.com", keyword="Welcome"),
    MonitorType.SSL: CertificateTarget(domain="example.com"),
    MonitorType.DOMAIN: DomainTarget(domain="example.com"),
    MonitorType.PING: HostTarget(host="192.0.2.1"),
    MonitorType.PORT: SocketTarget(host="127.0.0.1", port=8080),
    MonitorType.TCP: SocketTarget(host="127.0.0.1", port=5432),
}


class MutableClock:
    """A clock returning a settable time; advance() moves it forward."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta) -> None:
        self.now = self.now + delta


@pytest.fixture
def make_monitor() -> Callable[..., Monitor]:
    """
    Returns a factory building monitors with sensible defaults.

    The target defaults to a valid target for the requested type.
    """

    def factory(monitor_id: str = "m1", monitor_type: MonitorType = MonitorType.WEBSITE, **fields: Any) -> Monitor:
        values = {
            "id": monitor_id,
            "user_id": "u1",
            "name": f"monitor {monitor_id}",
            "type": monitor_type,
            "target": _DEFAULT_TARGETS[monitor_type],
        }
        values.update(fields)
        return Monitor(**values)

    return factory


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()
