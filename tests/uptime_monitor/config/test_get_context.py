"""
Tests for building the MonitoringContext from arguments and environment variables.
"""

from unittest.mock import patch

import pytest

from uptime_monitor.config import get_context
from uptime_monitor.config.constants import (
    DEFAULT_COORDINATION,
    DEFAULT_DSN,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_TICK_SECONDS,
    DEFAULT_WORKER_ID_PREFIX,
)


def test_defaults_are_used_without_arguments_or_environment():
    with patch.dict("os.environ", {}, clear=True):
        context = get_context([])

    assert context.dsn == DEFAULT_DSN
    assert context.coordination == DEFAULT_COORDINATION
    assert context.queue_size == DEFAULT_QUEUE_SIZE
    assert context.tick_seconds == DEFAULT_TICK_SECONDS
    assert context.worker_id.startswith(DEFAULT_WORKER_ID_PREFIX)
    assert context.notification_service_url == ""


def test_environment_overrides_defaults():
    environment = {
        "UPTIME_MONITOR_DSN": "postgresql://monitor@db:5432/monitor",
        "UPTIME_MONITOR_WORKER_NUMBER": "8",
        "UPTIME_MONITOR_COORDINATION": "memory",
        "UPTIME_MONITOR_WORKER_ID": "instance-a",
    }

    with patch.dict("os.environ", environment, clear=True):
        context = get_context([])

    assert context.dsn == "postgresql://monitor@db:5432/monitor"
    assert context.worker_number == 8
    assert context.coordination == "memory"
    assert context.worker_id == "instance-a"


def test_arguments_override_environment():
    with patch.dict("os.environ", {"UPTIME_MONITOR_QUEUE_SIZE": "50"}, clear=True):
        context = get_context(["--queue-size", "10", "-ts", "30", "--lock-ttl", "15"])

    assert context.queue_size == 10
    assert context.tick_seconds == 30
    assert context.lock_ttl == 15


def test_unknown_coordination_backend_is_rejected():
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(SystemExit):
            get_context(["--coordination", "zookeeper"])
