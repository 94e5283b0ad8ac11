"""
Unit tests for monitor validation.
"""

import pytest

from uptime_monitor.domain import (
    CertificateTarget,
    HostTarget,
    HttpTarget,
    MonitorStatus,
    MonitorType,
    SocketTarget,
)
from uptime_monitor.errors import ConfigValidationError
from uptime_monitor.validation import (
    is_valid_domain,
    is_valid_host,
    sanitize_monitor_data,
    validate_monitor,
    validate_update,
)


def document(**fields):
    base = {"id": "m1", "userId": "u1", "name": "Home page", "type": "website", "url": "https://example.com"}
    base.update(fields)
    return base


def test_website_monitor_gets_defaults():
    monitor = validate_monitor(document())

    assert monitor.type == MonitorType.WEBSITE
    assert monitor.target == HttpTarget(url="https://example.com")
    assert monitor.interval == 5
    assert monitor.timeout == 30
    assert monitor.retries == 0
    assert monitor.active is True
    assert monitor.status == MonitorStatus.PENDING


def test_port_monitor_without_port_is_rejected():
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_monitor(document(type="port", url=None, host="127.0.0.1"))

    assert "Valid port number (1-65535) is required for this monitor type" in exc_info.value.errors


def test_port_monitor_accepts_legacy_ip_alias_and_string_port():
    monitor = validate_monitor(document(type="port", url=None, ip=" 10.0.0.5 ", port="8080"))

    assert monitor.target == SocketTarget(host="10.0.0.5", port=8080)


def test_keyword_monitor_requires_keyword():
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_monitor(document(type="keyword"))

    assert exc_info.value.errors == ["Keyword is required for this monitor type"]


def test_ssl_monitor_builds_certificate_target():
    monitor = validate_monitor(document(type="ssl", url=None, domain="example.com"))

    assert monitor.target == CertificateTarget(domain="example.com")


def test_ping_monitor_accepts_hostname():
    monitor = validate_monitor(document(type="ping", url=None, host="gateway.local"))

    assert monitor.target == HostTarget(host="gateway.local")


@pytest.mark.parametrize(
    "field, value, message",
    [
        ("interval", 0, "Interval must be a number between 1 and 1440 minutes"),
        ("interval", 1441, "Interval must be a number between 1 and 1440 minutes"),
        ("timeout", 121, "Timeout must be a number between 1 and 120 seconds"),
        ("retries", 6, "Retries must be a number between 0 and 5 attempts"),
    ],
)
def test_bounds_are_enforced(field, value, message):
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_monitor(document(**{field: value}))

    assert message in exc_info.value.errors


def test_all_errors_are_collected():
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_monitor({"type": "unknown"})

    errors = exc_info.value.errors
    assert "Id is required" in errors
    assert "User id is required" in errors
    assert "Name is required" in errors
    assert any(error.startswith("Type must be one of") for error in errors)


def test_expected_status_alias_is_accepted():
    monitor = validate_monitor(document(expectedStatus="204"))

    assert monitor.target.expected_status_code == 204


def test_preferences_are_read_from_document():
    monitor = validate_monitor(document(notificationPreferences={"notifyOnUp": False}))

    assert monitor.notification_preferences.notify_on_up is False
    assert monitor.notification_preferences.notify_on_down is True


def test_update_cannot_change_type():
    existing = validate_monitor(document())

    with pytest.raises(ConfigValidationError) as exc_info:
        validate_update(existing, {"type": "ping"})

    assert exc_info.value.errors == ["Monitor type cannot be changed after creation"]


def test_update_merges_changes():
    existing = validate_monitor(document())

    updated = validate_update(existing, {"interval": 10, "notificationPreferences": {"notifyOnDown": False}})

    assert updated.interval == 10
    assert updated.notification_preferences.notify_on_up is True
    assert updated.notification_preferences.notify_on_down is False
    assert updated.target == existing.target


def test_sanitize_converts_active_string():
    assert sanitize_monitor_data({"active": "false"})["active"] is False


def test_domain_and_host_helpers():
    assert is_valid_domain("sub.example.co.uk")
    assert not is_valid_domain("not a domain")
    assert is_valid_host("::1")
    assert is_valid_host("localhost")
    assert not is_valid_host("")
