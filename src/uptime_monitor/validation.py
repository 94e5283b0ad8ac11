"""
Validation of monitor configurations.

Validation is a pure function invoked before any scheduling or persistence
decision. It turns a raw monitor document (as received from the API layer,
using the persisted camelCase field names) into a typed Monitor whose target
payload matches its type, or raises ConfigValidationError listing every
problem found.
"""

import ipaddress
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse

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
from uptime_monitor.errors import ConfigValidationError

MIN_INTERVAL_MINUTES = 1
MAX_INTERVAL_MINUTES = 1440
DEFAULT_INTERVAL_MINUTES = 5
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 120
DEFAULT_TIMEOUT_SECONDS = 30
MAX_RETRIES = 5

HTTP_TYPES = (MonitorType.WEBSITE, MonitorType.CRON, MonitorType.KEYWORD)
DOMAIN_TYPES = (MonitorType.SSL, MonitorType.DOMAIN)
SOCKET_TYPES = (MonitorType.PORT, MonitorType.TCP)

_DOMAIN_PATTERN = re.compile(
    r"^(?=.{1,253}$)(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,63}$"
)
_HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def is_valid_url(url: Any) -> bool:
    if not isinstance(url, str) or not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def is_valid_domain(domain: Any) -> bool:
    return isinstance(domain, str) and bool(_DOMAIN_PATTERN.match(domain))


def is_valid_host(host: Any) -> bool:
    """Accepts IPv4/IPv6 addresses and hostnames."""
    if not isinstance(host, str) or not host:
        return False
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(_HOSTNAME_PATTERN.match(host))


def is_valid_port(port: Any) -> bool:
    return _is_int(port) and 0 < port <= 65535


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def sanitize_monitor_data(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalizes a raw monitor document.

    Trims string fields, resolves the legacy aliases ('ip' for 'host',
    'expectedStatus' for 'expectedStatusCode'), and converts numeric and boolean
    strings coming from form-encoded input.

    Args:
        data: The raw monitor document.

    Returns:
        Dict[str, Any]: A sanitized copy of the document.
    """
    sanitized: Dict[str, Any] = dict(data)

    if "host" not in sanitized and "ip" in sanitized:
        sanitized["host"] = sanitized.pop("ip")
    if "expectedStatusCode" not in sanitized and "expectedStatus" in sanitized:
        sanitized["expectedStatusCode"] = sanitized.pop("expectedStatus")

    for field in ("name", "url", "domain", "host", "keyword"):
        if isinstance(sanitized.get(field), str):
            sanitized[field] = sanitized[field].strip()

    for field in ("port", "interval", "timeout", "retries", "expectedStatusCode"):
        value = sanitized.get(field)
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            sanitized[field] = int(value.strip())

    if isinstance(sanitized.get("active"), str):
        sanitized["active"] = sanitized["active"].lower() == "true"

    return sanitized


def _check_bounded_int(
    data: Mapping[str, Any], field: str, low: int, high: int, errors: List[str], unit: str
) -> None:
    value = data.get(field)
    if value is None:
        return
    if not _is_int(value) or not low <= value <= high:
        errors.append(f"{field.capitalize()} must be a number between {low} and {high} {unit}")


def _build_target(monitor_type: MonitorType, data: Mapping[str, Any], errors: List[str]) -> Optional[MonitorTarget]:
    if monitor_type in HTTP_TYPES:
        url = data.get("url")
        if not is_valid_url(url):
            errors.append("Valid URL is required for this monitor type")
        keyword = data.get("keyword")
        if monitor_type == MonitorType.KEYWORD and (not isinstance(keyword, str) or not keyword):
            errors.append("Keyword is required for this monitor type")
        expected = data.get("expectedStatusCode")
        if expected is not None and (not _is_int(expected) or not 100 <= expected <= 599):
            errors.append("Expected status code must be a number between 100 and 599")
        return HttpTarget(
            url=url,
            expected_status_code=expected,
            keyword=keyword if monitor_type == MonitorType.KEYWORD else None,
        )

    if monitor_type in DOMAIN_TYPES:
        domain = data.get("domain")
        if not is_valid_domain(domain):
            errors.append("Valid domain is required for this monitor type")
        if monitor_type == MonitorType.SSL:
            return CertificateTarget(domain=domain)
        return DomainTarget(domain=domain)

    host = data.get("host")
    if not is_valid_host(host):
        errors.append("Valid IP address or hostname is required for this monitor type")
    if monitor_type == MonitorType.PING:
        return HostTarget(host=host)

    port = data.get("port")
    if not is_valid_port(port):
        errors.append("Valid port number (1-65535) is required for this monitor type")
    return SocketTarget(host=host, port=port)


def _build_preferences(data: Mapping[str, Any]) -> NotificationPreferences:
    raw = data.get("notificationPreferences") or {}
    return NotificationPreferences(
        notify_on_up=bool(raw.get("notifyOnUp", True)),
        notify_on_down=bool(raw.get("notifyOnDown", True)),
    )


def validate_monitor(data: Mapping[str, Any]) -> Monitor:
    """
    Validates a monitor document and builds the typed Monitor.

    Args:
        data: The monitor document using the persisted field names.

    Returns:
        Monitor: The validated monitor with a target matching its type.

    Raises:
        ConfigValidationError: If any field is missing or out of bounds. All
            problems are collected before raising.
    """
    data = sanitize_monitor_data(data)
    errors: List[str] = []

    monitor_id = data.get("id")
    if monitor_id is None or str(monitor_id) == "":
        errors.append("Id is required")
    user_id = data.get("userId")
    if user_id is None or str(user_id) == "":
        errors.append("User id is required")
    name = data.get("name")
    if not isinstance(name, str) or not name:
        errors.append("Name is required")

    monitor_type: Optional[MonitorType] = None
    try:
        monitor_type = MonitorType(data.get("type"))
    except ValueError:
        errors.append(f"Type must be one of: {', '.join(t.value for t in MonitorType)}")

    target = _build_target(monitor_type, data, errors) if monitor_type else None

    _check_bounded_int(data, "interval", MIN_INTERVAL_MINUTES, MAX_INTERVAL_MINUTES, errors, "minutes")
    _check_bounded_int(data, "timeout", MIN_TIMEOUT_SECONDS, MAX_TIMEOUT_SECONDS, errors, "seconds")
    _check_bounded_int(data, "retries", 0, MAX_RETRIES, errors, "attempts")

    status = data.get("status", MonitorStatus.PENDING.value)
    try:
        status = MonitorStatus(status)
    except ValueError:
        errors.append(f"Status must be one of: {', '.join(s.value for s in MonitorStatus)}")

    if errors:
        raise ConfigValidationError(errors)

    return Monitor(
        id=str(monitor_id),
        user_id=str(user_id),
        name=name,
        type=monitor_type,
        target=target,
        interval=data.get("interval", DEFAULT_INTERVAL_MINUTES),
        timeout=data.get("timeout", DEFAULT_TIMEOUT_SECONDS),
        retries=data.get("retries", 0),
        active=bool(data.get("active", True)),
        status=status,
        last_checked=_as_datetime(data.get("lastChecked")),
        next_check_due=_as_datetime(data.get("nextCheckDue")),
        last_response_time=data.get("lastResponseTime"),
        notification_preferences=_build_preferences(data),
    )


def validate_update(existing: Monitor, changes: Mapping[str, Any]) -> Monitor:
    """
    Applies a partial update to an existing monitor and validates the result.

    The monitor type is immutable; attempting to change it is a validation error.

    Raises:
        ConfigValidationError: If the update changes the type or produces an
            invalid configuration.
    """
    changes = sanitize_monitor_data(changes)
    if "type" in changes and changes["type"] != existing.type.value:
        raise ConfigValidationError(["Monitor type cannot be changed after creation"])

    document = existing.as_document()
    if "notificationPreferences" in changes:
        document["notificationPreferences"] = {
            **document["notificationPreferences"],
            **(changes["notificationPreferences"] or {}),
        }
        changes = {k: v for k, v in changes.items() if k != "notificationPreferences"}
    document.update(changes)
    return validate_monitor(document)


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
