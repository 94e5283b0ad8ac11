"""
Exception hierarchy for the uptime monitoring system.

Only configuration errors and manual-check contention ever reach callers of the
engine. Check errors are converted into down results by the checker registry,
persistence errors are retried and logged by the pipeline, and delivery errors
are absorbed by the notification queue state machine.
"""

from typing import List, Optional


class MonitoringError(Exception):
    """Base class for every error raised by the monitoring engine."""


class ConfigValidationError(MonitoringError):
    """A monitor configuration is missing a required field or is out of bounds."""

    def __init__(self, errors: List[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors: List[str] = list(errors)


class CheckError(MonitoringError):
    """
    Base class for protocol-level failures during a check.

    Attributes:
        error_type: Short machine-readable code stored in the event details.
    """

    error_type: str = "CHECK_ERROR"

    def __init__(self, message: str, error_type: Optional[str] = None) -> None:
        super().__init__(message)
        if error_type is not None:
            self.error_type = error_type


class CheckTimeoutError(CheckError):
    error_type = "TIMEOUT"


class NetworkError(CheckError):
    error_type = "NETWORK_ERROR"


class ProtocolError(CheckError):
    error_type = "PROTOCOL_ERROR"


class PersistenceError(MonitoringError):
    """Appending an event or updating a monitor failed."""


class NotificationDeliveryError(MonitoringError):
    """A channel could not deliver a notification."""


class CheckInProgressError(MonitoringError):
    """A manual check could not claim the monitor because another check holds its lock."""
