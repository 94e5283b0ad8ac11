"""
Helpers shared by the protocol checkers to build check results.
"""

import time
from typing import Any, Optional

from uptime_monitor.domain import CheckResult, MonitorStatus
from uptime_monitor.errors import CheckError, CheckTimeoutError

# Maximum number of characters of a response body kept in event details
BODY_PREVIEW_LIMIT = 500

# Message of every result whose check ran past its deadline
TIMEOUT_MESSAGE = "timeout"


def elapsed_ms(start: float) -> int:
    """Milliseconds elapsed since a time.perf_counter() reading."""
    return max(0, int(round((time.perf_counter() - start) * 1000)))


def failure_result(
    error: CheckError,
    response_time_ms: int,
    status_code: Optional[int] = None,
    **details: Any,
) -> CheckResult:
    """
    Converts a protocol error into a down result.

    The error code is stored under details['error'] and the original message
    under details['errorMessage']. Timeouts always carry the "timeout" message,
    whichever checker noticed the deadline.
    """
    message = TIMEOUT_MESSAGE if isinstance(error, CheckTimeoutError) else str(error)
    return CheckResult(
        status=MonitorStatus.DOWN,
        response_time_ms=response_time_ms,
        message=message,
        status_code=status_code,
        details={**details, "error": error.error_type, "errorMessage": str(error)},
    )


def truncate(text: Optional[str], limit: int = BODY_PREVIEW_LIMIT) -> Optional[str]:
    if text is None:
        return None
    return text[:limit]
