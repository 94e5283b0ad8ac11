"""
Static registry binding every monitor type to its checker.

The registry is the boundary of the checker abstraction: it enforces the
monitor's deadline, performs the configured retries and guarantees that no
exception ever escapes a check. Whatever happens, a CheckResult comes out.
"""

import asyncio
import logging
from typing import Dict, Mapping

import aiohttp

from uptime_monitor.checker.certificate_checker import CertificateChecker
from uptime_monitor.checker.domain_checker import DomainChecker
from uptime_monitor.checker.http_checker import HttpChecker, KeywordChecker
from uptime_monitor.checker.ping_checker import PingChecker
from uptime_monitor.checker.results import TIMEOUT_MESSAGE, failure_result
from uptime_monitor.checker.socket_checker import SocketChecker
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CheckResult, Monitor, MonitorStatus, MonitorType
from uptime_monitor.errors import CheckError, ConfigValidationError

# Module logger
logger = logging.getLogger(__name__)

# Extra time granted to a checker to report its own timeout before the
# registry cancels it.
DEADLINE_GRACE_SECONDS = 0.5


class CheckerRegistry:
    """
    Maps each MonitorType to exactly one Checker.

    Port and tcp monitors share one SocketChecker; website and cron monitors
    share one HttpChecker.
    """

    def __init__(self, checkers: Mapping[MonitorType, Checker]) -> None:
        """
        Args:
            checkers: A checker for every monitor type.

        Raises:
            ConfigValidationError: If a monitor type has no checker.
        """
        missing = [monitor_type.value for monitor_type in MonitorType if monitor_type not in checkers]
        if missing:
            raise ConfigValidationError(
                [f"No checker registered for monitor type: {value}" for value in missing]
            )
        self._checkers: Dict[MonitorType, Checker] = dict(checkers)

    @classmethod
    def create_default(cls, session: aiohttp.ClientSession) -> "CheckerRegistry":
        """Builds the registry with the protocol checkers shipped with the engine."""
        http_checker = HttpChecker(session)
        socket_checker = SocketChecker()
        return cls(
            {
                MonitorType.WEBSITE: http_checker,
                MonitorType.CRON: http_checker,
                MonitorType.KEYWORD: KeywordChecker(session),
                MonitorType.SSL: CertificateChecker(),
                MonitorType.DOMAIN: DomainChecker(),
                MonitorType.PING: PingChecker(),
                MonitorType.PORT: socket_checker,
                MonitorType.TCP: socket_checker,
            }
        )

    def checker_for(self, monitor_type: MonitorType) -> Checker:
        return self._checkers[monitor_type]

    async def execute(self, monitor: Monitor) -> CheckResult:
        """
        Runs the monitor's checker, retrying while the outcome is down.

        Args:
            monitor: The monitor to check.

        Returns:
            CheckResult: The result of the last attempt.
        """
        attempts = monitor.retries + 1
        result = await self._execute_once(monitor)
        for attempt in range(2, attempts + 1):
            if result.status == MonitorStatus.UP:
                break
            logger.debug(f"Monitor {monitor.id} is down, retrying (attempt {attempt}/{attempts})")
            result = await self._execute_once(monitor)
        return result

    async def _execute_once(self, monitor: Monitor) -> CheckResult:
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + monitor.timeout
        checker = self._checkers[monitor.type]

        try:
            return await asyncio.wait_for(
                checker.check(monitor, deadline),
                timeout=monitor.timeout + DEADLINE_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            logger.info(f"Check of monitor {monitor.id} exceeded its {monitor.timeout}s timeout")
            return CheckResult(
                status=MonitorStatus.DOWN,
                response_time_ms=monitor.timeout * 1000,
                message=TIMEOUT_MESSAGE,
                details={"error": "TIMEOUT", "timeout": monitor.timeout},
            )
        except CheckError as e:
            return failure_result(e, int((loop.time() - started) * 1000))
        except Exception as e:
            logger.exception(f"Checker for monitor {monitor.id} raised an unexpected error")
            return CheckResult(
                status=MonitorStatus.DOWN,
                response_time_ms=int((loop.time() - started) * 1000),
                message=f"Error during check: {e}",
                details={"error": "CHECK_FAILED", "errorName": type(e).__name__, "errorMessage": str(e)},
            )
