"""
TCP connect checker shared by port and tcp monitors.
"""

import asyncio
import logging
import time

from uptime_monitor.checker.results import elapsed_ms, failure_result
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CheckResult, Monitor, MonitorStatus, SocketTarget
from uptime_monitor.errors import CheckError, CheckTimeoutError, NetworkError

# Module logger
logger = logging.getLogger(__name__)


class SocketChecker(Checker):
    """
    Checks port and tcp monitors.

    The port is up iff a TCP connection to host:port completes before the
    deadline. The connection is closed immediately.
    """

    async def _connect(self, host: str, port: int, deadline: float) -> None:
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise CheckTimeoutError(f"Connection to port {port} timed out") from e
        except ConnectionRefusedError as e:
            raise NetworkError(f"Connection to port {port} refused", "CONNECTION_REFUSED") from e
        except OSError as e:
            raise NetworkError(f"Connection to {host}:{port} failed: {e}") from e

        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug(f"Error closing connection to {host}:{port}: {e}")

    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        target: SocketTarget = monitor.target
        start = time.perf_counter()

        try:
            await self._connect(target.host, target.port, deadline)
        except CheckError as e:
            return failure_result(e, elapsed_ms(start), host=target.host, port=target.port)

        return CheckResult(
            status=MonitorStatus.UP,
            response_time_ms=elapsed_ms(start),
            message=f"Port {target.port} is open",
            details={"host": target.host, "port": target.port},
        )
