"""
ICMP echo checker.

Sending raw ICMP packets requires elevated privileges, so the checker runs the
system 'ping' utility in a subprocess and parses its output.
"""

import asyncio
import logging
import math
import re
import time
from typing import List, Optional

from uptime_monitor.checker.results import elapsed_ms, failure_result, truncate
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CheckResult, HostTarget, Monitor, MonitorStatus
from uptime_monitor.errors import CheckError, CheckTimeoutError, NetworkError, ProtocolError

# Module logger
logger = logging.getLogger(__name__)

# Example line: "64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=14.2 ms"
RTT_PATTERN = re.compile(r"time[=<](\d+(?:\.\d+)?)\s*ms")


def parse_round_trip(output: str) -> Optional[float]:
    """Returns the round-trip time in milliseconds of the first reply, if any."""
    match = RTT_PATTERN.search(output)
    return float(match.group(1)) if match else None


class PingChecker(Checker):
    """
    Checks ping monitors with a single echo request.

    The host is up iff a reply is received before the deadline.
    """

    def __init__(self, executable: str = "ping") -> None:
        self._executable: str = executable

    def _command(self, host: str, timeout: float) -> List[str]:
        wait_seconds = max(1, math.ceil(timeout))
        return [self._executable, "-c", "1", "-W", str(wait_seconds), host]

    async def _ping(self, host: str, deadline: float) -> str:
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command(host, timeout),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ProtocolError(f"'{self._executable}' executable not found", "PING_UNAVAILABLE") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise CheckTimeoutError(f"Ping to {host} timed out") from e

        output = stdout.decode(errors="replace")
        if proc.returncode != 0:
            reason = stderr.decode(errors="replace").strip() or "Host unreachable"
            raise NetworkError(f"Ping failed: {reason}", "HOST_UNREACHABLE")
        return output

    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        target: HostTarget = monitor.target
        start = time.perf_counter()

        try:
            output = await self._ping(target.host, deadline)
        except CheckError as e:
            return failure_result(e, elapsed_ms(start), host=target.host)

        response_time = elapsed_ms(start)
        round_trip = parse_round_trip(output)
        if round_trip is None:
            return CheckResult(
                status=MonitorStatus.DOWN,
                response_time_ms=response_time,
                message="Ping failed",
                details={"host": target.host, "output": truncate(output)},
            )

        return CheckResult(
            status=MonitorStatus.UP,
            response_time_ms=int(round(round_trip)),
            message=f"Ping successful ({round_trip}ms)",
            details={"host": target.host, "time": round_trip, "output": truncate(output)},
        )
