"""
HTTP checkers implemented with the aiohttp library.

This module provides the checker used by website and cron monitors, and the
keyword checker that additionally searches the response body for a substring.
Both share a single aiohttp ClientSession.
"""

import asyncio
import logging
import time
from typing import Optional, Tuple

import aiohttp

from uptime_monitor.checker.results import elapsed_ms, failure_result, truncate
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CheckResult, HttpTarget, Monitor, MonitorStatus
from uptime_monitor.errors import CheckError, CheckTimeoutError, NetworkError, ProtocolError

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Monitoring-System/1.0"
MAX_REDIRECTS = 5


def is_success_status(status_code: int, expected_status_code: Optional[int]) -> bool:
    """
    Decides whether an HTTP status code means the target is up.

    Args:
        status_code: The status code received.
        expected_status_code: The exact code required, if configured.

    Returns:
        bool: True when the code equals the expected one, or, without an
            expectation, when it is in the 2xx or 3xx range.
    """
    if expected_status_code is not None:
        return status_code == expected_status_code
    return 200 <= status_code < 400


class HttpChecker(Checker):
    """
    Checks website and cron monitors with a single GET request.

    The request follows up to five redirects and is bounded by the deadline
    supplied by the registry. The response body is captured, truncated, for
    diagnostics.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        user_agent: str = DEFAULT_USER_AGENT,
        max_redirects: int = MAX_REDIRECTS,
    ) -> None:
        """
        Initializes the checker with a shared aiohttp ClientSession.

        Args:
            session: An active aiohttp.ClientSession to be used for requests.
            user_agent: The User-Agent header sent with every request.
            max_redirects: Maximum number of redirects followed.
        """
        self._session: aiohttp.ClientSession = session
        self._user_agent: str = user_agent
        self._max_redirects: int = max_redirects

    async def _fetch(self, url: str, deadline: float) -> Tuple[aiohttp.ClientResponse, str]:
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            async with self._session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=timeout),
                headers={"User-Agent": self._user_agent},
                max_redirects=self._max_redirects,
            ) as response:
                body = await response.text(errors="replace")
                return response, body
        except asyncio.TimeoutError as e:
            raise CheckTimeoutError(f"Connection timed out after {timeout:.0f} seconds") from e
        except aiohttp.ClientConnectorError as e:
            if isinstance(e.os_error, ConnectionRefusedError):
                raise NetworkError("Connection refused", "CONNECTION_REFUSED") from e
            raise NetworkError(f"Could not connect to {e.host}: {e.os_error}") from e
        except aiohttp.TooManyRedirects as e:
            raise ProtocolError("Too many redirects", "TOO_MANY_REDIRECTS") from e
        except aiohttp.ServerDisconnectedError as e:
            raise NetworkError("No response received from server", "NO_RESPONSE") from e
        except aiohttp.ClientError as e:
            raise ProtocolError(str(e) or type(e).__name__, "REQUEST_ERROR") from e

    def evaluate(self, monitor: Monitor, status_code: int, body: str) -> Tuple[MonitorStatus, str]:
        """
        Turns a response into a status and a message.

        Subclasses override this to apply different success criteria.
        """
        expected = monitor.target.expected_status_code
        if is_success_status(status_code, expected):
            if expected is not None:
                return MonitorStatus.UP, f"Website returned expected status code: {status_code}"
            return MonitorStatus.UP, f"Website is up with status code: {status_code}"
        if expected is not None:
            return (
                MonitorStatus.DOWN,
                f"Website returned unexpected status code: {status_code}, expected: {expected}",
            )
        return MonitorStatus.DOWN, f"Website returned error status code: {status_code}"

    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        """
        Performs a GET request against the monitor's URL.

        Args:
            monitor: A website, cron or keyword monitor.
            deadline: Event loop time by which the request must end.

        Returns:
            CheckResult: Up or down with the status code, timing and a body preview.
        """
        target: HttpTarget = monitor.target
        logger.debug(f"Starting HTTP check for {target.url}")
        start = time.perf_counter()

        try:
            response, body = await self._fetch(target.url, deadline)
        except CheckError as e:
            logger.debug(f"HTTP check for {target.url} failed: {e}")
            return failure_result(e, elapsed_ms(start), url=target.url)

        response_time = elapsed_ms(start)
        status, message = self.evaluate(monitor, response.status, body)

        return CheckResult(
            status=status,
            response_time_ms=response_time,
            message=message,
            status_code=response.status,
            details={
                "url": target.url,
                "method": "GET",
                "statusCode": response.status,
                "statusText": response.reason,
                "contentType": response.headers.get("Content-Type"),
                "contentLength": response.headers.get("Content-Length"),
                "redirects": len(response.history),
                "body": truncate(body),
            },
        )


class KeywordChecker(HttpChecker):
    """
    Checks keyword monitors.

    The fetch is the same as for websites; the target is up only if the body
    contains the configured keyword (case-sensitive substring match).
    """

    def evaluate(self, monitor: Monitor, status_code: int, body: str) -> Tuple[MonitorStatus, str]:
        keyword = monitor.target.keyword
        if keyword in body:
            return MonitorStatus.UP, f'Keyword "{keyword}" found'
        return MonitorStatus.DOWN, f'Keyword "{keyword}" not found'
