"""
HTTP client configuration module for the uptime monitoring system.

One aiohttp session is shared by the HTTP checkers and the notification
relay. Per-request timeouts are set by each caller from the monitor's own
timeout, so the session itself has no total timeout.
"""

import logging

import aiohttp

from uptime_monitor.config import MonitoringContext
from uptime_monitor.checker.http_checker import DEFAULT_USER_AGENT

# Module logger
logger = logging.getLogger(__name__)


def get_http_session(context: MonitoringContext) -> aiohttp.ClientSession:
    """
    Create the HTTP client session shared by the whole instance.

    The connection pool is sized after the number of check executors.

    Args:
        context: Configuration context of the instance.

    Returns:
        aiohttp.ClientSession: The shared HTTP client session.
    """
    connector = aiohttp.TCPConnector(limit=max(context.worker_number, 1) * 2)
    logger.debug(f"Creating HTTP session for {context.worker_number} executors.")
    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=None),
        headers={"User-Agent": DEFAULT_USER_AGENT},
    )
