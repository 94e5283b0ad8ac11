"""
DNS resolution checker built on dnspython's asyncio resolver.
"""

import asyncio
import logging
import time
from typing import List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from uptime_monitor.checker.results import elapsed_ms, failure_result
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CheckResult, DomainTarget, Monitor, MonitorStatus
from uptime_monitor.errors import CheckError, CheckTimeoutError, NetworkError, ProtocolError

# Module logger
logger = logging.getLogger(__name__)

RECORD_TYPES = ("A", "AAAA")


class DomainChecker(Checker):
    """
    Checks domain monitors.

    The domain is up iff it resolves to at least one A or AAAA record. The
    resolved addresses are stored in the event details.
    """

    def __init__(self, resolver: Optional[dns.asyncresolver.Resolver] = None) -> None:
        self._resolver: dns.asyncresolver.Resolver = resolver or dns.asyncresolver.Resolver()

    async def _resolve(self, domain: str, deadline: float) -> List[str]:
        loop = asyncio.get_running_loop()
        for record_type in RECORD_TYPES:
            lifetime = max(0.0, deadline - loop.time())
            try:
                answer = await self._resolver.resolve(domain, record_type, lifetime=lifetime)
            except dns.resolver.NoAnswer:
                logger.debug(f"No {record_type} records for {domain}")
                continue
            except dns.resolver.NXDOMAIN as e:
                raise NetworkError(
                    "Domain name could not be resolved", "DNS_RESOLUTION_FAILED"
                ) from e
            except dns.resolver.NoNameservers as e:
                raise ProtocolError("No nameserver could answer the query", "DNS_SERVFAIL") from e
            except dns.exception.Timeout as e:
                raise CheckTimeoutError(f"DNS lookup of {domain} timed out") from e
            except dns.exception.DNSException as e:
                raise ProtocolError(f"DNS lookup failed: {e}", "DNS_ERROR") from e
            return [record.to_text() for record in answer]

        raise NetworkError("Domain name has no address records", "DNS_RESOLUTION_FAILED")

    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        target: DomainTarget = monitor.target
        start = time.perf_counter()

        try:
            addresses = await self._resolve(target.domain, deadline)
        except CheckError as e:
            return failure_result(e, elapsed_ms(start), domain=target.domain)

        return CheckResult(
            status=MonitorStatus.UP,
            response_time_ms=elapsed_ms(start),
            message=f"Domain resolves to {addresses[0]}",
            details={"ip": addresses[0], "addresses": addresses},
        )
