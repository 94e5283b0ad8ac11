"""
TLS certificate checker.

Opens a verified TLS connection to the monitored domain, reads the peer
certificate and reports the monitor down when the certificate is invalid or
expires within the fixed threshold.
"""

import asyncio
import logging
import ssl
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from uptime_monitor.checker.results import elapsed_ms, failure_result
from uptime_monitor.contracts import Checker
from uptime_monitor.domain import CertificateTarget, CheckResult, Monitor, MonitorStatus
from uptime_monitor.errors import CheckError, CheckTimeoutError, NetworkError, ProtocolError

# Module logger
logger = logging.getLogger(__name__)

# A certificate expiring in this many days or fewer marks the monitor down
SSL_EXPIRY_THRESHOLD_DAYS = 7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _cert_time(value: str) -> datetime:
    return datetime.fromtimestamp(ssl.cert_time_to_seconds(value), tz=timezone.utc)


def _flatten_name(name: Any) -> Dict[str, str]:
    """Flattens the nested tuples getpeercert() uses for subject and issuer."""
    flattened: Dict[str, str] = {}
    for rdn in name or ():
        for key, value in rdn:
            flattened[key] = value
    return flattened


class CertificateChecker(Checker):
    """
    Checks ssl monitors.

    The monitor is up iff the certificate chain verifies against the system
    trust store and the certificate has more than SSL_EXPIRY_THRESHOLD_DAYS
    days left.
    """

    def __init__(
        self,
        ssl_context: Optional[ssl.SSLContext] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """
        Args:
            ssl_context: Context used for the handshake. Defaults to a verifying
                context with the system trust store.
            clock: Returns the current UTC time, used to compute days remaining.
        """
        self._ssl_context: ssl.SSLContext = ssl_context or ssl.create_default_context()
        self._clock: Callable[[], datetime] = clock

    async def _fetch_certificate(self, domain: str, port: int, deadline: float) -> Dict[str, Any]:
        """
        Performs the TLS handshake and returns the decoded peer certificate.

        Raises:
            CheckError: On timeout, connection failure or verification failure.
        """
        timeout = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(domain, port, ssl=self._ssl_context, server_hostname=domain),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise CheckTimeoutError(f"TLS handshake with {domain} timed out") from e
        except ssl.SSLCertVerificationError as e:
            raise ProtocolError(
                f"SSL certificate invalid: {e.verify_message or e.reason}", "CERTIFICATE_INVALID"
            ) from e
        except ssl.SSLError as e:
            raise ProtocolError(f"TLS handshake failed: {e.reason or e}", "TLS_ERROR") from e
        except OSError as e:
            raise NetworkError(f"Could not connect to {domain}:{port}: {e}") from e

        try:
            return writer.get_extra_info("peercert") or {}
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, ssl.SSLError) as e:
                logger.debug(f"Error closing TLS connection to {domain}: {e}")

    async def check(self, monitor: Monitor, deadline: float) -> CheckResult:
        target: CertificateTarget = monitor.target
        start = time.perf_counter()

        try:
            certificate = await self._fetch_certificate(target.domain, target.port, deadline)
            if "notAfter" not in certificate:
                raise ProtocolError("Peer did not present a certificate", "CERTIFICATE_MISSING")
        except CheckError as e:
            return failure_result(e, elapsed_ms(start), domain=target.domain)

        response_time = elapsed_ms(start)
        valid_to = _cert_time(certificate["notAfter"])
        valid_from = _cert_time(certificate["notBefore"]) if "notBefore" in certificate else None
        now = self._clock()
        days_remaining = (valid_to - now).days
        valid = now < valid_to and (valid_from is None or valid_from <= now)

        if not valid:
            reason = "certificate has expired" if now >= valid_to else "certificate is not yet valid"
            status, message = MonitorStatus.DOWN, f"SSL certificate invalid: {reason}"
        elif days_remaining <= SSL_EXPIRY_THRESHOLD_DAYS:
            status, message = MonitorStatus.DOWN, f"SSL certificate expires in {days_remaining} days"
        else:
            status, message = MonitorStatus.UP, f"SSL valid until {valid_to.isoformat()}"

        return CheckResult(
            status=status,
            response_time_ms=response_time,
            message=message,
            details={
                "ssl": {
                    "issuer": _flatten_name(certificate.get("issuer")).get("organizationName"),
                    "subject": _flatten_name(certificate.get("subject")).get("commonName"),
                    "validFrom": valid_from.isoformat() if valid_from else None,
                    "validTo": valid_to.isoformat(),
                    "daysRemaining": days_remaining,
                    "valid": valid,
                }
            },
        )
