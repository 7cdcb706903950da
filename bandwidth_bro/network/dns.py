"""Name resolution through dnspython, against the system resolver or a chosen server."""

import time
from dataclasses import dataclass, field
from typing import List, Optional

import dns.exception
import dns.resolver

from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class DNSLookupResult:
    """Answers (or the failure reason) for one name lookup."""
    query: str
    query_type: str
    success: bool
    answers: List[str] = field(default_factory=list)
    response_time_ms: Optional[float] = None
    error: Optional[str] = None
    nameserver: Optional[str] = None  # None means the system resolver


def describe_dns_error(error: dns.exception.DNSException, record_type: str, timeout: float) -> str:
    """Short operator-facing text for a resolver failure."""
    if isinstance(error, dns.resolver.NXDOMAIN):
        return "Domain does not exist (NXDOMAIN)"
    if isinstance(error, dns.resolver.NoAnswer):
        return f"No {record_type} record found"
    if isinstance(error, dns.resolver.NoNameservers):
        return "No nameservers available"
    if isinstance(error, dns.exception.Timeout):
        return f"DNS query timeout after {timeout:g}s"
    return str(error) or type(error).__name__


class DNSTester:
    """
    Resolves names for the DNS probes.

    Every lookup builds a fresh resolver so a changed /etc/resolv.conf is
    picked up on the next cycle.
    """

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    def forward_lookup(
        self,
        hostname: str,
        record_type: str = 'A',
        nameserver: Optional[str] = None,
        timeout: Optional[float] = None
    ) -> DNSLookupResult:
        """
        Resolve ``hostname``.

        Args:
            hostname: Name to resolve
            record_type: DNS record type
            nameserver: Query this server instead of the system resolver
            timeout: Overall lookup bound; the tester default if omitted

        Returns:
            DNSLookupResult; failures are reported in ``error``, never raised
        """
        timeout = timeout or self.timeout
        via = nameserver or "system resolver"
        result = DNSLookupResult(query=hostname, query_type=record_type,
                                 success=False, nameserver=nameserver)

        start = time.perf_counter()
        try:
            resolver = dns.resolver.Resolver()
            resolver.timeout = timeout
            resolver.lifetime = timeout
            if nameserver:
                resolver.nameservers = [nameserver]
            result.answers = [str(rdata) for rdata in resolver.resolve(hostname, record_type)]
            result.success = bool(result.answers)
        except dns.exception.DNSException as e:
            result.error = describe_dns_error(e, record_type, timeout)
            logger.warning(f"DNS lookup of {hostname} via {via} failed: {result.error}")
        finally:
            result.response_time_ms = (time.perf_counter() - start) * 1000

        if result.success:
            logger.debug(f"{hostname} via {via} -> {', '.join(result.answers)} "
                         f"({result.response_time_ms:.0f}ms)")
        return result

    def get_system_dns_servers(self) -> List[str]:
        """Nameservers the system resolver is configured with, in order."""
        try:
            return [str(ns) for ns in dns.resolver.Resolver().nameservers]
        except dns.exception.DNSException as e:
            logger.error(f"Cannot read system resolver configuration: {e}")
            return []
