"""Network measurement modules."""

from .connectivity import (
    ConnectivityTester,
    ReachabilityMeasurement,
    HttpStatus,
    LinkState,
    parse_ping_output,
    parse_traceroute_output,
)
from .dns import DNSTester, DNSLookupResult
from .interfaces import InterfaceInspector, WifiSignal
from .throughput import ThroughputTester, Throughput
from .bandwidth_store import BandwidthStore, BandwidthSample
from .system import SystemCollaborator, REQUIRED_TOOLS

__all__ = [
    # Measurements
    "ConnectivityTester",
    "ReachabilityMeasurement",
    "HttpStatus",
    "LinkState",
    "parse_ping_output",
    "parse_traceroute_output",
    "DNSTester",
    "DNSLookupResult",
    "InterfaceInspector",
    "WifiSignal",
    "ThroughputTester",
    "Throughput",
    # State
    "BandwidthStore",
    "BandwidthSample",
    # Collaborator
    "SystemCollaborator",
    "REQUIRED_TOOLS",
]
