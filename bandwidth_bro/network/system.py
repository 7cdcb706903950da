"""The measurement collaborator used by the diagnostic loop on a real host."""

import shutil
from pathlib import Path
from typing import List, Optional, Tuple

from .bandwidth_store import BandwidthSample, BandwidthStore
from .connectivity import ConnectivityTester, HttpStatus, LinkState, ReachabilityMeasurement
from .dns import DNSLookupResult, DNSTester
from .interfaces import InterfaceInspector, WifiSignal
from .throughput import Throughput, ThroughputTester
from ..utils import Config, get_logger

logger = get_logger(__name__)

# Tools the probes shell out to; a missing one makes its probes report skipped
REQUIRED_TOOLS = ("ping", "ip", "traceroute", "iwconfig", "dmesg")


class SystemCollaborator:
    """
    One method per measurement kind, backed by system tools and libraries.

    Methods raise ToolUnavailable, ProbeTimeout or ProbeExecutionError; the
    probe executors turn those into results.
    """

    def __init__(self, config: Config):
        self.config = config
        self._connectivity = ConnectivityTester()
        self._dns = DNSTester(timeout=config.dns_timeout)
        self._interfaces = InterfaceInspector()
        self._throughput = ThroughputTester(
            download_url=config.speed_test_url,
            timeout=config.speed_test_timeout
        )
        self._bandwidth_store = BandwidthStore(Path(config.bandwidth_state_file))

    def missing_tools(self) -> List[str]:
        """Names of required external tools that are not installed."""
        return [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]

    def speedtest_available(self) -> bool:
        return self._throughput.speedtest_available()

    def measure_reachability(
        self,
        host: str,
        packet_size: int,
        count: int,
        timeout: float,
        dont_fragment: bool = False
    ) -> ReachabilityMeasurement:
        return self._connectivity.ping(host, packet_size, count, timeout, dont_fragment)

    def resolve_dns(self, hostname: str, server: Optional[str] = None,
                    timeout: float = 5.0) -> DNSLookupResult:
        return self._dns.forward_lookup(hostname, nameserver=server, timeout=timeout)

    def read_system_nameservers(self) -> List[str]:
        return self._dns.get_system_dns_servers()

    def fetch_http_status(self, url: str, timeout: float) -> HttpStatus:
        return self._connectivity.fetch_http_status(url, timeout)

    def read_link_state(self) -> List[LinkState]:
        return self._connectivity.read_link_state()

    def read_default_gateway(self) -> Optional[str]:
        return self._connectivity.read_default_gateway()

    def trace_path(self, host: str, max_hops: int, timeout: float) -> List[Optional[str]]:
        return self._connectivity.trace_path(host, max_hops, timeout)

    def read_wifi_signal(self, interface: Optional[str] = None) -> Optional[WifiSignal]:
        return self._interfaces.read_wifi_signal(interface)

    def read_system_log_tail(self, pattern: str, count: int) -> List[str]:
        return self._interfaces.read_system_log_tail(pattern, count)

    def measure_throughput(self, tool_preference: str = "auto") -> Throughput:
        return self._throughput.measure(tool_preference)

    def read_interface_counters(self) -> Tuple[int, int]:
        return self._interfaces.read_interface_counters()

    def load_bandwidth_sample(self) -> Optional[BandwidthSample]:
        return self._bandwidth_store.load()

    def store_bandwidth_sample(self, sample: BandwidthSample) -> None:
        self._bandwidth_store.store(sample)
