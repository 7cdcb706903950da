"""Result types produced by probes and cycles."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from ..network import BandwidthSample

MetricValue = Union[int, float, str]


class ProbeStatus(Enum):
    """Health classification of a single probe result."""
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProbeKind(Enum):
    """Which diagnostic produced a result."""
    PING = "ping"
    DNS_LOOKUP = "dns_lookup"
    ALTERNATE_DNS = "alternate_dns"
    DNS_SERVER = "dns_server"
    HTTP = "http"
    INTERFACES = "interfaces"
    GATEWAY = "gateway"
    FIRST_HOP = "first_hop"
    WIFI = "wifi"
    ROUTER_LOG = "router_log"
    MTU_SWEEP = "mtu_sweep"
    SPEED_TEST = "speed_test"
    TRACEROUTE = "traceroute"
    BANDWIDTH = "bandwidth"


@dataclass(frozen=True)
class ProbeId:
    """Identifies a probe, optionally parameterised by host and packet size."""
    kind: ProbeKind
    host: Optional[str] = None
    size: Optional[int] = None

    def __str__(self) -> str:
        params = []
        if self.host:
            params.append(self.host)
        if self.size is not None:
            params.append(f"size {self.size}")
        if params:
            return f"{self.kind.value}({', '.join(params)})"
        return self.kind.value


@dataclass(frozen=True)
class ProbeResult:
    """Uniform outcome of one probe invocation."""
    probe_id: ProbeId
    status: ProbeStatus
    message: str
    timestamp: datetime
    metrics: Dict[str, MetricValue] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class CycleSummary:
    """Status counts and carried state for one completed cycle."""
    cycle: int
    started_at: datetime
    counts: Dict[str, int] = field(default_factory=lambda: {
        status.value: 0 for status in ProbeStatus
    })
    failed_probes: List[str] = field(default_factory=list)
    not_due: List[str] = field(default_factory=list)
    duration_s: Optional[float] = None
    bandwidth_sample: Optional[BandwidthSample] = None
    cancelled: bool = False

    def record(self, result: ProbeResult) -> None:
        self.counts[result.status.value] += 1
        if result.status == ProbeStatus.FAILED:
            self.failed_probes.append(str(result.probe_id))

    @property
    def failed(self) -> int:
        return self.counts[ProbeStatus.FAILED.value]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def describe(self) -> str:
        return ", ".join(f"{count} {name}" for name, count in self.counts.items())
