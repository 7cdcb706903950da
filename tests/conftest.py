"""Shared fixtures: a scripted measurement collaborator and a recording sink."""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from bandwidth_bro.diagnostics import CadenceGate, ReportSink
from bandwidth_bro.network import (
    BandwidthSample,
    DNSLookupResult,
    HttpStatus,
    LinkState,
    ReachabilityMeasurement,
    Throughput,
    WifiSignal,
)
from bandwidth_bro.utils import Config


def healthy_ping(host: str, size: int, count: int = 10) -> ReachabilityMeasurement:
    return ReachabilityMeasurement(
        host=host, packet_size=size, packets_sent=count, packets_received=count,
        loss_pct=0.0, latency="10/12/15", elapsed_s=1.5
    )


class FakeCollaborator:
    """In-memory stand-in for SystemCollaborator with scripted answers."""

    def __init__(self):
        self.calls: List[Tuple[str, tuple]] = []
        self.reachability: Dict[Tuple[str, int], object] = {}
        self.dns_answers: List[str] = ["142.250.80.46"]
        self.dns_error: Optional[str] = None
        self.http_code = 200
        self.http_error: Optional[str] = None
        self.links = [LinkState("lo", "UNKNOWN"), LinkState("eth0", "UP")]
        self.gateway: Optional[str] = "192.168.1.1"
        self.nameservers = ["192.168.1.1"]
        self.hops: List[Optional[str]] = ["192.168.1.1", "10.20.0.1"]
        self.wifi: Optional[WifiSignal] = WifiSignal(
            "wlan0", -55, "2.437", "6", "Link Quality=60/70  Signal level=-55 dBm")
        self.log_lines: List[str] = []
        self.throughput = Throughput("speedtest-cli", 93.4, 11.2, "Download: 93.40 Mbit/s")
        self.counters = (1_000_000, 250_000)
        self.stored_sample: Optional[BandwidthSample] = None
        self.missing: List[str] = []

    def _answer(self, value):
        if isinstance(value, Exception):
            raise value
        return value

    def missing_tools(self):
        return list(self.missing)

    def measure_reachability(self, host, packet_size, count, timeout, dont_fragment=False):
        self.calls.append(("measure_reachability", (host, packet_size, count, dont_fragment)))
        answer = self.reachability.get((host, packet_size))
        if answer is None:
            return healthy_ping(host, packet_size, count)
        return self._answer(answer)

    def resolve_dns(self, hostname, server=None, timeout=5.0):
        self.calls.append(("resolve_dns", (hostname, server)))
        return DNSLookupResult(query=hostname, query_type="A", success=bool(self.dns_answers),
                               answers=list(self.dns_answers), error=self.dns_error,
                               nameserver=server)

    def read_system_nameservers(self):
        self.calls.append(("read_system_nameservers", ()))
        return self._answer(self.nameservers)

    def fetch_http_status(self, url, timeout):
        self.calls.append(("fetch_http_status", (url,)))
        return HttpStatus(url=url, status_code=self.http_code, error=self.http_error)

    def read_link_state(self):
        self.calls.append(("read_link_state", ()))
        return self._answer(self.links)

    def read_default_gateway(self):
        self.calls.append(("read_default_gateway", ()))
        return self._answer(self.gateway)

    def trace_path(self, host, max_hops, timeout):
        self.calls.append(("trace_path", (host, max_hops)))
        return self._answer(self.hops)

    def read_wifi_signal(self, interface=None):
        self.calls.append(("read_wifi_signal", ()))
        return self._answer(self.wifi)

    def read_system_log_tail(self, pattern, count):
        self.calls.append(("read_system_log_tail", (pattern, count)))
        return self._answer(self.log_lines)

    def measure_throughput(self, tool_preference="auto"):
        self.calls.append(("measure_throughput", (tool_preference,)))
        return self._answer(self.throughput)

    def read_interface_counters(self):
        self.calls.append(("read_interface_counters", ()))
        return self._answer(self.counters)

    def load_bandwidth_sample(self):
        return self.stored_sample

    def store_bandwidth_sample(self, sample):
        self.calls.append(("store_bandwidth_sample", (sample,)))
        self.stored_sample = sample

    def called(self, name: str) -> bool:
        return any(call[0] == name for call in self.calls)


class RecordingSink(ReportSink):
    """Keeps every emitted event in memory."""

    def __init__(self):
        self.events = []
        self.closed = False

    def emit(self, timestamp, event, style=None):
        self.events.append((timestamp, event))

    def close(self):
        self.closed = True

    @property
    def results(self):
        return [event for _, event in self.events if not isinstance(event, str)]

    @property
    def messages(self):
        return [event for _, event in self.events if isinstance(event, str)]


class AlwaysDueGate(CadenceGate):
    """Every throttled probe is due."""

    def is_due(self, now, period_minutes):
        return True

    def is_due_within_window(self, now, window_seconds):
        return True


class NeverDueGate(CadenceGate):
    """No throttled probe is due."""

    def is_due(self, now, period_minutes):
        return False

    def is_due_within_window(self, now, window_seconds):
        return False


@pytest.fixture
def config():
    return Config(mtu_probe_pause=0, bandwidth_state_file="/nonexistent/bandwidth_prev")


@pytest.fixture
def collaborator():
    return FakeCollaborator()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def now():
    return datetime(2026, 10, 19, 12, 6, 10)
