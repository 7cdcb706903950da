"""Connectivity measurements: ping, HTTP status, routes, links and paths."""

import math
import re
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests
from requests.exceptions import RequestException

from ..utils import get_logger, ToolUnavailable, ProbeTimeout, ProbeExecutionError

logger = get_logger(__name__)

_LOSS_RE = re.compile(r'(\d+(?:\.\d+)?)% packet loss')
_COUNTS_RE = re.compile(r'(\d+) packets transmitted, (\d+) (?:packets )?received')
_RTT_RE = re.compile(r'(?:rtt|round-trip) min/avg/max/(?:mdev|stddev) = ([\d./]+)')
_GATEWAY_RE = re.compile(r'default\s+via\s+(\S+)')
_LINK_RE = re.compile(r'^\d+:\s+([^:@\s]+)(?:@\S+)?:.*?\bstate\s+(\S+)')
_HOP_RE = re.compile(r'^\s*(\d+)\s+(.*)$')
_ADDRESS_RE = re.compile(r'^[0-9a-fA-F:.]+$')


@dataclass
class ReachabilityMeasurement:
    """Outcome of one ping run."""
    host: str
    packet_size: int
    packets_sent: int = 0
    packets_received: int = 0
    loss_pct: Optional[float] = None
    latency: Optional[str] = None  # "min/avg/max/mdev" in ms
    elapsed_s: float = 0.0
    error: Optional[str] = None


@dataclass
class HttpStatus:
    """Outcome of an HTTP status fetch. status_code is 0 when no response arrived."""
    url: str
    status_code: int = 0
    response_time_ms: Optional[float] = None
    error: Optional[str] = None

    @property
    def code_text(self) -> str:
        return f"{self.status_code:03d}"


@dataclass
class LinkState:
    """Operational state of one network interface."""
    name: str
    state: str

    @property
    def is_up(self) -> bool:
        return self.state.upper() == "UP"


def parse_ping_output(output: str, host: str, packet_size: int) -> ReachabilityMeasurement:
    """
    Parse iputils/BSD ping summary output.

    Output without a "packets transmitted" line is treated as a command error
    and the raw text is kept in ``error``.
    """
    result = ReachabilityMeasurement(host=host, packet_size=packet_size)

    counts = _COUNTS_RE.search(output)
    if not counts:
        result.error = output.strip() or "ping produced no output"
        return result

    result.packets_sent = int(counts.group(1))
    result.packets_received = int(counts.group(2))

    loss = _LOSS_RE.search(output)
    if loss:
        result.loss_pct = float(loss.group(1))
    elif result.packets_sent:
        lost = result.packets_sent - result.packets_received
        result.loss_pct = lost * 100.0 / result.packets_sent

    rtt = _RTT_RE.search(output)
    if rtt:
        result.latency = rtt.group(1).rstrip('/')

    return result


def parse_traceroute_output(output: str) -> List[Optional[str]]:
    """
    Parse ``traceroute -n`` output into one entry per hop.

    Each entry is the first address that answered for that hop, or None when
    every probe for the hop timed out.
    """
    hops: List[Optional[str]] = []
    for line in output.splitlines():
        if line.startswith("traceroute"):
            continue
        match = _HOP_RE.match(line)
        if not match:
            continue
        address = None
        for token in match.group(2).split():
            if token != '*' and _ADDRESS_RE.match(token) and ('.' in token or ':' in token):
                address = token
                break
        hops.append(address)
    return hops


class ConnectivityTester:
    """
    Runs connectivity measurements through system tools and requests.
    """

    def __init__(self, ping_binary: str = "ping"):
        self.ping_binary = ping_binary

    def ping(
        self,
        host: str,
        packet_size: int = 56,
        count: int = 10,
        timeout: float = 2.0,
        dont_fragment: bool = False
    ) -> ReachabilityMeasurement:
        """
        Ping a host and return loss and latency statistics.

        Args:
            host: Host name or address
            packet_size: ICMP payload size in bytes
            count: Number of echo requests
            timeout: Seconds to wait for each reply
            dont_fragment: Forbid fragmentation (MTU probing)

        Returns:
            ReachabilityMeasurement

        Raises:
            ToolUnavailable: ping is not installed
            ProbeTimeout: ping did not finish within its overall bound
        """
        if shutil.which(self.ping_binary) is None:
            raise ToolUnavailable(self.ping_binary)

        wait = str(max(1, int(math.ceil(timeout))))
        cmd = [self.ping_binary, '-n', '-c', str(count), '-s', str(packet_size), '-W', wait]
        if dont_fragment:
            cmd.extend(['-M', 'do'])
        cmd.append(host)

        deadline = count + timeout + 5
        logger.debug(f"Running: {' '.join(cmd)}")

        start = time.perf_counter()
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=deadline)
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(f"ping {host}", deadline)
        elapsed = time.perf_counter() - start

        result = parse_ping_output(proc.stdout + proc.stderr, host, packet_size)
        result.elapsed_s = elapsed

        if result.error:
            logger.debug(f"Ping error ({host}, size {packet_size}): {result.error}")
        else:
            logger.debug(
                f"Ping {host} size {packet_size}: {result.packets_received}/{result.packets_sent} "
                f"received, {result.loss_pct:g}% loss"
            )
        return result

    def fetch_http_status(self, url: str, timeout: float = 5.0) -> HttpStatus:
        """
        Fetch a URL and report its status code without following redirects.

        Args:
            url: URL or bare host name (http:// is assumed)
            timeout: Seconds for connect and read

        Returns:
            HttpStatus, with status_code 0 on timeout or connection failure
        """
        if '://' not in url:
            url = f"http://{url}"

        result = HttpStatus(url=url)
        logger.debug(f"Testing HTTP endpoint: {url}")

        try:
            start = time.perf_counter()
            response = requests.get(url, timeout=timeout, allow_redirects=False)
            result.response_time_ms = (time.perf_counter() - start) * 1000
            result.status_code = response.status_code
            response.close()
            logger.debug(f"HTTP {result.status_code}: {url} ({result.response_time_ms:.1f}ms)")
        except requests.exceptions.Timeout:
            result.error = f"Timed out after {timeout:g}s"
            logger.warning(f"HTTP timeout: {url}")
        except requests.exceptions.ConnectionError as e:
            result.error = f"Connection error: {e}"
            logger.warning(f"HTTP connection error: {url}")
        except RequestException as e:
            result.error = f"Request error: {e}"
            logger.error(f"HTTP request error: {url} - {e}")

        return result

    def read_default_gateway(self) -> Optional[str]:
        """Return the default gateway address, or None if there is no default route."""
        output = _run_tool(['ip', 'route', 'show', 'default'], timeout=5)
        match = _GATEWAY_RE.search(output)
        return match.group(1) if match else None

    def read_link_state(self) -> List[LinkState]:
        """List interfaces with their operational state."""
        output = _run_tool(['ip', '-o', 'link', 'show'], timeout=5)
        links = []
        for line in output.splitlines():
            match = _LINK_RE.match(line)
            if match:
                links.append(LinkState(name=match.group(1), state=match.group(2)))
        return links

    def trace_path(self, host: str, max_hops: int = 10, timeout: float = 60.0) -> List[Optional[str]]:
        """
        Trace the path to a host.

        Args:
            host: Destination host
            max_hops: Maximum TTL
            timeout: Overall bound for the traceroute run

        Returns:
            One entry per hop: the responding address or None
        """
        output = _run_tool(['traceroute', '-n', '-m', str(max_hops), host], timeout=timeout)
        hops = parse_traceroute_output(output)
        logger.debug(f"Traceroute to {host}: {hops}")
        return hops


def _run_tool(cmd: Sequence[str], timeout: float) -> str:
    """Run an external tool and return stdout, mapping failures to probe errors."""
    if shutil.which(cmd[0]) is None:
        raise ToolUnavailable(cmd[0])
    try:
        proc = subprocess.run(list(cmd), capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise ProbeTimeout(cmd[0], timeout)
    if proc.returncode != 0 and not proc.stdout.strip():
        raise ProbeExecutionError(
            proc.stderr.strip() or f"{cmd[0]} exited with status {proc.returncode}"
        )
    return proc.stdout
