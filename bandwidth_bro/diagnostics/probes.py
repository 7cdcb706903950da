"""
Probe executors and their classification rules.

Every executor wraps one kind of collaborator call and returns a ProbeResult
(a list of them for the MTU sweep). Collaborator errors never escape:
ToolUnavailable becomes SKIPPED, everything else FAILED with the error text
kept in the message.
"""

import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from .models import BandwidthSample, ProbeId, ProbeKind, ProbeResult, ProbeStatus
from ..utils import Config, get_logger, ToolUnavailable, ProbeTimeout

logger = get_logger(__name__)

HTTP_SUCCESS_CODES = frozenset({200, 301, 302})

WIFI_GOOD_QUALITY = 70
WIFI_FAIR_QUALITY = 40


# --- classification -------------------------------------------------------

def classify_reachability(loss_pct: Optional[float]) -> ProbeStatus:
    """OK only at 0% loss, FAILED at 100% loss or when loss is unknown."""
    if loss_pct is None or loss_pct >= 100:
        return ProbeStatus.FAILED
    if loss_pct == 0:
        return ProbeStatus.OK
    return ProbeStatus.DEGRADED


def classify_http(status_code: int) -> ProbeStatus:
    return ProbeStatus.OK if status_code in HTTP_SUCCESS_CODES else ProbeStatus.FAILED


def wifi_quality(dbm: int) -> int:
    """Map signal strength in dBm linearly onto 0-100% (-100 dBm to -50 dBm)."""
    if dbm >= -50:
        return 100
    if dbm <= -100:
        return 0
    return 2 * (dbm + 100)


def classify_wifi(quality: int) -> ProbeStatus:
    if quality >= WIFI_GOOD_QUALITY:
        return ProbeStatus.OK
    if quality >= WIFI_FAIR_QUALITY:
        return ProbeStatus.DEGRADED
    return ProbeStatus.FAILED


def classify_trace(hops: Sequence[Optional[str]]) -> ProbeStatus:
    answered = [hop for hop in hops if hop]
    if not answered:
        return ProbeStatus.FAILED
    if len(answered) < len(hops):
        return ProbeStatus.DEGRADED
    return ProbeStatus.OK


def compute_bandwidth_rates(
    previous: BandwidthSample,
    current: BandwidthSample
) -> Optional[Tuple[float, float]]:
    """
    Download and upload rates in KB/s between two samples.

    Returns None when no meaningful rate exists: elapsed time is not positive
    or a counter went backwards (interface reset).
    """
    elapsed = (current.sampled_at - previous.sampled_at).total_seconds()
    if elapsed <= 0:
        return None
    rx_diff = current.rx_bytes - previous.rx_bytes
    tx_diff = current.tx_bytes - previous.tx_bytes
    if rx_diff < 0 or tx_diff < 0:
        return None
    return rx_diff / elapsed / 1024, tx_diff / elapsed / 1024


def format_loss(loss_pct: Optional[float]) -> str:
    if loss_pct is None:
        return "N/A"
    return f"{loss_pct:g}% packet loss"


# --- result helpers -------------------------------------------------------

def result_from_error(probe_id: ProbeId, error: Exception, now: datetime) -> ProbeResult:
    """Convert a collaborator error into a SKIPPED or FAILED result."""
    if isinstance(error, ToolUnavailable):
        logger.debug(f"{probe_id} skipped: {error}")
        return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                           f"{probe_id} skipped: {error}", now, error=str(error))
    if isinstance(error, ProbeTimeout):
        logger.warning(f"{probe_id} timed out: {error}")
    else:
        logger.warning(f"{probe_id} failed: {error}")
    return ProbeResult(probe_id, ProbeStatus.FAILED,
                       f"{probe_id} failed: {error}", now, error=str(error))


def crashed_result(probe_id: ProbeId, error: Exception, now: datetime) -> ProbeResult:
    """Result recorded when an executor itself raised."""
    return ProbeResult(probe_id, ProbeStatus.FAILED,
                       f"Probe error ({probe_id}): {error}", now, error=repr(error))


def _ping_metrics(measurement) -> dict:
    metrics = {
        "packets_sent": measurement.packets_sent,
        "packets_received": measurement.packets_received,
        "elapsed_s": round(measurement.elapsed_s, 3),
    }
    if measurement.loss_pct is not None:
        metrics["packet_loss_pct"] = measurement.loss_pct
    if measurement.latency:
        metrics["latency_ms"] = measurement.latency
    return metrics


def _ping_target(probe_id: ProbeId, label: str, measurement, now: datetime) -> ProbeResult:
    """Shared result shape for gateway, first hop and DNS server pings."""
    status = classify_reachability(measurement.loss_pct)
    if measurement.loss_pct is None:
        message = f"{label} ping failed: {measurement.error}"
    elif status == ProbeStatus.OK:
        message = f"{label} reachable - {format_loss(measurement.loss_pct)}"
    else:
        message = f"{label} ping issues: {format_loss(measurement.loss_pct)}"
    return ProbeResult(probe_id, status, message, now,
                       metrics=_ping_metrics(measurement), error=measurement.error)


# --- executors run every cycle ---------------------------------------------

def run_ping(config: Config, collaborator, now: datetime, host: str, size: int) -> ProbeResult:
    """Ping one host with one payload size, PING_COUNT times."""
    probe_id = ProbeId(ProbeKind.PING, host=host, size=size)
    try:
        measurement = collaborator.measure_reachability(
            host, size, config.ping_count, config.ping_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    status = classify_reachability(measurement.loss_pct)
    if measurement.loss_pct is None:
        message = (f"Ping failed ({host}, size {size}): {measurement.error}, "
                   f"Time: {measurement.elapsed_s:.2f}s")
    else:
        message = (f"Ping result ({host}, size {size}): {format_loss(measurement.loss_pct)}, "
                   f"Latency: {measurement.latency or 'N/A'} ms, Time: {measurement.elapsed_s:.2f}s")

    return ProbeResult(probe_id, status, message, now,
                       metrics=_ping_metrics(measurement), error=measurement.error)


def _run_dns(probe_id: ProbeId, label: str, collaborator, hostname: str,
             server: Optional[str], timeout: float, now: datetime) -> ProbeResult:
    start = time.perf_counter()
    try:
        lookup = collaborator.resolve_dns(hostname, server=server, timeout=timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)
    elapsed = time.perf_counter() - start

    metrics = {"elapsed_s": round(elapsed, 3), "answers": len(lookup.answers)}
    if lookup.answers:
        return ProbeResult(probe_id, ProbeStatus.OK,
                           f"{label} resolved in {elapsed:.3f}s: {', '.join(lookup.answers)}",
                           now, metrics=metrics)

    reason = lookup.error or "empty answer"
    return ProbeResult(probe_id, ProbeStatus.FAILED,
                       f"{label} resolution failed for {hostname} in {elapsed:.3f}s: {reason}",
                       now, metrics=metrics, error=lookup.error)


def run_dns_lookup(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Resolve TEST_URL through the system resolver."""
    return _run_dns(ProbeId(ProbeKind.DNS_LOOKUP, host=config.test_url), "DNS",
                    collaborator, config.test_url, None, config.dns_timeout, now)


def run_http_check(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Fetch TEST_URL and classify the status code."""
    probe_id = ProbeId(ProbeKind.HTTP, host=config.test_url)
    try:
        response = collaborator.fetch_http_status(config.test_url, config.http_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    code_text = response.code_text
    status = classify_http(response.status_code)
    if status == ProbeStatus.OK:
        message = f"HTTP connection successful: Status {code_text}"
    else:
        message = f"HTTP connection failed: Status {code_text}"
        if response.error:
            message = f"{message} ({response.error})"

    return ProbeResult(probe_id, status, message, now,
                       metrics={"status_code": code_text}, error=response.error)


def run_interface_status(config: Config, collaborator, now: datetime) -> ProbeResult:
    """At least one interface must report state UP."""
    probe_id = ProbeId(ProbeKind.INTERFACES)
    try:
        links = collaborator.read_link_state()
    except Exception as e:
        return result_from_error(probe_id, e, now)

    up = [link.name for link in links if link.is_up]
    metrics = {"interfaces": len(links), "interfaces_up": len(up)}
    if up:
        return ProbeResult(probe_id, ProbeStatus.OK,
                           f"Active interfaces: {', '.join(up)}", now, metrics=metrics)
    return ProbeResult(probe_id, ProbeStatus.FAILED,
                       "Active interfaces: No active interfaces", now, metrics=metrics)


def run_gateway_check(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Ping the default gateway."""
    probe_id = ProbeId(ProbeKind.GATEWAY)
    try:
        gateway = collaborator.read_default_gateway()
        if not gateway:
            return ProbeResult(probe_id, ProbeStatus.FAILED, "No default gateway found", now)
        measurement = collaborator.measure_reachability(
            gateway, 56, config.gateway_ping_count, config.ping_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    return _ping_target(ProbeId(ProbeKind.GATEWAY, host=gateway),
                        f"Gateway ({gateway})", measurement, now)


def run_wifi_signal(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Read the wireless signal level and grade its quality."""
    probe_id = ProbeId(ProbeKind.WIFI)
    try:
        signal = collaborator.read_wifi_signal()
    except Exception as e:
        return result_from_error(probe_id, e, now)

    if signal is None:
        return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                           "WiFi Signal: no wireless interface or signal level available", now)

    quality = wifi_quality(signal.dbm)
    frequency = signal.frequency or "N/A"
    channel = signal.channel or "N/A"
    reading = signal.signal_line or f"Signal level={signal.dbm} dBm"
    metrics = {"signal_dbm": signal.dbm, "quality_pct": quality,
               "frequency_ghz": frequency, "channel": channel}

    return ProbeResult(
        ProbeId(ProbeKind.WIFI, host=signal.interface),
        classify_wifi(quality),
        f"WiFi Signal: {reading} (Quality: {quality}%, Freq: {frequency} GHz, Channel: {channel})",
        now,
        metrics=metrics
    )


def run_bandwidth(
    config: Config,
    collaborator,
    now: datetime,
    previous: Optional[BandwidthSample]
) -> Tuple[ProbeResult, Optional[BandwidthSample]]:
    """
    Compute interface throughput since the previous sample.

    Returns the result and the sample to carry into the next cycle. The new
    sample is also handed to the collaborator for persistence.
    """
    probe_id = ProbeId(ProbeKind.BANDWIDTH)
    try:
        rx_bytes, tx_bytes = collaborator.read_interface_counters()
    except Exception as e:
        return result_from_error(probe_id, e, now), previous

    current = BandwidthSample(rx_bytes=rx_bytes, tx_bytes=tx_bytes, sampled_at=now)

    try:
        collaborator.store_bandwidth_sample(current)
    except Exception as e:
        logger.warning(f"Could not persist bandwidth sample: {e}")

    if previous is None:
        return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                           "Bandwidth usage: first sample recorded, rate available next cycle",
                           now), current

    rates = compute_bandwidth_rates(previous, current)
    if rates is None:
        return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                           "Bandwidth usage: Time difference too small or counters reset, "
                           "cannot calculate speed", now), current

    download, upload = rates
    elapsed = (current.sampled_at - previous.sampled_at).total_seconds()
    return ProbeResult(
        probe_id, ProbeStatus.OK,
        f"Bandwidth usage: Download {download:.2f} KB/s, Upload {upload:.2f} KB/s",
        now,
        metrics={"download_kbps": round(download, 2), "upload_kbps": round(upload, 2),
                 "elapsed_s": elapsed}
    ), current


# --- throttled executors -----------------------------------------------------

def run_alternate_dns(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Resolve TEST_URL through ALTERNATE_DNS for comparison."""
    return _run_dns(ProbeId(ProbeKind.ALTERNATE_DNS, host=config.alternate_dns),
                    f"Alternate DNS ({config.alternate_dns})", collaborator,
                    config.test_url, config.alternate_dns, config.dns_timeout, now)


def run_dns_server_check(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Ping the first system nameserver."""
    probe_id = ProbeId(ProbeKind.DNS_SERVER)
    try:
        nameservers = collaborator.read_system_nameservers()
        if not nameservers:
            return ProbeResult(probe_id, ProbeStatus.FAILED,
                               "No DNS server found in configuration", now)
        server = nameservers[0]
        measurement = collaborator.measure_reachability(
            server, 56, config.dns_server_ping_count, config.ping_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    return _ping_target(ProbeId(ProbeKind.DNS_SERVER, host=server),
                        f"DNS server ({server})", measurement, now)


def run_first_hop_check(config: Config, collaborator, now: datetime) -> ProbeResult:
    """
    Ping the first router beyond the local gateway.

    The hop is the second entry of a short trace towards TEST_HOST. When it
    cannot be determined (no gateway, hop silent, or hop equals the gateway)
    the probe is skipped.
    """
    probe_id = ProbeId(ProbeKind.FIRST_HOP)
    try:
        gateway = collaborator.read_default_gateway()
        if not gateway:
            return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                               "No gateway found, cannot test first hop", now)

        hops = collaborator.trace_path(config.test_host, config.first_hop_max_hops,
                                       config.traceroute_timeout)
        first_hop = hops[1] if len(hops) > 1 else None
        if not first_hop or first_hop == gateway:
            return ProbeResult(probe_id, ProbeStatus.SKIPPED,
                               "Could not identify first hop beyond gateway", now)

        logger.debug(f"First hop beyond gateway identified as {first_hop}")
        measurement = collaborator.measure_reachability(
            first_hop, 56, config.first_hop_ping_count, config.ping_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    return _ping_target(ProbeId(ProbeKind.FIRST_HOP, host=first_hop),
                        f"First hop ({first_hop})", measurement, now)


def run_router_log_check(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Show recent kernel messages about the network link."""
    probe_id = ProbeId(ProbeKind.ROUTER_LOG)
    try:
        lines = collaborator.read_system_log_tail(config.router_log_pattern,
                                                  config.router_log_lines)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    if not lines:
        return ProbeResult(probe_id, ProbeStatus.OK,
                           "No recent network-related system messages found", now,
                           metrics={"lines": 0})
    body = "\n".join(lines)
    return ProbeResult(probe_id, ProbeStatus.OK,
                       f"Recent system messages about network:\n{body}", now,
                       metrics={"lines": len(lines)})


def run_mtu_sweep(
    config: Config,
    collaborator,
    now: datetime,
    clock: Callable[[], datetime] = datetime.now,
    sleep: Callable[[float], None] = time.sleep
) -> List[ProbeResult]:
    """
    Ping TEST_HOST with fragmentation forbidden at descending payload sizes.

    Each size gets its own OK/FAILED result; the ordered list is the sweep
    outcome.
    """
    results: List[ProbeResult] = []
    sizes = list(config.mtu_sizes)

    for index, size in enumerate(sizes):
        probe_id = ProbeId(ProbeKind.MTU_SWEEP, host=config.test_host, size=size)
        stamp = now if index == 0 else clock()
        try:
            measurement = collaborator.measure_reachability(
                config.test_host, size, config.mtu_ping_count, config.ping_timeout,
                dont_fragment=True)
        except Exception as e:
            result = result_from_error(probe_id, e, stamp)
        else:
            metrics = _ping_metrics(measurement)
            if measurement.loss_pct is None:
                result = ProbeResult(probe_id, ProbeStatus.FAILED,
                                     f"MTU test failed at size {size}: {measurement.error}",
                                     stamp, metrics=metrics, error=measurement.error)
            elif measurement.loss_pct == 0:
                result = ProbeResult(probe_id, ProbeStatus.OK,
                                     f"MTU test: Size {size} successful - "
                                     f"{format_loss(measurement.loss_pct)}",
                                     stamp, metrics=metrics)
            else:
                result = ProbeResult(probe_id, ProbeStatus.FAILED,
                                     f"MTU test: Packet loss at size {size} - "
                                     f"{format_loss(measurement.loss_pct)} - possible MTU issue",
                                     stamp, metrics=metrics)
        results.append(result)

        if config.mtu_probe_pause > 0 and index < len(sizes) - 1:
            sleep(config.mtu_probe_pause)

    return results


def run_speed_test(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Measure throughput with the best available tool."""
    probe_id = ProbeId(ProbeKind.SPEED_TEST)
    try:
        throughput = collaborator.measure_throughput("auto")
    except Exception as e:
        return result_from_error(probe_id, e, now)

    if throughput.download_rate is None:
        return ProbeResult(probe_id, ProbeStatus.FAILED,
                           f"Speed test ({throughput.tool}) returned no download rate: "
                           f"{throughput.raw_output}", now)

    metrics = {"tool": throughput.tool, "download_mbps": round(throughput.download_rate, 2)}
    message = f"Speed test results ({throughput.tool}): Download {throughput.download_rate:.2f} Mbit/s"
    if throughput.upload_rate is not None:
        metrics["upload_mbps"] = round(throughput.upload_rate, 2)
        message += f", Upload {throughput.upload_rate:.2f} Mbit/s"
    return ProbeResult(probe_id, ProbeStatus.OK, message, now, metrics=metrics)


def run_traceroute(config: Config, collaborator, now: datetime) -> ProbeResult:
    """Trace the path to TEST_URL."""
    probe_id = ProbeId(ProbeKind.TRACEROUTE, host=config.test_url)
    try:
        hops = collaborator.trace_path(config.test_url, config.traceroute_max_hops,
                                       config.traceroute_timeout)
    except Exception as e:
        return result_from_error(probe_id, e, now)

    status = classify_trace(hops)
    silent = sum(1 for hop in hops if not hop)
    lines = "\n".join(f"{number:2d}  {hop or '*'}" for number, hop in enumerate(hops, start=1))
    if not hops:
        message = f"Traceroute to {config.test_url} returned no hops"
    else:
        message = f"Traceroute results:\n{lines}"
    return ProbeResult(probe_id, status, message, now,
                       metrics={"hops": len(hops), "unresponsive_hops": silent})
