"""Cycle orchestration: decide which probes are due and run them in order."""

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Union

from . import probes
from .cadence import Cadence, CadenceGate
from .models import BandwidthSample, CycleSummary, ProbeId, ProbeKind, ProbeResult
from .reports import ReportSink, CYCLE_SEPARATOR
from ..utils import Config, get_logger

logger = get_logger(__name__)

ProbeOutput = Union[ProbeResult, List[ProbeResult]]


@dataclass(frozen=True)
class PlannedProbe:
    """One entry of a cycle's probe plan."""
    name: str
    probe_id: ProbeId
    execute: Callable[[datetime], ProbeOutput]
    cadence: Cadence


class CycleRunner:
    """
    Runs one diagnostic cycle at a time.

    Probes run sequentially in a fixed order. A probe that raises is recorded
    as FAILED and the cycle moves on to the next probe.
    """

    def __init__(
        self,
        config: Config,
        collaborator,
        sink: ReportSink,
        cadence_gate: Optional[CadenceGate] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config
        self.collaborator = collaborator
        self.sink = sink
        self.cadence_gate = cadence_gate or CadenceGate()
        self._cancel_flag = cancel_event or threading.Event()
        self._clock = clock
        self._sleep = sleep

    def cancel(self) -> None:
        """Stop the current cycle before its next probe."""
        self._cancel_flag.set()

    def build_plan(self, summary: CycleSummary) -> List[PlannedProbe]:
        """The full probe set for one cycle, in report order."""
        config = self.config
        collaborator = self.collaborator
        window = Cadence.within_window(config.throttle_window_seconds)
        always = Cadence.every_cycle()

        plan: List[PlannedProbe] = []

        for host in config.ping_hosts:
            for size in config.ping_sizes:
                plan.append(PlannedProbe(
                    f"Ping {host} size {size}",
                    ProbeId(ProbeKind.PING, host=host, size=size),
                    lambda now, host=host, size=size: probes.run_ping(
                        config, collaborator, now, host, size),
                    always
                ))

        def bandwidth(now: datetime) -> ProbeResult:
            result, sample = probes.run_bandwidth(
                config, collaborator, now, summary.bandwidth_sample)
            summary.bandwidth_sample = sample
            return result

        def mtu_sweep(now: datetime) -> List[ProbeResult]:
            return probes.run_mtu_sweep(config, collaborator, now,
                                        clock=self._clock, sleep=self._sleep)

        def simple(executor_name: str) -> Callable[[datetime], ProbeResult]:
            return lambda now: getattr(probes, executor_name)(config, collaborator, now)

        plan.extend([
            PlannedProbe("DNS lookup", ProbeId(ProbeKind.DNS_LOOKUP, host=config.test_url),
                         simple("run_dns_lookup"), always),
            PlannedProbe("Alternate DNS", ProbeId(ProbeKind.ALTERNATE_DNS, host=config.alternate_dns),
                         simple("run_alternate_dns"), window),
            PlannedProbe("DNS server", ProbeId(ProbeKind.DNS_SERVER),
                         simple("run_dns_server_check"), window),
            PlannedProbe("HTTP", ProbeId(ProbeKind.HTTP, host=config.test_url),
                         simple("run_http_check"), always),
            PlannedProbe("Interface status", ProbeId(ProbeKind.INTERFACES),
                         simple("run_interface_status"), always),
            PlannedProbe("Gateway", ProbeId(ProbeKind.GATEWAY),
                         simple("run_gateway_check"), always),
            PlannedProbe("First hop", ProbeId(ProbeKind.FIRST_HOP),
                         simple("run_first_hop_check"), window),
            PlannedProbe("WiFi signal", ProbeId(ProbeKind.WIFI),
                         simple("run_wifi_signal"), always),
            PlannedProbe("Router log", ProbeId(ProbeKind.ROUTER_LOG),
                         simple("run_router_log_check"), window),
            PlannedProbe("MTU sweep", ProbeId(ProbeKind.MTU_SWEEP, host=config.test_host),
                         mtu_sweep, window),
            PlannedProbe("Speed test", ProbeId(ProbeKind.SPEED_TEST),
                         simple("run_speed_test"),
                         Cadence.every_minutes(config.speed_test_interval)),
            PlannedProbe("Traceroute", ProbeId(ProbeKind.TRACEROUTE, host=config.test_url),
                         simple("run_traceroute"),
                         Cadence.every_minutes(config.traceroute_interval)),
            PlannedProbe("Bandwidth", ProbeId(ProbeKind.BANDWIDTH), bandwidth, always),
        ])
        return plan

    def run_cycle(
        self,
        bandwidth_sample: Optional[BandwidthSample] = None,
        now: Optional[datetime] = None,
        cycle: int = 1
    ) -> CycleSummary:
        """
        Run every due probe once and forward each result to the sink.

        Args:
            bandwidth_sample: Sample carried over from the previous cycle
            now: Instant used for cadence decisions (defaults to the clock)
            cycle: Cycle number for the summary

        Returns:
            CycleSummary with status counts and the sample for the next cycle
        """
        now = now or self._clock()
        start = time.perf_counter()
        summary = CycleSummary(cycle=cycle, started_at=now, bandwidth_sample=bandwidth_sample)

        logger.debug(f"Starting cycle {cycle} at {now:%H:%M:%S}")

        for planned in self.build_plan(summary):
            if self._cancel_flag.is_set():
                logger.info(f"Cycle {cycle} cancelled before {planned.name}")
                summary.cancelled = True
                break

            output = self._run_if_due(planned, now, summary)
            if output is None:
                continue

            results = output if isinstance(output, list) else [output]
            for result in results:
                summary.record(result)
                self._forward(result.timestamp, result)

        summary.duration_s = time.perf_counter() - start

        if not summary.cancelled:
            self._forward(self._clock(), f"Cycle {cycle} summary: {summary.describe()}")
            self._forward(self._clock(), CYCLE_SEPARATOR)

        logger.debug(f"Cycle {cycle} complete in {summary.duration_s:.1f}s: {summary.describe()}")
        return summary

    def _run_if_due(self, planned: PlannedProbe, now: datetime,
                    summary: CycleSummary) -> Optional[ProbeOutput]:
        """Execute ``planned`` when its cadence allows; None when it is not due."""
        try:
            if not self.cadence_gate.allows(planned.cadence, now):
                logger.debug(f"{planned.name} not due ({planned.cadence.describe()})")
                summary.not_due.append(planned.name)
                return None
            logger.debug(f"Running probe: {planned.name}")
            return planned.execute(self._clock())
        except Exception as e:
            logger.error(f"Probe error ({planned.name}): {e}")
            return probes.crashed_result(planned.probe_id, e, self._clock())

    def _forward(self, timestamp: datetime, event: Union[ProbeResult, str]) -> None:
        try:
            self.sink.emit(timestamp, event)
        except Exception as e:
            logger.error(f"Report sink error: {e}")


def run_cycle(
    config: Config,
    cadence_gate: CadenceGate,
    sink: ReportSink,
    collaborator,
    bandwidth_sample: Optional[BandwidthSample] = None,
    now: Optional[datetime] = None,
    cancel_event: Optional[threading.Event] = None
) -> CycleSummary:
    """Run a single cycle with a throwaway CycleRunner."""
    runner = CycleRunner(config, collaborator, sink,
                         cadence_gate=cadence_gate, cancel_event=cancel_event)
    return runner.run_cycle(bandwidth_sample, now=now)
