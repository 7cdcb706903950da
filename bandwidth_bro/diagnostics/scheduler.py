"""The scheduler loop: run a cycle, wait INTERVAL seconds, repeat until cancelled."""

import os
import signal
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from .cadence import CadenceGate
from .models import BandwidthSample, CycleSummary
from .reports import ReportSink
from .runner import CycleRunner
from ..utils import Config, get_logger

logger = get_logger(__name__)

# Failures datetime.now() can raise on a broken or out-of-range system clock
CLOCK_ERRORS = (OSError, OverflowError, ValueError)


@dataclass
class RunStats:
    """Totals across the whole run."""
    started_at: datetime
    cycles: int = 0
    failed_cycles: int = 0
    failed_probes: int = 0
    interrupted: bool = False
    last_summary: Optional[CycleSummary] = field(default=None, repr=False)

    def record(self, summary: CycleSummary) -> None:
        self.failed_probes += summary.failed
        self.last_summary = summary


class Scheduler:
    """
    Drives CycleRunner once per configured interval until cancelled.

    Cancellation (SIGINT/SIGTERM or stop()) lets the current probe finish,
    then ends the loop before another cycle starts.
    """

    def __init__(
        self,
        config: Config,
        collaborator,
        sink: ReportSink,
        cadence_gate: Optional[CadenceGate] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.config = config
        self.collaborator = collaborator
        self.sink = sink
        self._cancel_flag = cancel_event or threading.Event()
        self._clock = clock
        self._runner = CycleRunner(
            config, collaborator, sink,
            cadence_gate=cadence_gate,
            cancel_event=self._cancel_flag,
            clock=clock
        )

    @property
    def cancelled(self) -> bool:
        return self._cancel_flag.is_set()

    def stop(self, signum: Optional[int] = None, frame=None) -> None:
        """Request a graceful stop. Usable directly as a signal handler."""
        if signum is not None:
            logger.debug(f"Received signal {signum}")
        self._cancel_flag.set()

    def install_signal_handlers(self) -> None:
        """Route SIGINT and SIGTERM to stop(). Must run in the main thread."""
        signal.signal(signal.SIGINT, self.stop)
        signal.signal(signal.SIGTERM, self.stop)

    def start_up(self) -> None:
        """Report the environment before the first cycle."""
        now = self._clock()
        self._emit(now, f"Network diagnostics started at {now:%Y-%m-%d %H:%M:%S}", "success")

        if hasattr(os, "geteuid") and os.geteuid() != 0:
            self._emit(now, "Note: Some diagnostics require root privileges. Run with 'sudo' for "
                            "complete results if you encounter permission issues.", "warning")

        try:
            missing = self.collaborator.missing_tools()
        except Exception as e:
            logger.warning(f"Could not check for required tools: {e}")
            missing = []
        for tool in missing:
            self._emit(now, f"Warning: {tool} is not installed. Some tests will be skipped. "
                            f"Install it for full diagnostics.", "warning")
        if missing:
            self._emit(now, "Continuing with limited functionality.", "warning")

        speedtest_available = getattr(self.collaborator, "speedtest_available", None)
        if speedtest_available is not None and not speedtest_available():
            self._emit(now, "speedtest-cli not found, falling back to basic download test")

        try:
            nameservers = self.collaborator.read_system_nameservers()
        except Exception as e:
            logger.warning(f"Could not read DNS configuration: {e}")
            nameservers = []
        self._emit(now, "Current DNS configuration:")
        if nameservers:
            for server in nameservers:
                self._emit(now, f"nameserver {server}")
        else:
            self._emit(now, "No nameserver found")

        if self.config.interval >= 60:
            self._emit(now, f"INTERVAL is {self.config.interval}s; probes limited to the first "
                            f"{self.config.throttle_window_seconds}s of a minute will only run "
                            f"when a cycle happens to start inside that window.", "warning")

    def run(self, max_cycles: Optional[int] = None) -> RunStats:
        """
        Run cycles until cancelled or ``max_cycles`` is reached.

        Returns:
            RunStats for the whole run
        """
        stats = RunStats(started_at=self._clock())
        try:
            self.start_up()
            sample = self._load_bandwidth_sample()

            while not self._cancel_flag.is_set():
                try:
                    now = self._clock()
                except CLOCK_ERRORS as e:
                    logger.critical(f"Cannot read the current time, stopping: {e}")
                    break

                stats.cycles += 1
                try:
                    summary = self._runner.run_cycle(sample, now=now, cycle=stats.cycles)
                except Exception as e:
                    logger.exception(f"Cycle {stats.cycles} failed: {e}")
                    stats.failed_cycles += 1
                    self._emit(now, f"Cycle {stats.cycles} aborted by internal error: {e}", "error")
                else:
                    sample = summary.bandwidth_sample
                    stats.record(summary)

                if max_cycles is not None and stats.cycles >= max_cycles:
                    break
                if self._cancel_flag.wait(self.config.interval):
                    break
        except KeyboardInterrupt:
            # Only reached when the signal handlers were not installed
            self._cancel_flag.set()

        stats.interrupted = self._cancel_flag.is_set()
        self._shut_down(stats)
        return stats

    def _load_bandwidth_sample(self) -> Optional[BandwidthSample]:
        try:
            return self.collaborator.load_bandwidth_sample()
        except Exception as e:
            logger.warning(f"Could not load previous bandwidth sample: {e}")
            return None

    def _shut_down(self, stats: RunStats) -> None:
        try:
            now = self._clock()
        except CLOCK_ERRORS as e:
            logger.warning(f"Cannot read the current time for shutdown, using start time: {e}")
            now = stats.started_at
        if stats.interrupted:
            self._emit(now, "Interrupted by user. Exiting...", "warning")
        self._emit(now, f"Stopped after {stats.cycles} cycle(s); "
                        f"{stats.failed_probes} failed probe(s), "
                        f"{stats.failed_cycles} aborted cycle(s)")
        self.sink.close()

    def _emit(self, timestamp: datetime, message: str, style: Optional[str] = None) -> None:
        try:
            self.sink.emit(timestamp, message, style=style)
        except Exception as e:
            logger.error(f"Report sink error: {e}")
