"""Report sinks: render probe results and messages to the console and a log file."""

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.text import Text

from .models import ProbeResult, ProbeStatus
from ..utils import get_logger, SinkWriteFailure

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
CYCLE_SEPARATOR = "--------------------------------"

STATUS_STYLES = {
    ProbeStatus.OK: "green",
    ProbeStatus.DEGRADED: "yellow",
    ProbeStatus.FAILED: "red",
    ProbeStatus.SKIPPED: "yellow",
}

# Styles for plain messages
MESSAGE_STYLES = {
    "success": "green",
    "warning": "yellow",
    "error": "red",
}

ReportEvent = Union[ProbeResult, str]


def format_event(timestamp: datetime, event: ReportEvent) -> str:
    """Render an event as a single plain report entry."""
    stamp = timestamp.strftime(TIMESTAMP_FORMAT)
    if isinstance(event, ProbeResult):
        return f"{stamp}: [{event.status.value.upper()}] {event.message}"
    return f"{stamp}: {event}"


class ReportSink:
    """Receives timestamped probe results and plain messages."""

    def emit(self, timestamp: datetime, event: ReportEvent, style: Optional[str] = None) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class ConsoleReportSink(ReportSink):
    """
    Writes report entries to the terminal, colored by status.
    """

    def __init__(self, console: Optional[Console] = None, use_color: bool = True):
        self.console = console or Console(highlight=False, no_color=not use_color)

    def emit(self, timestamp: datetime, event: ReportEvent, style: Optional[str] = None) -> None:
        line = format_event(timestamp, event)
        if isinstance(event, ProbeResult):
            color = STATUS_STYLES[event.status]
        else:
            color = MESSAGE_STYLES.get(style or "", "")
        self.console.print(Text(line, style=color), soft_wrap=True)


class LogReportSink(ConsoleReportSink):
    """
    Console sink that also appends every entry to a log file.

    If the file cannot be written, a warning is logged once and the sink
    carries on with console output only.
    """

    def __init__(self, log_file: Path, console: Optional[Console] = None, use_color: bool = True):
        super().__init__(console=console, use_color=use_color)
        self.log_file = Path(log_file)
        self._file_enabled = True

        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._disable_file(SinkWriteFailure(
                f"Could not create log directory {self.log_file.parent}: {e}"))

    @property
    def file_enabled(self) -> bool:
        return self._file_enabled

    @property
    def destination(self) -> str:
        return str(self.log_file) if self._file_enabled else "console only"

    def emit(self, timestamp: datetime, event: ReportEvent, style: Optional[str] = None) -> None:
        super().emit(timestamp, event, style)
        if not self._file_enabled:
            return
        try:
            self._append(format_event(timestamp, event))
        except SinkWriteFailure as e:
            self._disable_file(e)

    def _append(self, line: str) -> None:
        try:
            with open(self.log_file, 'a', encoding='utf-8') as f:
                f.write(line + '\n')
        except OSError as e:
            raise SinkWriteFailure(f"Could not write to {self.log_file}: {e}") from e

    def _disable_file(self, error: SinkWriteFailure) -> None:
        self._file_enabled = False
        logger.warning(f"{error}. Try running with sudo if this is a permissions issue; "
                       f"logging to console only.")
