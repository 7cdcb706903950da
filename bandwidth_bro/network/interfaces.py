"""Link-layer readings: WiFi signal, interface byte counters and kernel messages."""

import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..utils import get_logger, ToolUnavailable, ProbeTimeout, ProbeExecutionError

logger = get_logger(__name__)

PROC_NET_DEV = Path("/proc/net/dev")

# Interfaces whose traffic counts toward bandwidth usage
COUNTED_INTERFACES = re.compile(r'wlan|eth|enp|wlp')

_SIGNAL_RE = re.compile(r'Signal level[=:]\s*(-?\d+)')
_FREQUENCY_RE = re.compile(r'Frequency[=:]\s*([\d.]+)')
_CHANNEL_RE = re.compile(r'\(Channel (\d+)\)')
_PERMISSION_MARKERS = ("Operation not permitted", "Permission denied")


@dataclass
class WifiSignal:
    """One reading of the wireless link."""
    interface: str
    dbm: int
    frequency: Optional[str] = None  # GHz
    channel: Optional[str] = None
    signal_line: str = ""


def parse_wireless_interfaces(iwconfig_output: str) -> List[str]:
    """Names of interfaces that iwconfig reports as wireless."""
    names = []
    for line in iwconfig_output.splitlines():
        if not line or line[0].isspace():
            continue
        if "no wireless extensions" in line:
            continue
        names.append(line.split()[0])
    return names


def parse_net_dev(text: str, pattern=COUNTED_INTERFACES) -> Tuple[int, int]:
    """
    Sum received and transmitted bytes from /proc/net/dev content.

    Only interfaces whose name matches ``pattern`` are counted.
    """
    rx_total = 0
    tx_total = 0
    for line in text.splitlines():
        if ':' not in line:
            continue
        name, _, data = line.partition(':')
        name = name.strip()
        if not pattern.search(name):
            continue
        columns = data.split()
        if len(columns) < 9:
            continue
        rx_total += int(columns[0])
        tx_total += int(columns[8])
    return rx_total, tx_total


class InterfaceInspector:
    """
    Reads wireless and traffic statistics from the local system.
    """

    def __init__(self, net_dev_path: Path = PROC_NET_DEV, command_timeout: float = 5.0):
        self.net_dev_path = Path(net_dev_path)
        self.command_timeout = command_timeout

    def read_wifi_signal(self, interface: Optional[str] = None) -> Optional[WifiSignal]:
        """
        Read signal level, frequency and channel of a wireless interface.

        Args:
            interface: Interface to read; the first wireless one if omitted

        Returns:
            WifiSignal, or None when there is no wireless interface or the
            signal level cannot be read

        Raises:
            ToolUnavailable: iwconfig is not installed
        """
        if shutil.which('iwconfig') is None:
            raise ToolUnavailable('iwconfig')

        if interface is None:
            listing = self._run(['iwconfig'], allow_failure=True)
            wireless = parse_wireless_interfaces(listing)
            if not wireless:
                logger.debug("No WiFi interface found")
                return None
            interface = wireless[0]

        details = self._run(['iwconfig', interface], allow_failure=True)
        signal_match = _SIGNAL_RE.search(details)
        if not signal_match:
            logger.debug(f"No signal level reported for {interface}")
            return None

        signal_line = next(
            (line.strip() for line in details.splitlines() if 'Signal level' in line),
            ""
        )
        frequency_match = _FREQUENCY_RE.search(details)

        return WifiSignal(
            interface=interface,
            dbm=int(signal_match.group(1)),
            frequency=frequency_match.group(1) if frequency_match else None,
            channel=self._read_channel(interface),
            signal_line=signal_line
        )

    def _read_channel(self, interface: str) -> Optional[str]:
        if shutil.which('iwlist') is None:
            return None
        try:
            output = self._run(['iwlist', interface, 'channel'], allow_failure=True)
        except ProbeTimeout:
            return None
        match = _CHANNEL_RE.search(output)
        return match.group(1) if match else None

    def read_interface_counters(self) -> Tuple[int, int]:
        """Return cumulative (rx_bytes, tx_bytes) over the counted interfaces."""
        try:
            text = self.net_dev_path.read_text()
        except FileNotFoundError:
            raise ToolUnavailable(str(self.net_dev_path))
        except OSError as e:
            raise ProbeExecutionError(f"Cannot read {self.net_dev_path}: {e}")
        return parse_net_dev(text)

    def read_system_log_tail(self, pattern: str, count: int = 5) -> List[str]:
        """
        Return the last ``count`` kernel log lines matching ``pattern``.

        Raises:
            ToolUnavailable: dmesg is missing or needs elevated privileges
        """
        if shutil.which('dmesg') is None:
            raise ToolUnavailable('dmesg')
        try:
            proc = subprocess.run(['dmesg'], capture_output=True, text=True,
                                  timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            raise ProbeTimeout('dmesg', self.command_timeout)

        if proc.returncode != 0:
            stderr = proc.stderr.strip()
            if any(marker in stderr for marker in _PERMISSION_MARKERS):
                raise ToolUnavailable('dmesg', "requires elevated privileges, run with sudo")
            raise ProbeExecutionError(stderr or f"dmesg exited with status {proc.returncode}")

        matcher = re.compile(pattern, re.IGNORECASE)
        lines = [line for line in proc.stdout.splitlines() if matcher.search(line)]
        return lines[-count:] if count > 0 else []

    def _run(self, cmd: List[str], allow_failure: bool = False) -> str:
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.command_timeout)
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(cmd[0], self.command_timeout)
        if proc.returncode != 0 and not allow_failure:
            raise ProbeExecutionError(proc.stderr.strip() or f"{cmd[0]} failed")
        return proc.stdout
