"""Throughput measurement via speedtest-cli, falling back to an HTTP download."""

import re
import shutil
import subprocess
import time
from dataclasses import dataclass
from typing import Optional

import requests
from requests.exceptions import RequestException

from ..utils import get_logger, ToolUnavailable, ProbeTimeout, ProbeExecutionError

logger = get_logger(__name__)

SPEEDTEST_CLI = "speedtest-cli"

_DOWNLOAD_RE = re.compile(r'Download:\s*([\d.]+)\s*Mbit/s')
_UPLOAD_RE = re.compile(r'Upload:\s*([\d.]+)\s*Mbit/s')
_CHUNK_SIZE = 64 * 1024


@dataclass
class Throughput:
    """Measured link throughput in Mbit/s."""
    tool: str
    download_rate: Optional[float] = None
    upload_rate: Optional[float] = None
    raw_output: str = ""


class ThroughputTester:
    """
    Measures download (and, with speedtest-cli, upload) throughput.
    """

    def __init__(self, download_url: str, timeout: float = 60.0):
        self.download_url = download_url
        self.timeout = timeout

    @staticmethod
    def speedtest_available() -> bool:
        return shutil.which(SPEEDTEST_CLI) is not None

    def measure(self, tool_preference: str = "auto") -> Throughput:
        """
        Run a throughput test.

        Args:
            tool_preference: "auto" (speedtest-cli when installed, else
                HTTP download), "speedtest-cli" or "http"

        Returns:
            Throughput
        """
        if tool_preference == SPEEDTEST_CLI and not self.speedtest_available():
            raise ToolUnavailable(SPEEDTEST_CLI)

        if tool_preference in ("auto", SPEEDTEST_CLI) and self.speedtest_available():
            return self._run_speedtest_cli()

        logger.debug("Falling back to HTTP download speed test")
        return self._run_http_download()

    def _run_speedtest_cli(self) -> Throughput:
        logger.debug("Using speedtest-cli for speed test")
        try:
            proc = subprocess.run([SPEEDTEST_CLI, '--simple'], capture_output=True,
                                  text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            raise ProbeTimeout(SPEEDTEST_CLI, self.timeout)

        output = (proc.stdout + proc.stderr).strip()
        if proc.returncode != 0:
            raise ProbeExecutionError(output or f"{SPEEDTEST_CLI} exited with status {proc.returncode}")

        download = _DOWNLOAD_RE.search(output)
        upload = _UPLOAD_RE.search(output)
        return Throughput(
            tool=SPEEDTEST_CLI,
            download_rate=float(download.group(1)) if download else None,
            upload_rate=float(upload.group(1)) if upload else None,
            raw_output=output
        )

    def _run_http_download(self) -> Throughput:
        received = 0
        start = time.perf_counter()
        try:
            with requests.get(self.download_url, stream=True,
                              timeout=(5, self.timeout)) as response:
                response.raise_for_status()
                for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                    received += len(chunk)
                    if time.perf_counter() - start > self.timeout:
                        break
        except requests.exceptions.Timeout:
            raise ProbeTimeout("HTTP download", self.timeout)
        except RequestException as e:
            raise ProbeExecutionError(f"HTTP download failed: {e}")

        elapsed = time.perf_counter() - start
        if elapsed <= 0 or received == 0:
            raise ProbeExecutionError("HTTP download received no data")

        bytes_per_sec = received / elapsed
        return Throughput(
            tool="http",
            download_rate=bytes_per_sec * 8 / 1_000_000,
            raw_output=f"{bytes_per_sec:.0f} bytes/sec"
        )
