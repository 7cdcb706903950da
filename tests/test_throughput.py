"""
Tests for throughput measurement.

Run: python3 -m pytest tests/test_throughput.py -v
"""

import subprocess
from unittest.mock import patch

import pytest
import requests

from bandwidth_bro.network.throughput import ThroughputTester
from bandwidth_bro.utils import ProbeExecutionError, ProbeTimeout, ToolUnavailable

MODULE = "bandwidth_bro.network.throughput"
URL = "https://speed.example.net/__down?bytes=1000"

SPEEDTEST_SIMPLE = "Ping: 12.345 ms\nDownload: 93.40 Mbit/s\nUpload: 11.20 Mbit/s\n"


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestSpeedtestCli:
    """Tests for the speedtest-cli path."""

    @patch(f"{MODULE}.shutil.which", return_value="/usr/bin/speedtest-cli")
    @patch(f"{MODULE}.subprocess.run")
    def test_parses_simple_output(self, mock_run, mock_which):
        mock_run.return_value = completed(SPEEDTEST_SIMPLE)

        throughput = ThroughputTester(URL).measure()

        assert mock_run.call_args[0][0] == ["speedtest-cli", "--simple"]
        assert throughput.tool == "speedtest-cli"
        assert throughput.download_rate == 93.40
        assert throughput.upload_rate == 11.20

    @patch(f"{MODULE}.shutil.which", return_value="/usr/bin/speedtest-cli")
    @patch(f"{MODULE}.subprocess.run")
    def test_failure_exit(self, mock_run, mock_which):
        mock_run.return_value = completed("", "Cannot retrieve speedtest configuration", 1)
        with pytest.raises(ProbeExecutionError):
            ThroughputTester(URL).measure()

    @patch(f"{MODULE}.shutil.which", return_value="/usr/bin/speedtest-cli")
    @patch(f"{MODULE}.subprocess.run", side_effect=subprocess.TimeoutExpired("speedtest-cli", 60))
    def test_timeout(self, mock_run, mock_which):
        with pytest.raises(ProbeTimeout):
            ThroughputTester(URL, timeout=60).measure()

    @patch(f"{MODULE}.shutil.which", return_value=None)
    def test_explicit_preference_without_tool(self, mock_which):
        with pytest.raises(ToolUnavailable):
            ThroughputTester(URL).measure("speedtest-cli")


class TestHttpDownload:
    """Tests for the HTTP download fallback."""

    @patch(f"{MODULE}.shutil.which", return_value=None)
    @patch(f"{MODULE}.requests.get")
    def test_fallback_download(self, mock_get, mock_which):
        response = mock_get.return_value.__enter__.return_value
        response.iter_content.return_value = [b"x" * 65536] * 4

        throughput = ThroughputTester(URL, timeout=30).measure()

        assert mock_get.call_args[0][0] == URL
        assert mock_get.call_args[1]["stream"] is True
        response.raise_for_status.assert_called_once()
        assert throughput.tool == "http"
        assert throughput.download_rate > 0
        assert throughput.upload_rate is None

    @patch(f"{MODULE}.requests.get")
    def test_http_preference_skips_cli(self, mock_get):
        response = mock_get.return_value.__enter__.return_value
        response.iter_content.return_value = [b"x" * 1024]
        with patch(f"{MODULE}.subprocess.run") as mock_run:
            throughput = ThroughputTester(URL).measure("http")
        mock_run.assert_not_called()
        assert throughput.tool == "http"

    @patch(f"{MODULE}.shutil.which", return_value=None)
    @patch(f"{MODULE}.requests.get", side_effect=requests.exceptions.ConnectTimeout())
    def test_download_timeout(self, mock_get, mock_which):
        with pytest.raises(ProbeTimeout):
            ThroughputTester(URL).measure()

    @patch(f"{MODULE}.shutil.which", return_value=None)
    @patch(f"{MODULE}.requests.get")
    def test_http_error_status(self, mock_get, mock_which):
        response = mock_get.return_value.__enter__.return_value
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("503 Server Error")
        with pytest.raises(ProbeExecutionError):
            ThroughputTester(URL).measure()

    @patch(f"{MODULE}.shutil.which", return_value=None)
    @patch(f"{MODULE}.requests.get")
    def test_empty_body(self, mock_get, mock_which):
        mock_get.return_value.__enter__.return_value.iter_content.return_value = []
        with pytest.raises(ProbeExecutionError):
            ThroughputTester(URL).measure()
