"""
Tests for the persisted bandwidth sample and the system collaborator wiring.

Run: python3 -m pytest tests/test_bandwidth_store.py -v
"""

import os
from datetime import datetime
from unittest.mock import patch

import pytest

from bandwidth_bro.network import BandwidthSample, BandwidthStore, SystemCollaborator
from bandwidth_bro.utils import Config


class TestBandwidthStore:
    """Tests for BandwidthStore load and store."""

    def test_missing_file(self, tmp_path):
        assert BandwidthStore(tmp_path / "bandwidth_prev").load() is None

    def test_store_then_load(self, tmp_path):
        path = tmp_path / "state" / "bandwidth_prev"
        sampled_at = datetime(2026, 10, 19, 12, 0, 0)
        store = BandwidthStore(path)

        store.store(BandwidthSample(123456, 7890, sampled_at))

        assert path.read_text() == "123456 7890\n"
        assert store.load() == BandwidthSample(123456, 7890, sampled_at)

    def test_store_replaces_previous(self, tmp_path):
        store = BandwidthStore(tmp_path / "bandwidth_prev")
        store.store(BandwidthSample(1, 2, datetime(2026, 10, 19, 12, 0, 0)))
        store.store(BandwidthSample(3, 4, datetime(2026, 10, 19, 12, 0, 5)))

        assert store.load().rx_bytes == 3
        assert sorted(os.listdir(tmp_path)) == ["bandwidth_prev"]

    @pytest.mark.parametrize("content", ["", "garbage", "12", "1 2 3", "-5 10"])
    def test_malformed_file(self, tmp_path, content):
        path = tmp_path / "bandwidth_prev"
        path.write_text(content)
        assert BandwidthStore(path).load() is None

    def test_failed_store_leaves_no_temp_file(self, tmp_path):
        store = BandwidthStore(tmp_path / "bandwidth_prev")
        with patch("bandwidth_bro.network.bandwidth_store.os.replace",
                   side_effect=OSError("read-only")):
            with pytest.raises(OSError):
                store.store(BandwidthSample(1, 2, datetime(2026, 10, 19, 12, 0, 0)))
        assert os.listdir(tmp_path) == []


class TestSystemCollaborator:
    """Tests for SystemCollaborator wiring."""

    def test_missing_tools(self):
        collaborator = SystemCollaborator(Config())
        with patch("bandwidth_bro.network.system.shutil.which",
                   side_effect=lambda tool: None if tool in ("traceroute", "dmesg") else "/bin/x"):
            assert collaborator.missing_tools() == ["traceroute", "dmesg"]

    def test_bandwidth_sample_round_trip(self, tmp_path):
        config = Config(bandwidth_state_file=str(tmp_path / "bandwidth_prev"))
        collaborator = SystemCollaborator(config)
        sample = BandwidthSample(10, 20, datetime(2026, 10, 19, 8, 30, 0))

        collaborator.store_bandwidth_sample(sample)

        assert collaborator.load_bandwidth_sample() == sample
