"""Persistence of the single prior bandwidth sample."""

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BandwidthSample:
    """Cumulative interface byte counters at one point in time."""
    rx_bytes: int
    tx_bytes: int
    sampled_at: datetime


class BandwidthStore:
    """
    Keeps the most recent BandwidthSample in a small text file.

    The file holds "<rx_bytes> <tx_bytes>"; its modification time is the
    sample time.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[BandwidthSample]:
        """Read the stored sample, or None if absent or unreadable."""
        try:
            text = self.path.read_text()
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Cannot read bandwidth state {self.path}: {e}")
            return None

        parts = text.split()
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            logger.warning(f"Ignoring malformed bandwidth state in {self.path}: {text.strip()!r}")
            return None

        return BandwidthSample(
            rx_bytes=int(parts[0]),
            tx_bytes=int(parts[1]),
            sampled_at=datetime.fromtimestamp(mtime)
        )

    def store(self, sample: BandwidthSample) -> None:
        """Replace the stored sample atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(f"{sample.rx_bytes} {sample.tx_bytes}\n")
            stamp = sample.sampled_at.timestamp()
            os.utime(tmp_name, (stamp, stamp))
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
