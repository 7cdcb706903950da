"""
Stateless cadence decisions for throttled probes.

A probe gated by a minute period P is due whenever the wall-clock minute is a
multiple of P; a probe gated by a window W is due whenever the wall-clock
second is below W. Neither test keeps state between cycles. A due minute or
window may contain several cycles; each of them runs the probe.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def is_due(now: datetime, period_minutes: int) -> bool:
    """True when ``now`` falls in a minute that is a multiple of the period."""
    if period_minutes < 1:
        raise ValueError(f"period_minutes must be positive, got {period_minutes}")
    return now.minute % period_minutes == 0


def is_due_within_window(now: datetime, window_seconds: int) -> bool:
    """True during the first ``window_seconds`` seconds of every minute."""
    return now.second < window_seconds


@dataclass(frozen=True)
class Cadence:
    """How often a probe runs. Without a period or window it runs every cycle."""
    period_minutes: Optional[int] = None
    window_seconds: Optional[int] = None

    @classmethod
    def every_cycle(cls) -> "Cadence":
        return cls()

    @classmethod
    def every_minutes(cls, period: int) -> "Cadence":
        return cls(period_minutes=period)

    @classmethod
    def within_window(cls, seconds: int) -> "Cadence":
        return cls(window_seconds=seconds)

    @property
    def is_throttled(self) -> bool:
        return self.period_minutes is not None or self.window_seconds is not None

    def describe(self) -> str:
        if self.period_minutes is not None:
            return f"every {self.period_minutes} min"
        if self.window_seconds is not None:
            return f"first {self.window_seconds}s of each minute"
        return "every cycle"


class CadenceGate:
    """Answers "is this probe due now?" for the cycle orchestrator."""

    def is_due(self, now: datetime, period_minutes: int) -> bool:
        return is_due(now, period_minutes)

    def is_due_within_window(self, now: datetime, window_seconds: int) -> bool:
        return is_due_within_window(now, window_seconds)

    def allows(self, cadence: Cadence, now: datetime) -> bool:
        if cadence.period_minutes is not None:
            if not self.is_due(now, cadence.period_minutes):
                return False
        if cadence.window_seconds is not None:
            if not self.is_due_within_window(now, cadence.window_seconds):
                return False
        return True
