"""Diagnostic scheduling, probe orchestration and reporting."""

from .models import (
    ProbeStatus,
    ProbeKind,
    ProbeId,
    ProbeResult,
    CycleSummary,
    BandwidthSample,
)
from .cadence import is_due, is_due_within_window, Cadence, CadenceGate
from .reports import ReportSink, ConsoleReportSink, LogReportSink
from .runner import CycleRunner, PlannedProbe, run_cycle
from .scheduler import Scheduler, RunStats

__all__ = [
    "ProbeStatus",
    "ProbeKind",
    "ProbeId",
    "ProbeResult",
    "CycleSummary",
    "BandwidthSample",
    "is_due",
    "is_due_within_window",
    "Cadence",
    "CadenceGate",
    "ReportSink",
    "ConsoleReportSink",
    "LogReportSink",
    "CycleRunner",
    "PlannedProbe",
    "run_cycle",
    "Scheduler",
    "RunStats",
]
