"""Utility modules."""

from .logging_config import setup_logging, get_logger
from .config import Config
from .errors import (
    BandwidthBroError,
    ToolUnavailable,
    ProbeTimeout,
    ProbeExecutionError,
    ConfigurationInvalid,
    SinkWriteFailure,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "Config",
    "BandwidthBroError",
    "ToolUnavailable",
    "ProbeTimeout",
    "ProbeExecutionError",
    "ConfigurationInvalid",
    "SinkWriteFailure",
]
