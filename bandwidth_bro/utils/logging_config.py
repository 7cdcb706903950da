"""Logging configuration for bandwidth-bro."""

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)-8s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty third-party loggers that drown out probe diagnostics at DEBUG
_NOISY_LOGGERS = ("urllib3", "requests")


def setup_logging(level: int = logging.INFO,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """
    Set up logging for the application.

    Diagnostic messages go to stderr so they never interleave with the
    report stream the console sink writes to stdout.

    Args:
        level: Minimum log level to capture
        log_file: Optional file path to also write logs to

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)
