"""
bandwidth-bro: continuous network health diagnostics.

Probes reachability, DNS, HTTP, link state, WiFi signal, MTU, throughput and
path on a fixed interval and writes a timestamped report to the console and a
log file, to help debug an unstable internet connection over time.

Usage:
    bandwidth-bro [--config PATH] [--debug] [--once] [--log-file PATH]

Or run directly:
    python -m bandwidth_bro.main
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from . import __version__
from .diagnostics import LogReportSink, Scheduler
from .network import SystemCollaborator
from .utils import Config, setup_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="bandwidth-bro",
        description="Continuously diagnose an unstable internet connection."
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="JSON config file (default: $CONFIG_FILE or ~/.bandwidth_bro/config.json)")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="Report log file (overrides LOGFILE)")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug output")
    parser.add_argument("--once", action="store_true",
                        help="Run a single cycle and exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(logging.DEBUG if args.debug else logging.INFO)
    config = Config.load(args.config)
    if args.debug:
        config.debug = True
    if args.log_file:
        config.log_file = str(args.log_file)
    if config.debug and not args.debug:
        setup_logging(logging.DEBUG)

    sink = LogReportSink(Path(config.log_file), use_color=config.use_color)
    collaborator = SystemCollaborator(config)
    scheduler = Scheduler(config, collaborator, sink)
    scheduler.install_signal_handlers()

    sink.emit(datetime.now(), f"Logging to {sink.destination}")
    scheduler.run(max_cycles=1 if args.once else None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
