"""Application configuration for bandwidth-bro."""

import json
import math
import os
from dataclasses import MISSING, dataclass, field, asdict, fields
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from .errors import ConfigurationInvalid
from .logging_config import get_logger

logger = get_logger(__name__)

# Environment variables understood by the tool, mapped to Config fields
ENV_OVERRIDES: Dict[str, str] = {
    "TEST_HOST": "test_host",
    "TEST_HOST2": "test_host2",
    "TEST_HOST3": "test_host3",
    "TEST_URL": "test_url",
    "PING_COUNT": "ping_count",
    "INTERVAL": "interval",
    "SPEED_TEST_INTERVAL": "speed_test_interval",
    "TRACEROUTE_INTERVAL": "traceroute_interval",
    "ALTERNATE_DNS": "alternate_dns",
    "DEBUG_MODE": "debug",
    "LOGFILE": "log_file",
    "BANDWIDTH_STATE_FILE": "bandwidth_state_file",
}

# Numeric fields, grouped by the check they must pass; a failing value is
# reset to the field's declared default
POSITIVE_INT_FIELDS = (
    "ping_count",
    "interval",
    "speed_test_interval",
    "traceroute_interval",
    "throttle_window_seconds",
    "dns_server_ping_count",
    "gateway_ping_count",
    "first_hop_ping_count",
    "first_hop_max_hops",
    "mtu_ping_count",
    "traceroute_max_hops",
    "router_log_lines",
)
POSITIVE_INT_LIST_FIELDS = ("ping_sizes", "mtu_sizes")
POSITIVE_FLOAT_FIELDS = (
    "ping_timeout",
    "dns_timeout",
    "http_timeout",
    "traceroute_timeout",
    "speed_test_timeout",
)
NON_NEGATIVE_FLOAT_FIELDS = ("mtu_probe_pause",)

_TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Application configuration settings."""

    # Probe targets
    test_host: str = "8.8.8.8"          # Google DNS
    test_host2: str = "1.1.1.1"         # Cloudflare DNS
    test_host3: str = "208.67.222.222"  # OpenDNS
    test_url: str = "google.com"
    alternate_dns: str = "1.1.1.1"

    # Loop cadence
    interval: int = 5                   # seconds between cycles
    speed_test_interval: int = 3        # minutes
    traceroute_interval: int = 5        # minutes
    throttle_window_seconds: int = 30

    # Ping settings
    ping_count: int = 10
    ping_sizes: List[int] = field(default_factory=lambda: [56, 512])
    ping_timeout: float = 2.0           # per reply
    dns_server_ping_count: int = 3
    gateway_ping_count: int = 3
    first_hop_ping_count: int = 5
    first_hop_max_hops: int = 2

    # MTU sweep
    mtu_sizes: List[int] = field(default_factory=lambda: [1472, 1400, 1300, 1200])
    mtu_ping_count: int = 3
    mtu_probe_pause: float = 1.0

    # DNS / HTTP
    dns_timeout: float = 5.0
    http_timeout: float = 5.0

    # Traceroute
    traceroute_max_hops: int = 10
    traceroute_timeout: float = 60.0

    # Kernel log
    router_log_pattern: str = r"wlan|wifi|network|dhcp|internet"
    router_log_lines: int = 5

    # Throughput
    speed_test_url: str = "https://speed.cloudflare.com/__down?bytes=10000000"
    speed_test_timeout: float = 60.0

    # Output and state
    log_file: str = str(Path.home() / "bandwidth_bro.log")
    bandwidth_state_file: str = "/tmp/bandwidth_prev"
    use_color: bool = True
    debug: bool = False

    @classmethod
    def load(cls, filepath: Optional[Path] = None,
             environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Load configuration from file, apply environment overrides and validate.

        Args:
            filepath: JSON config file; defaults to $CONFIG_FILE or
                ~/.bandwidth_bro/config.json
            environ: Environment mapping, defaults to os.environ

        Returns:
            A validated Config
        """
        if environ is None:
            environ = os.environ

        if filepath is None:
            filepath = Path(environ["CONFIG_FILE"]) if environ.get("CONFIG_FILE") \
                else cls._default_config_path()
        filepath = Path(filepath)

        data: Dict[str, object] = {}
        if filepath.exists():
            logger.debug(f"Loading configuration from {filepath}")
            try:
                with open(filepath, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.warning(f"Config file {filepath} is not a JSON object, using defaults")
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(
                    f"Could not load config file {filepath} ({e}), continuing with default settings"
                )

        known = {f.name for f in fields(cls)}
        for key in list(data):
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                del data[key]

        for env_name, field_name in ENV_OVERRIDES.items():
            if env_name in environ:
                data[field_name] = environ[env_name]

        config = cls(**data)
        config.validate()
        return config

    def validate(self) -> List[str]:
        """
        Coerce and validate field values, resetting invalid ones to defaults.

        Returns:
            Names of the fields that were reset
        """
        reset: List[str] = []
        checks = (
            [(name, _positive_int) for name in POSITIVE_INT_FIELDS]
            + [(name, _positive_int_list) for name in POSITIVE_INT_LIST_FIELDS]
            + [(name, _positive_float) for name in POSITIVE_FLOAT_FIELDS]
            + [(name, _non_negative_float) for name in NON_NEGATIVE_FLOAT_FIELDS]
        )

        for name, check in checks:
            try:
                setattr(self, name, check(name, getattr(self, name)))
            except ConfigurationInvalid as e:
                default = _field_default(name)
                logger.warning(f"Invalid configuration {e}, resetting to {default}")
                setattr(self, name, default)
                reset.append(name)

        if isinstance(self.debug, str):
            self.debug = self.debug.strip().lower() in _TRUE_STRINGS
        if isinstance(self.use_color, str):
            self.use_color = self.use_color.strip().lower() in _TRUE_STRINGS

        return reset

    def save(self, filepath: Optional[Path] = None) -> None:
        """Save configuration to file."""
        if filepath is None:
            filepath = self._default_config_path()
        filepath = Path(filepath)

        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(asdict(self), f, indent=2)

    @staticmethod
    def _default_config_path() -> Path:
        """Get the default configuration file path."""
        return Path.home() / ".bandwidth_bro" / "config.json"

    @property
    def ping_hosts(self) -> List[str]:
        """Primary, secondary and tertiary reachability targets, in order."""
        return [self.test_host, self.test_host2, self.test_host3]


def _positive_int(name: str, value) -> int:
    """Return value as a positive int or raise ConfigurationInvalid."""
    if isinstance(value, bool):
        raise ConfigurationInvalid(name, value, "must be a positive integer")
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise ConfigurationInvalid(name, value, "must be a positive integer")
        value = int(text)
    if not isinstance(value, int):
        raise ConfigurationInvalid(name, value, "must be a positive integer")
    if value < 1:
        raise ConfigurationInvalid(name, value, "must be a positive integer")
    return value


def _positive_int_list(name: str, value) -> List[int]:
    """Return value as a non-empty list of positive ints or raise ConfigurationInvalid."""
    if not isinstance(value, (list, tuple)) or not value:
        raise ConfigurationInvalid(name, value, "must be a non-empty list of positive integers")
    return [_positive_int(name, item) for item in value]


def _number(name: str, value, reason: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationInvalid(name, value, reason)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationInvalid(name, value, reason)
    if not math.isfinite(number):
        raise ConfigurationInvalid(name, value, reason)
    return number


def _positive_float(name: str, value) -> float:
    number = _number(name, value, "must be a positive number")
    if number <= 0:
        raise ConfigurationInvalid(name, value, "must be a positive number")
    return number


def _non_negative_float(name: str, value) -> float:
    number = _number(name, value, "must be zero or a positive number")
    if number < 0:
        raise ConfigurationInvalid(name, value, "must be zero or a positive number")
    return number


def _field_default(name: str):
    """Declared default of a Config field (a fresh copy for list fields)."""
    config_field = Config.__dataclass_fields__[name]
    if config_field.default_factory is not MISSING:
        return config_field.default_factory()
    return config_field.default
