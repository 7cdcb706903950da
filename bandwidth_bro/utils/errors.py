"""Error types shared by probes, collaborators and reporting."""


class BandwidthBroError(Exception):
    """Base class for all bandwidth-bro errors."""


class ToolUnavailable(BandwidthBroError):
    """A required external tool or capability is missing."""

    def __init__(self, tool: str, detail: str = ""):
        self.tool = tool
        message = f"{tool} is not available"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ProbeTimeout(BandwidthBroError):
    """An external measurement call exceeded its time bound."""

    def __init__(self, operation: str, timeout: float):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")


class ProbeExecutionError(BandwidthBroError):
    """An external measurement call failed for a reason other than a timeout."""


class ConfigurationInvalid(BandwidthBroError):
    """A configuration value failed validation."""

    def __init__(self, field_name: str, value, reason: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name}={value!r}: {reason}")


class SinkWriteFailure(BandwidthBroError):
    """The report sink could not persist a message."""
