"""Exception types raised by tracekit.

The tracing engine itself never raises from its own operations; these
exceptions only surface while loading configuration.
"""


class TracekitError(Exception):
    """Base class for all tracekit errors."""


class ConfigError(TracekitError):
    """Raised when tracekit configuration cannot be loaded or validated."""
