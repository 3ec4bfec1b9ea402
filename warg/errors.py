"""
Shared exceptions for the Warg server.

Every error carries a ``code`` that is reported to clients next to the
human readable message.
"""


class WargError(Exception):
    """Base class for all recoverable Warg errors."""

    code = "INTERNAL_ERROR"


class NotReadyError(WargError):
    """Raised when a command is issued while the browser is not ready."""

    code = "NOT_READY"


class MalformedCommandError(WargError):
    """Raised when a command envelope has the wrong shape."""

    code = "MALFORMED_COMMAND"


class UnsupportedCommandError(WargError):
    """Raised when a command envelope names an unknown command type."""

    code = "UNSUPPORTED_COMMAND"


class CommandFailedError(WargError):
    """Raised when the browser fails to carry out a command."""

    code = "COMMAND_FAILED"


class LifecycleError(WargError):
    """Raised when the browser fails to launch or to shut down cleanly."""

    code = "LIFECYCLE_FAILED"


class ConfigError(WargError):
    """Raised when process configuration cannot be parsed."""

    code = "CONFIG_ERROR"


__all__ = [
    "WargError",
    "NotReadyError",
    "MalformedCommandError",
    "UnsupportedCommandError",
    "CommandFailedError",
    "LifecycleError",
    "ConfigError",
]
