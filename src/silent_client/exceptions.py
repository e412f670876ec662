"""
Exceptions raised by silent-client.
"""


class SilentClientError(Exception):
    """Base class for silent-client errors."""


class LaunchFailure(SilentClientError):
    """The stand-in agent could not start or reach the service in time."""

    def __init__(self, message: str, url: str = ""):
        super().__init__(message)
        self.url = url


class TeardownFailure(SilentClientError):
    """Closing the stand-in agent raised or timed out."""


class ConfigError(SilentClientError):
    """A configuration value has the wrong type or range."""

    def __init__(self, key: str, value: object, reason: str = "must be a positive number"):
        self.key = key
        self.value = value
        super().__init__(f"Invalid config value for '{key}': {value!r} ({reason})")
