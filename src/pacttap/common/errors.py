"""
PactTap error types.

Every failure the proxy command can report to the user derives from
PactTapError, so the CLI can render it as a single line.
"""


class PactTapError(Exception):
    """Base class for all user-facing PactTap failures."""


class ConfigError(PactTapError):
    """Invalid settings or engine configuration (raised before any process starts)."""


class StartupError(PactTapError):
    """The recording engine could not be launched."""


class ChildCrash(PactTapError):
    """The recording engine exited unexpectedly."""

    def __init__(self, message: str, returncode: int = 1):
        super().__init__(message)
        self.returncode = returncode


class ReadError(PactTapError):
    """The capture directory exists but cannot be read."""


class MalformedRecord(PactTapError):
    """A single capture record could not be parsed. Recovered locally."""


class WriteError(PactTapError):
    """The contract could not be written to its destination."""
