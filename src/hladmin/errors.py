"""Exception hierarchy for hladmin."""

from __future__ import annotations


class HladminError(Exception):
    """Base class for errors that abort a whole invocation."""


class ConfigError(HladminError):
    """The hosts file or settings file could not be loaded."""


class ResolutionError(HladminError):
    """Host arguments could not be resolved to a host list."""


class ExecutionError(HladminError):
    """A command failed on a single host.

    Never raised out of the transport; it is attached to that host's
    ``Result`` so sibling hosts are unaffected.
    """

    def __init__(self, hostname: str, cause: object):
        self.hostname = hostname
        self.cause = cause
        super().__init__(f"error executing on {hostname}: {cause}")


class LaunchError(ExecutionError):
    """The command could not be launched: host unreachable or interpreter missing."""


class CommandFailedError(ExecutionError):
    """The command ran and exited with a non-zero status."""

    def __init__(self, hostname: str, exit_status: int | None):
        self.exit_status = exit_status
        super().__init__(hostname, f"exit status {exit_status}")


class CommandTimeoutError(ExecutionError):
    """The command did not finish within the configured timeout."""

    def __init__(self, hostname: str, timeout: float):
        self.timeout = timeout
        super().__init__(hostname, f"timed out after {timeout:g}s")
