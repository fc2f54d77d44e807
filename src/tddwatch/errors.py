"""Error taxonomy for tddwatch.

Only ConfigurationError is ever raised to callers. The per-run errors are
built by the runner and travel inside RunOutcome.error so that a failed or
killed run is reported through the status channel instead of the caller
of on_save_event().
"""


class TddWatchError(Exception):
    """Base class for all tddwatch errors."""


class ConfigurationError(TddWatchError, ValueError):
    """Invalid startup configuration. Fatal: the tool refuses to start."""


class SpawnError(TddWatchError):
    """The configured command could not be launched."""


class ProcessError(TddWatchError):
    """The command ran and exited non-zero."""

    def __init__(self, exit_code: int):
        super().__init__(f"exited with code {exit_code}")
        self.exit_code = exit_code


class SignalError(TddWatchError):
    """The process was killed by a signal (externally or by cancellation)."""
