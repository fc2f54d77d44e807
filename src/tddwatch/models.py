"""Shared data models for tddwatch."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from tddwatch.errors import TddWatchError


class RunState(Enum):
    """State of the current or most recent build/test run."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RunRequest:
    """A "file was saved" event that asks for a run."""

    timestamp: datetime = field(default_factory=datetime.now)
    """When the save was observed."""

    path: Path | None = None
    """Saved file, if the source knows it."""

    def describe(self) -> str:
        """Short human-readable description for logs and tooltips."""
        if self.path is None:
            return "manual trigger"
        return f"save of {self.path.name}"


@dataclass
class ProcessHandle:
    """Identity of the running child process. Owned by ProcessRunner."""

    pid: int
    start_time: datetime


@dataclass(frozen=True)
class RunOutcome:
    """Result of one run, reported exactly once per run."""

    kind: Literal["success", "failure", "aborted"]
    """success (exit 0), failure (exit != 0) or aborted (never finished normally)."""

    exit_code: int | None = None
    """Process exit code, None when the process never produced one."""

    reason: str = ""
    """Human-readable explanation for aborted runs."""

    error: TddWatchError | None = None
    """Per-run error from the taxonomy (SpawnError, ProcessError, SignalError)."""

    @classmethod
    def success(cls) -> "RunOutcome":
        return cls(kind="success", exit_code=0)

    @classmethod
    def failure(cls, exit_code: int, error: TddWatchError | None = None) -> "RunOutcome":
        return cls(kind="failure", exit_code=exit_code, error=error)

    @classmethod
    def aborted(
        cls, reason: str, error: TddWatchError | None = None, exit_code: int | None = None
    ) -> "RunOutcome":
        return cls(kind="aborted", exit_code=exit_code, reason=reason, error=error)

    @property
    def succeeded(self) -> bool:
        return self.kind == "success"

    def summary(self) -> str:
        """One-line description, e.g. "passed", "failed (exit 1)"."""
        if self.kind == "success":
            return "passed"
        if self.kind == "failure":
            return f"failed (exit {self.exit_code})"
        return f"aborted: {self.reason}"


@dataclass
class ConfigValidationResult:
    """Results from startup configuration validation.

    Built by WatchSession.validate_config(), consumed by hosts for display only.
    """

    command: str = ""
    """Command line that will run on every save."""

    watchers_configured: int = 0
    """Number of [[file_watcher]] blocks."""

    warnings: list[str] = field(default_factory=list)
    """Config issues found (non-fatal)."""

    errors: list[str] = field(default_factory=list)
    """Config errors (fatal)."""

    @property
    def ok(self) -> bool:
        return not self.errors


STATE_ICONS = {
    RunState.IDLE: "◯",
    RunState.RUNNING: "⏳",
    RunState.SUCCEEDED: "✅",
    RunState.FAILED: "❌",
}


def map_run_state_to_icon(state: RunState) -> str:
    """Map RunState to an emoji status icon.

    Args:
        state: Current RunState.

    Returns:
        Unicode icon string representing the state.
    """
    return STATE_ICONS.get(state, "❓")
