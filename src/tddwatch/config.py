"""Configuration parsing for tddwatch."""

import logging
import shlex
import shutil
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from tddwatch.errors import ConfigurationError
from tddwatch.models import RunState
from tddwatch.runner import shell_line
from tddwatch.watchers import DEFAULT_IGNORE_DIRS, WatcherConfig

logger = logging.getLogger(__name__)


@dataclass
class RunnerSettings:
    """What to run on every save. Static for the process lifetime."""

    command: str
    """Executable (or shell command line when shell is true)."""

    args: list[str] = field(default_factory=list)
    """Ordered arguments passed to the command."""

    working_dir: Path = field(default_factory=Path.cwd)
    """Directory the command runs in."""

    debounce_ms: int = 0
    """Suppress triggers closer together than this (0 disables)."""

    output_buffer_limit_bytes: int = 65536
    """Maximum retained output per run."""

    shell: bool = False
    """Treat command as a shell snippet; args are quoted and appended to it."""

    cancel_grace_ms: int = 2000
    """Time between SIGTERM and SIGKILL when cancelling."""

    def validate(self) -> None:
        """Raise ConfigurationError for values the runner cannot work with."""
        if not isinstance(self.command, str) or not self.command.strip():
            raise ConfigurationError("runner.command must be a non-empty string")
        if not isinstance(self.args, list) or not all(isinstance(a, str) for a in self.args):
            raise ConfigurationError("runner.args must be a list of strings")
        if isinstance(self.debounce_ms, bool) or not isinstance(self.debounce_ms, int) or self.debounce_ms < 0:
            raise ConfigurationError(f"runner.debounce_ms must be an integer >= 0, got {self.debounce_ms!r}")
        if (
            isinstance(self.output_buffer_limit_bytes, bool)
            or not isinstance(self.output_buffer_limit_bytes, int)
            or self.output_buffer_limit_bytes <= 0
        ):
            raise ConfigurationError(
                f"runner.output_buffer_limit_bytes must be a positive integer, got {self.output_buffer_limit_bytes!r}"
            )
        if isinstance(self.cancel_grace_ms, bool) or not isinstance(self.cancel_grace_ms, int) or self.cancel_grace_ms < 0:
            raise ConfigurationError(f"runner.cancel_grace_ms must be an integer >= 0, got {self.cancel_grace_ms!r}")
        if not self.working_dir.is_dir():
            raise ConfigurationError(f"runner.working_dir does not exist: {self.working_dir}")

    def display_command(self) -> str:
        """Command line as a user would type it."""
        if self.shell:
            return shell_line(self.command, self.args)
        return shlex.join([self.command, *self.args])

    def resolve_executable(self) -> str | None:
        """Locate the executable on PATH (or relative to working_dir).

        Returns None when it cannot be found. Shell commands are not checked;
        the shell itself reports missing commands as a non-zero exit.
        """
        if self.shell:
            return self.command
        candidate = Path(self.command)
        if candidate.parent != Path("."):
            if not candidate.is_absolute():
                candidate = self.working_dir / candidate
            return str(candidate) if candidate.exists() else None
        return shutil.which(self.command)


@dataclass
class DisplayConfig:
    """How the status glyph looks in a status line."""

    glyph: str = "●"
    idle: str = "grey50"
    running: str = "yellow"
    succeeded: str = "green"
    failed: str = "red"

    def color_for(self, state: RunState) -> str:
        return getattr(self, state.value)


@dataclass
class TddWatchConfig:
    """Complete tddwatch configuration."""

    runner: RunnerSettings
    watchers: list[WatcherConfig] = field(default_factory=list)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    path: Path | None = None
    """File the configuration was loaded from."""


def load_config(path: str | Path) -> TddWatchConfig:
    """Load and validate a tddwatch TOML configuration.

    Args:
        path: Path to TOML config file

    Returns:
        Validated TddWatchConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file cannot be parsed or holds invalid values
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(
            f"Config file not found: {path}\nRun 'tddwatch' without arguments to auto-create a default config."
        )

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

    base_dir = path.parent.resolve()

    runner_raw = raw.get("runner")
    if not isinstance(runner_raw, dict):
        raise ConfigurationError(f"{path}: missing [runner] section")

    known = {
        "command",
        "args",
        "working_dir",
        "debounce_ms",
        "output_buffer_limit_bytes",
        "shell",
        "cancel_grace_ms",
    }
    for key in runner_raw:
        if key not in known:
            logger.warning(f"Unknown key in [runner]: {key}")

    working_dir = runner_raw.get("working_dir", ".")
    if not isinstance(working_dir, str):
        raise ConfigurationError(f"runner.working_dir must be a string, got {working_dir!r}")
    shell = runner_raw.get("shell", False)
    if not isinstance(shell, bool):
        raise ConfigurationError(f"runner.shell must be true or false, got {shell!r}")

    runner = RunnerSettings(
        command=runner_raw.get("command", ""),
        args=runner_raw.get("args", []),
        working_dir=(base_dir / working_dir).resolve(),
        debounce_ms=runner_raw.get("debounce_ms", 0),
        output_buffer_limit_bytes=runner_raw.get("output_buffer_limit_bytes", 65536),
        shell=shell,
        cancel_grace_ms=runner_raw.get("cancel_grace_ms", 2000),
    )
    runner.validate()

    watchers_raw = raw.get("file_watcher", [])
    if not isinstance(watchers_raw, list):
        raise ConfigurationError(f"{path}: file_watcher must be an array of tables ([[file_watcher]])")

    watchers = []
    for w in watchers_raw:
        if not isinstance(w, dict):
            raise ConfigurationError(f"{path}: [[file_watcher]] entries must be tables")
        if "dir" not in w:
            raise ConfigurationError(f"{path}: [[file_watcher]] entry is missing 'dir'")
        if not isinstance(w["dir"], str):
            raise ConfigurationError(f"{path}: file_watcher.dir must be a string, got {w['dir']!r}")
        watcher = WatcherConfig(
            dir=(base_dir / w["dir"]).resolve(),
            patterns=w.get("patterns"),
            extensions=w.get("extensions"),
            ignore_dirs=w.get("ignore_dirs", list(DEFAULT_IGNORE_DIRS)),
            settle_ms=w.get("settle_ms", 100),
        )
        watcher.validate()
        watchers.append(watcher)

    display_raw = raw.get("display", {})
    if not isinstance(display_raw, dict):
        raise ConfigurationError(f"{path}: [display] must be a table")
    for key, value in display_raw.items():
        if key not in DisplayConfig.__dataclass_fields__:
            logger.warning(f"Unknown key in [display]: {key}")
        elif not isinstance(value, str):
            raise ConfigurationError(f"display.{key} must be a string, got {value!r}")
    display = DisplayConfig(**{k: v for k, v in display_raw.items() if k in DisplayConfig.__dataclass_fields__})

    return TddWatchConfig(runner=runner, watchers=watchers, display=display, path=path)
