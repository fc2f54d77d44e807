"""Abstract save-source protocol for file watching implementations."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from tddwatch.errors import ConfigurationError

DEFAULT_IGNORE_DIRS = ["__pycache__", ".git", ".venv", "venv", ".pytest_cache", ".mypy_cache"]


@dataclass
class WatcherConfig:
    """Configuration for a file watcher."""

    dir: Path
    """Directory to watch (recursively)."""

    patterns: list[str] | None = None
    """Include patterns (glob style, matched against the path relative to dir)."""

    extensions: list[str] | None = None
    """Include extensions such as ".py" (used when patterns are not specified)."""

    ignore_dirs: list[str] | None = None
    """Directory names to ignore anywhere below dir."""

    settle_ms: int = 100
    """Quiet period collapsing one save's burst of filesystem events."""

    def validate(self) -> None:
        """Raise ConfigurationError for values the watcher cannot work with."""
        if isinstance(self.settle_ms, bool) or not isinstance(self.settle_ms, int) or self.settle_ms < 0:
            raise ConfigurationError(f"file_watcher.settle_ms must be an integer >= 0, got {self.settle_ms!r}")
        for name in ("patterns", "extensions", "ignore_dirs"):
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
                raise ConfigurationError(f"file_watcher.{name} must be a list of strings, got {value!r}")


class SaveSource(Protocol):
    """Protocol for anything that produces save events (file watchers, editor bridges)."""

    def add_watch(self, config: WatcherConfig) -> None:
        """Add a watch configuration."""
        ...

    def start(self) -> None:
        """Start producing save events."""
        ...

    def stop(self) -> None:
        """Stop producing save events."""
        ...
