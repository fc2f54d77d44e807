"""File watcher implementation using watchdog.

Feeds save events into the core. Handlers run on watchdog's observer thread
and on timer threads; the controller marshals events onto its own loop, so
nothing here touches run state directly.
"""

import fnmatch
import logging
import os
from collections.abc import Callable
from pathlib import Path, PurePath
from threading import Lock, Timer

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tddwatch.watchers import WatcherConfig

logger = logging.getLogger(__name__)

SaveCallback = Callable[[Path], None]


def glob_match(relative: PurePath, pattern: str) -> bool:
    """Match a path relative to the watched directory against a glob.

    ``**/`` also matches zero directories, so "**/*.py" matches "setup.py".
    """
    posix = relative.as_posix()
    if fnmatch.fnmatch(posix, pattern):
        return True
    return "**/" in pattern and fnmatch.fnmatch(posix, pattern.replace("**/", ""))


class _SaveEventHandler(FileSystemEventHandler):
    """Settled file system event handler for one watched directory."""

    def __init__(self, config: WatcherConfig, on_save: SaveCallback):
        """Initialize handler.

        Args:
            config: Watcher configuration
            on_save: Called with the saved path once events have settled
        """
        self.config = config
        self.on_save = on_save
        self._timer: Timer | None = None
        self._last_path: Path | None = None
        self._lock = Lock()

    def matches(self, path: Path) -> bool:
        """Check if path passes the configured ignore list and filters.

        Args:
            path: Path to check

        Returns:
            True if a change to path should trigger a run
        """
        try:
            relative = path.relative_to(self.config.dir)
        except ValueError:
            return False

        ignore = set(self.config.ignore_dirs or [])
        if any(part in ignore for part in relative.parts[:-1]):
            return False

        if self.config.patterns:
            return any(glob_match(relative, pattern) for pattern in self.config.patterns)

        if self.config.extensions:
            return path.suffix in self.config.extensions

        return True

    def _schedule(self, path: Path) -> None:
        """Report the save after the settle delay, restarting it on every event."""
        if self.config.settle_ms <= 0:
            self._fire(path)
            return

        with self._lock:
            if self._timer:
                self._timer.cancel()
            self._last_path = path
            self._timer = Timer(self.config.settle_ms / 1000.0, self._fire_pending)
            self._timer.daemon = True
            self._timer.start()

    def _fire_pending(self) -> None:
        with self._lock:
            path, self._last_path = self._last_path, None
            self._timer = None
        if path is not None:
            self._fire(path)

    def _fire(self, path: Path) -> None:
        logger.debug(f"Save detected: {path}")
        try:
            self.on_save(path)
        except Exception as e:
            logger.error(f"Failed to report save of {path}: {e}")

    def cancel(self) -> None:
        with self._lock:
            if self._timer:
                self._timer.cancel()
                self._timer = None
            self._last_path = None

    def _consider(self, raw_path: str | bytes) -> None:
        path = Path(os.fsdecode(raw_path))
        if self.matches(path):
            self._schedule(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._consider(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._consider(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        # Editors that save atomically write a temp file and rename it over the target
        if not event.is_directory:
            self._consider(event.dest_path)


class FileWatcherManager:
    """Manages watchdog observers that turn file saves into save events."""

    def __init__(self, on_save: SaveCallback):
        """Initialize file watcher manager.

        Args:
            on_save: Receives each settled save (typically EventBus.feed_save_event)
        """
        self.on_save = on_save
        self.observer = Observer()
        self.handlers: list[_SaveEventHandler] = []

    def add_watch(self, config: WatcherConfig) -> None:
        """Add a file watcher.

        Args:
            config: Watcher configuration
        """
        if not config.dir.exists():
            logger.warning(f"Watcher directory does not exist: {config.dir}")
            return

        handler = _SaveEventHandler(config, self.on_save)
        self.observer.schedule(handler, str(config.dir), recursive=True)
        self.handlers.append(handler)

        logger.info(f"Watching {config.dir} (settle: {config.settle_ms}ms)")

    def start(self) -> None:
        """Start all file watchers."""
        if not self.handlers:
            logger.debug("No file watchers configured")
            return

        self.observer.start()
        logger.info(f"Started {len(self.handlers)} file watcher(s)")

    def stop(self) -> None:
        """Stop all file watchers."""
        if self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped file watchers")

        for handler in self.handlers:
            handler.cancel()
