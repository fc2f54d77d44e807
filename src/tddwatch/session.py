"""
Frontend-agnostic assembly of the tddwatch core.

WatchSession wires configuration, status publisher, process runner, trigger
controller, event bus and file watchers together. Any frontend (Textual app,
headless daemon, editor bridge) embeds one session:

    session = WatchSession("tddwatch.toml")
    session.attach(asyncio.get_running_loop())
    session.bus.subscribe(lambda old, new, output: ...)
    ...
    await session.shutdown()
"""

import asyncio
import logging
from pathlib import Path

from tddwatch.bus import EventBus
from tddwatch.config import TddWatchConfig, load_config
from tddwatch.errors import ConfigurationError
from tddwatch.file_watcher import FileWatcherManager
from tddwatch.models import ConfigValidationResult
from tddwatch.notifier import NoOpNotifier, TddWatchNotifier
from tddwatch.publisher import StatusPublisher
from tddwatch.runner import ProcessRunner
from tddwatch.trigger import TriggerController

logger = logging.getLogger(__name__)


class WatchSession:
    """One watched project: config, engine and save sources."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: TddWatchConfig | None = None,
        notifier: TddWatchNotifier | None = None,
        enable_watchers: bool = True,
    ):
        """Initialize session.

        Args:
            config_path: Path to TOML config (ignored when config is given)
            config: Already loaded configuration
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            enable_watchers: If True, file watchers start on attach(). If False, the host feeds save events.

        Raises:
            FileNotFoundError: If config_path does not exist
            ConfigurationError: If the configuration is invalid
        """
        if config is None:
            if config_path is None:
                raise ValueError("Either config_path or config is required")
            try:
                config = load_config(config_path)
            except Exception as e:
                logger.error(f"Failed to load config from {config_path}: {e}")
                raise

        self.config = config
        self.notifier = notifier or NoOpNotifier()
        self.enable_watchers = enable_watchers

        self.publisher = StatusPublisher()
        self.runner = ProcessRunner(cancel_grace_ms=config.runner.cancel_grace_ms)
        self.controller = TriggerController(config.runner, self.publisher, self.runner, self.notifier)
        self.bus = EventBus(self.controller, self.publisher)

        self._loop: asyncio.AbstractEventLoop | None = None
        self._watcher_manager: FileWatcherManager | None = None

    @property
    def is_attached(self) -> bool:
        return self._loop is not None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach to a running event loop and start file watchers if enabled. Idempotent."""
        if self._loop is not None:
            return

        self.controller.attach(loop)
        self._loop = loop

        if self.enable_watchers and self.config.watchers:
            try:
                self._watcher_manager = FileWatcherManager(self.bus.feed_save_event)
                for watcher_config in self.config.watchers:
                    self._watcher_manager.add_watch(watcher_config)
                self._watcher_manager.start()
                self.notifier.info(f"File watchers started ({len(self.config.watchers)} configured)")
            except Exception as e:
                logger.error(f"Failed to start file watchers: {e}")
                self.notifier.error(f"File watcher initialization failed: {e}")
                self._watcher_manager = None

        logger.debug("Session attached to event loop")

    def detach(self) -> None:
        """Stop watchers and detach from the loop."""
        self._stop_watchers()
        self.controller.detach()
        self._loop = None
        logger.debug("Session detached from event loop")

    async def shutdown(self) -> None:
        """Stop watchers, cancel any active run, wait for teardown, detach."""
        self._stop_watchers()
        await self.controller.shutdown()
        self.detach()

    def _stop_watchers(self) -> None:
        if self._watcher_manager:
            try:
                self._watcher_manager.stop()
            except Exception as e:
                logger.error(f"Error stopping file watcher: {e}")
            self._watcher_manager = None
            self.notifier.info("File watchers stopped")

    def validate_config(self) -> ConfigValidationResult:
        """Check the loaded configuration against the environment.

        Host displays results, does not re-derive them.
        """
        runner = self.config.runner
        result = ConfigValidationResult(
            command=runner.display_command(),
            watchers_configured=len(self.config.watchers),
        )

        if runner.resolve_executable() is None:
            result.errors.append(f"Command not found: {runner.command}")

        if not self.config.watchers:
            result.warnings.append("No [[file_watcher]] configured - runs only start on explicit save events")

        for watcher in self.config.watchers:
            if not watcher.dir.is_dir():
                result.warnings.append(f"Watched directory does not exist: {watcher.dir}")
            try:
                watcher.validate()
            except ConfigurationError as e:
                result.errors.append(f"{watcher.dir}: {e}")

        return result
