"""User-facing notices from the tddwatch core.

The controller and session report things a user should see (spawn failures,
watchers going up or down) through a notifier instead of a UI. The Textual
app turns them into toasts; the headless daemon sends them to the log.
"""

import logging
from typing import Protocol

NOTIFY_LOGGER = "tddwatch.notify"


class TddWatchNotifier(Protocol):
    """Anything with info/warning/error methods taking one message."""

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class NoOpNotifier:
    """Drops every notice. Used when the core is embedded without a view."""

    def info(self, msg: str) -> None:
        pass

    def warning(self, msg: str) -> None:
        pass

    def error(self, msg: str) -> None:
        pass


class LoggingNotifier:
    """Sends notices to the ``tddwatch.notify`` logger, tagged with their source.

    Notices go to their own logger so a host can route or silence them apart
    from the core's debug logging. Each line starts with ``[tag]``; the
    headless daemon tags with the watched command so several daemons can
    share one log file.
    """

    levels = {
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }

    def __init__(self, tag: str = "tddwatch", logger: logging.Logger | None = None):
        self.tag = tag
        self.logger = logger or logging.getLogger(NOTIFY_LOGGER)

    def info(self, msg: str) -> None:
        self._emit("info", msg)

    def warning(self, msg: str) -> None:
        self._emit("warning", msg)

    def error(self, msg: str) -> None:
        self._emit("error", msg)

    def _emit(self, severity: str, msg: str) -> None:
        self.logger.log(self.levels[severity], f"[{self.tag}] {msg}")
