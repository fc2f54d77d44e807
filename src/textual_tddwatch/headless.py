"""Headless host: runs the watcher without a UI and prints status lines."""

import asyncio
import contextlib
import logging
import signal
import sys
from datetime import datetime
from typing import TextIO

from tddwatch.config import DisplayConfig
from tddwatch.models import RunState
from tddwatch.output import RunOutput
from tddwatch.session import WatchSession
from textual_tddwatch.widgets import status_label

logger = logging.getLogger(__name__)


class StatusPrinter:
    """Subscriber writing one line per transition, plus the output tail on failure."""

    def __init__(self, display: DisplayConfig, stream: TextIO | None = None, tail_lines: int = 20):
        """Initialize printer.

        Args:
            display: Glyph configuration
            stream: Where to write (defaults to sys.stdout at call time)
            tail_lines: Output lines shown after a failed run
        """
        self.display = display
        self.stream = stream
        self.tail_lines = tail_lines

    def __call__(self, old_state: RunState, new_state: RunState, output: RunOutput | None) -> None:
        stream = self.stream or sys.stdout
        stamp = datetime.now().strftime("%H:%M:%S")
        stream.write(f"{stamp} {self.display.glyph} {status_label(new_state, output)}\n")
        if new_state is RunState.FAILED and output is not None:
            lines = output.tail(self.tail_lines)
            if output.truncated or len(output) > len(lines):
                stream.write("  | ...\n")
            for line in lines:
                stream.write(f"  | {line}\n")
        stream.flush()


async def run_headless(session: WatchSession, stop: asyncio.Event | None = None) -> int:
    """Watch until SIGINT/SIGTERM (or ``stop`` is set), then shut down cleanly.

    Args:
        session: Configured session, not yet attached
        stop: Optional event ending the loop (used by embedders and tests)

    Returns:
        Process exit code (0 on a clean stop)
    """
    loop = asyncio.get_running_loop()
    stop = stop or asyncio.Event()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)
            installed.append(sig)

    printer = StatusPrinter(session.config.display)
    session.bus.subscribe(printer)
    session.attach(loop)
    logger.info(f"Watching for saves, running: {session.config.runner.display_command()}")

    try:
        await stop.wait()
    finally:
        logger.info("Stopping")
        await session.shutdown()
        session.bus.unsubscribe(printer)
        for sig in installed:
            loop.remove_signal_handler(sig)

    return 0
