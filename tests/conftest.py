"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from tddwatch.config import RunnerSettings  # noqa: E402
from tddwatch.models import RunOutcome, RunState  # noqa: E402


class TransitionRecorder:
    """Subscriber that records every transition it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, old_state, new_state, output):
        self.events.append((old_state, new_state, output))

    @property
    def pairs(self):
        return [(old, new) for old, new, _ in self.events]

    @property
    def running_phases(self):
        return [output for _, new, output in self.events if new is RunState.RUNNING]


class FakeRunner:
    """In-process stand-in for ProcessRunner that tracks concurrency.

    Each run blocks until release() is called (or returns immediately when
    auto_release is set) and reports ``outcome``.
    """

    def __init__(self, outcome=None, auto_release=False):
        self.outcome = outcome or RunOutcome.success()
        self.auto_release = auto_release
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self.cancelled = 0
        self._gate = None
        self._cancel_requested = False

    async def run(self, command, args, working_dir, output, shell=False):
        self.calls += 1
        self._cancel_requested = False
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self._gate = asyncio.Event()
        try:
            if not self.auto_release:
                await self._gate.wait()
            output.feed(f"run {self.calls}\n".encode())
        finally:
            self.active -= 1
            output.close()
        if self._cancel_requested:
            return RunOutcome.aborted("cancelled")
        return self.outcome

    def release(self):
        if self._gate is not None:
            self._gate.set()

    def cancel(self):
        self.cancelled += 1
        self._cancel_requested = True
        self.release()
        return True


async def wait_for(predicate, timeout=5.0, interval=0.01):
    """Poll ``predicate`` until it is true or ``timeout`` seconds pass."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def recorder():
    return TransitionRecorder()


@pytest.fixture
def sh_settings(tmp_path):
    """Factory for RunnerSettings running a /bin/sh script in tmp_path."""

    def make(script: str, **overrides) -> RunnerSettings:
        return RunnerSettings(command="sh", args=["-c", script], working_dir=tmp_path, **overrides)

    return make


@pytest.fixture
def tmp_config(tmp_path):
    """Create a temporary config file."""
    config = tmp_path / "tddwatch.toml"
    config.write_text(
        """
[runner]
command = "sh"
args = ["-c", "exit 0"]
working_dir = "."
debounce_ms = 0

[[file_watcher]]
dir = "."
patterns = ["**/*.py"]
settle_ms = 50
"""
    )
    return config
