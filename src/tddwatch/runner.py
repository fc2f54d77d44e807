"""Process runner: spawns the build/test command and reports how it ended.

Each child is started in its own session so that it leads a fresh process
group. Cancelling or tearing down a run signals the whole group, which takes
care of test runners that fork workers or shells that spawn pipelines.
"""

import asyncio
import contextlib
import logging
import os
import shlex
import signal
from datetime import datetime
from pathlib import Path

from tddwatch.errors import ProcessError, SignalError, SpawnError
from tddwatch.models import ProcessHandle, RunOutcome
from tddwatch.output import RunOutput

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

# How long to keep reading the pipe after the child has exited
OUTPUT_DRAIN_SECONDS = 0.5

_SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)


def shell_line(command: str, args: list[str]) -> str:
    """Command line for shell mode: command is a raw shell snippet, args are quoted."""
    if not args:
        return command
    return f"{command} {shlex.join(args)}"


def describe_signal(signum: int) -> str:
    """Return the symbolic name of a signal number, e.g. "SIGTERM"."""
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


class ProcessRunner:
    """Runs one command at a time and owns the resulting child process.

    The runner does not enforce single-flight by itself; TriggerController
    guarantees that run() is never entered while a previous run is active.
    """

    def __init__(self, cancel_grace_ms: int = 2000):
        """Initialize runner.

        Args:
            cancel_grace_ms: Delay between SIGTERM and SIGKILL when cancelling
        """
        self.cancel_grace = cancel_grace_ms / 1000.0
        self._process: asyncio.subprocess.Process | None = None
        self._handle: ProcessHandle | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cancel_requested = False
        self._kill_timer: asyncio.TimerHandle | None = None

    @property
    def handle(self) -> ProcessHandle | None:
        """Identity of the running child, or None when nothing runs."""
        return self._handle

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def run(
        self,
        command: str,
        args: list[str],
        working_dir: Path,
        output: RunOutput,
        shell: bool = False,
    ) -> RunOutcome:
        """Run the command to completion and return its outcome.

        Never raises for problems with the command itself; those come back as
        an aborted or failed RunOutcome. Task cancellation propagates after the
        process group has been torn down.

        Args:
            command: Executable, or shell command line when shell is True
            args: Arguments appended to the command
            working_dir: Directory to run in
            output: Buffer receiving combined stdout/stderr
            shell: Run through the system shell

        Returns:
            RunOutcome for this run
        """
        self._loop = asyncio.get_running_loop()
        self._cancel_requested = False

        try:
            process = await self._spawn(command, args, working_dir, shell)
        except OSError as e:
            error = SpawnError(f"spawn failed: {e}")
            logger.warning(f"Could not launch {command!r}: {e}")
            output.close()
            return RunOutcome.aborted(str(error), error=error)

        self._process = process
        self._handle = ProcessHandle(pid=process.pid, start_time=datetime.now())
        logger.debug(f"Started pid {process.pid} in {working_dir}")

        # cancel() may have arrived while the spawn was in flight
        if self._cancel_requested:
            self._signal_group(process, signal.SIGTERM)
            self._schedule_kill(process)

        # The run ends when the child exits, not when the pipe closes: background
        # jobs it leaves behind may hold stdout open indefinitely
        pump = asyncio.create_task(self._pump(process.stdout, output))
        try:
            returncode = await process.wait()
            await self._drain(pump)
        finally:
            await self._teardown(process)
            if not pump.done():
                pump.cancel()
            await asyncio.gather(pump, return_exceptions=True)
            output.close()

        return self._outcome_for(returncode)

    def cancel(self) -> bool:
        """Terminate the running process group.

        Sends SIGTERM now and SIGKILL after the grace period. Must be called on
        the loop that is running run().

        Returns:
            True if a live process was signalled
        """
        self._cancel_requested = True
        process = self._process
        if process is None or process.returncode is not None:
            return False

        logger.info(f"Cancelling pid {process.pid}")
        self._signal_group(process, signal.SIGTERM)
        self._schedule_kill(process)
        return True

    async def _spawn(
        self, command: str, args: list[str], working_dir: Path, shell: bool
    ) -> asyncio.subprocess.Process:
        kwargs = dict(
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(working_dir),
            start_new_session=True,
        )
        if shell:
            return await asyncio.create_subprocess_shell(shell_line(command, args), **kwargs)
        return await asyncio.create_subprocess_exec(command, *args, **kwargs)

    async def _pump(self, stream: asyncio.StreamReader | None, output: RunOutput) -> None:
        """Copy the child's output into the run buffer until EOF."""
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            output.feed(chunk)

    async def _drain(self, pump: asyncio.Task) -> None:
        """Give the pump a bounded time to read what the exited child left in the pipe."""
        try:
            await asyncio.wait_for(asyncio.shield(pump), timeout=OUTPUT_DRAIN_SECONDS)
        except asyncio.TimeoutError:
            logger.debug("Output pipe still open after exit, sweeping leftover processes")

    def _schedule_kill(self, process: asyncio.subprocess.Process) -> None:
        if self._kill_timer is None and self._loop is not None:
            self._kill_timer = self._loop.call_later(self.cancel_grace, self._signal_group, process, _SIGKILL)

    def _signal_group(self, process: asyncio.subprocess.Process, sig: int) -> None:
        """Signal the child's process group; a group that is already gone is fine."""
        with contextlib.suppress(ProcessLookupError, PermissionError):
            if hasattr(os, "killpg"):
                os.killpg(process.pid, sig)
            elif process.returncode is None:
                process.send_signal(sig)

    async def _teardown(self, process: asyncio.subprocess.Process) -> None:
        """Make sure neither the child nor anything in its group outlives the run."""
        if self._kill_timer is not None:
            self._kill_timer.cancel()
            self._kill_timer = None

        if process.returncode is None:
            self._signal_group(process, _SIGKILL)
            await process.wait()

        # Sweep stragglers (background jobs, orphaned workers) left in the group
        self._signal_group(process, _SIGKILL)

        self._process = None
        self._handle = None

    def _outcome_for(self, returncode: int) -> RunOutcome:
        if self._cancel_requested:
            error = SignalError("cancelled")
            return RunOutcome.aborted("cancelled", error=error, exit_code=returncode)

        if returncode == 0:
            return RunOutcome.success()

        if returncode < 0:
            error = SignalError(f"terminated by signal {describe_signal(-returncode)}")
            return RunOutcome.aborted(str(error), error=error, exit_code=returncode)

        return RunOutcome.failure(returncode, error=ProcessError(returncode))
