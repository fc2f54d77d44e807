"""Watch/trigger controller: debounce, single-flight execution and reruns."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from tddwatch.config import RunnerSettings
from tddwatch.errors import SignalError, TddWatchError
from tddwatch.models import RunOutcome, RunRequest, RunState
from tddwatch.notifier import NoOpNotifier, TddWatchNotifier
from tddwatch.output import RunOutput
from tddwatch.publisher import StatusPublisher
from tddwatch.runner import ProcessRunner

logger = logging.getLogger(__name__)


@dataclass
class _ActiveRun:
    """Bookkeeping for the run that currently occupies the child process slot."""

    run_id: int
    request: RunRequest
    output: RunOutput
    task: asyncio.Task | None = None
    cancelled: bool = False


class TriggerController:
    """Turns save events into runs of the configured command.

    All state lives on the event loop passed to attach(). on_save_event() and
    cancel_current_run() may be called from any thread; they hop onto that
    loop and return immediately.

    Guarantees:
    - at most one child process at a time;
    - saves during a run coalesce into a single pending rerun, started as
      soon as the current run completes;
    - with debounce_ms > 0, triggers closer than that to the previously
      accepted trigger are dropped.
    """

    def __init__(
        self,
        settings: RunnerSettings,
        publisher: StatusPublisher,
        runner: ProcessRunner | None = None,
        notifier: TddWatchNotifier | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize controller.

        Args:
            settings: Command and timing settings
            publisher: Status publisher this controller drives
            runner: Process runner (defaults to one honouring settings.cancel_grace_ms)
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            clock: Monotonic clock in seconds, used for debouncing
        """
        self.settings = settings
        self.publisher = publisher
        self.runner = runner or ProcessRunner(cancel_grace_ms=settings.cancel_grace_ms)
        self.notifier = notifier or NoOpNotifier()
        self._clock = clock

        self._loop: asyncio.AbstractEventLoop | None = None
        self._enabled = True
        self._current: _ActiveRun | None = None
        self._pending: RunRequest | None = None
        self._last_trigger: float | None = None
        self._runs_started = 0
        self._settle_waiters: list[asyncio.Future] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind the controller to its owner event loop. Idempotent."""
        if self._loop is not None:
            return
        if not loop.is_running():
            raise RuntimeError(
                "Event loop must be running before attach(). "
                "Call attach() from within a coroutine or on_mount()."
            )
        self._loop = loop

    def detach(self) -> None:
        """Forget the owner loop. Save events are ignored until attached again."""
        self._loop = None

    async def shutdown(self) -> None:
        """Cancel any active run and wait until its process is gone."""
        self._pending = None
        run = self._current
        if run is None:
            return
        if not run.cancelled:
            self._handle_cancel()
        if run.task is not None:
            await asyncio.gather(run.task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> RunState:
        return self.publisher.state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def rerun_pending(self) -> bool:
        return self._pending is not None

    @property
    def current_output(self) -> RunOutput | None:
        """Output of the run occupying the process slot, if any."""
        return self._current.output if self._current else None

    @property
    def runs_started(self) -> int:
        """Number of runs started since creation."""
        return self._runs_started

    def set_enabled(self, enabled: bool) -> None:
        """Switch reacting to save events on or off. An active run is not affected."""
        self._enabled = enabled
        logger.info(f"Save triggers {'enabled' if enabled else 'paused'}")

    async def wait_until_settled(self) -> None:
        """Wait until no process runs and no rerun is pending."""
        if self._is_settled():
            return
        waiter = asyncio.get_running_loop().create_future()
        self._settle_waiters.append(waiter)
        await waiter

    # ------------------------------------------------------------------
    # Inbound events (thread-safe)
    # ------------------------------------------------------------------

    def on_save_event(self, request: RunRequest | None = None) -> None:
        """A relevant file was saved. Never blocks, never raises."""
        self._dispatch(self._handle_save, request or RunRequest())

    def cancel_current_run(self) -> None:
        """Abort the active run, going straight to Idle. Never blocks, never raises."""
        self._dispatch(self._handle_cancel)

    def _dispatch(self, handler: Callable, *args) -> None:
        loop = self._loop
        if loop is None:
            logger.warning(f"{handler.__name__.lstrip('_')} ignored - controller not attached")
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            handler(*args)
            return

        try:
            loop.call_soon_threadsafe(handler, *args)
        except RuntimeError as e:
            logger.warning(f"{handler.__name__.lstrip('_')} dropped: {e}")

    # ------------------------------------------------------------------
    # Owner-loop handlers
    # ------------------------------------------------------------------

    def _handle_save(self, request: RunRequest) -> None:
        if not self._enabled:
            logger.debug(f"Ignoring {request.describe()} - triggers paused")
            return

        now = self._clock()
        debounce = self.settings.debounce_ms / 1000.0
        if debounce and self._last_trigger is not None and now - self._last_trigger < debounce:
            logger.debug(f"Debounced {request.describe()}")
            return
        self._last_trigger = now

        if self._current is not None:
            if self._pending is None:
                logger.info(f"Run #{self._current.run_id} in progress, queued rerun for {request.describe()}")
            self._pending = request
            return

        self._start_run(request)

    def _handle_cancel(self) -> None:
        run = self._current
        if run is None or run.cancelled or self.publisher.state is not RunState.RUNNING:
            logger.debug("Cancel requested but nothing is running")
            return

        run.cancelled = True
        self._pending = None
        self.runner.cancel()
        logger.info(f"Run #{run.run_id} cancelled")
        self.publisher.transition(RunState.IDLE, run.output)

    def _start_run(self, request: RunRequest) -> None:
        self._runs_started += 1
        run = _ActiveRun(
            run_id=self._runs_started,
            request=request,
            output=RunOutput(self.settings.output_buffer_limit_bytes, run_id=self._runs_started),
        )
        self._current = run
        run.task = self._loop.create_task(self._execute(run))
        logger.info(f"Run #{run.run_id} started ({request.describe()}): {self.settings.display_command()}")
        self.publisher.transition(RunState.RUNNING, run.output)

    async def _execute(self, run: _ActiveRun) -> None:
        try:
            outcome = await self._run_process(run)
        except asyncio.CancelledError:
            run.output.finish(RunOutcome.aborted("shutdown", error=SignalError("shutdown")))
            self._pending = None
            if self._current is run:
                self._current = None
                # Not cancelled through the controller, so nobody has left RUNNING yet
                if self.publisher.state is RunState.RUNNING:
                    self.publisher.transition(RunState.IDLE, run.output)
            self._wake_settle_waiters()
            raise
        self._complete(run, outcome)

    async def _run_process(self, run: _ActiveRun) -> RunOutcome:
        if run.cancelled:
            return RunOutcome.aborted("cancelled", error=SignalError("cancelled before start"))
        try:
            return await self.runner.run(
                self.settings.command,
                self.settings.args,
                self.settings.working_dir,
                run.output,
                shell=self.settings.shell,
            )
        except Exception as e:
            logger.exception(f"Run #{run.run_id} crashed")
            return RunOutcome.aborted(f"internal error: {e}", error=TddWatchError(str(e)))

    def _complete(self, run: _ActiveRun, outcome: RunOutcome) -> None:
        run.output.finish(outcome)
        self._current = None
        self._report(run, outcome)

        if self._pending is not None:
            request, self._pending = self._pending, None
            logger.info(f"Starting queued rerun for {request.describe()}")
            # Running -> Running when the finished run was not cancelled
            self._start_run(request)
            return

        if not run.cancelled:
            new_state = RunState.SUCCEEDED if outcome.succeeded else RunState.FAILED
            self.publisher.transition(new_state, run.output)
        self._wake_settle_waiters()

    def _report(self, run: _ActiveRun, outcome: RunOutcome) -> None:
        if run.cancelled:
            logger.info(f"Run #{run.run_id} torn down after cancellation")
        elif outcome.kind == "aborted":
            logger.warning(f"Run #{run.run_id} {outcome.summary()}")
            self.notifier.error(f"{self.settings.command}: {outcome.reason}")
        else:
            logger.info(f"Run #{run.run_id} {outcome.summary()}")

    def _is_settled(self) -> bool:
        return self._current is None and self._pending is None

    def _wake_settle_waiters(self) -> None:
        if not self._is_settled():
            return
        waiters, self._settle_waiters = self._settle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
