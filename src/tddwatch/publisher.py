"""Status publisher - the single source of truth for RunState."""

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime

from tddwatch.models import RunOutcome, RunState
from tddwatch.output import RunOutput

logger = logging.getLogger(__name__)

Subscriber = Callable[[RunState, RunState, RunOutput | None], None]


class StatusPublisher:
    """Holds the current RunState and fans transitions out to subscribers.

    Subscribers are called synchronously, in registration order, with
    ``(old_state, new_state, output_ref)``. A transition requested from inside
    a subscriber is applied at once but delivered only after the current one
    has reached every subscriber, so all subscribers observe transitions in
    the order they happened.
    """

    def __init__(self):
        self._state = RunState.IDLE
        self._output: RunOutput | None = None
        self._subscribers: list[Subscriber] = []
        self._last_finished: datetime | None = None
        self._last_outcome: RunOutcome | None = None
        self._pending: deque[tuple[RunState, RunState, RunOutput | None]] = deque()
        self._delivering = False

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def output(self) -> RunOutput | None:
        """Output of the current or most recent run."""
        return self._output

    @property
    def last_finished(self) -> datetime | None:
        """When the last run reached Succeeded or Failed."""
        return self._last_finished

    @property
    def last_outcome(self) -> RunOutcome | None:
        return self._last_outcome

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """Register a transition callback. Registering twice has no effect."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Subscriber) -> None:
        """Remove a transition callback. Unknown callbacks are ignored."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def get_current(self) -> tuple[RunState, RunOutput | None]:
        """Non-blocking read for subscribers that poll instead of subscribing."""
        return self._state, self._output

    def transition(self, new_state: RunState, output: RunOutput | None = None) -> None:
        """Move to ``new_state`` and notify subscribers.

        Only TriggerController calls this.
        """
        old_state = self._state
        self._state = new_state
        self._output = output
        if new_state in (RunState.SUCCEEDED, RunState.FAILED):
            self._last_finished = datetime.now()
            self._last_outcome = output.outcome if output is not None else None

        logger.debug(f"State {old_state.value} -> {new_state.value}")
        self._pending.append((old_state, new_state, output))
        if self._delivering:
            return

        self._delivering = True
        try:
            while self._pending:
                self._deliver(*self._pending.popleft())
        finally:
            self._delivering = False

    def _deliver(self, old_state: RunState, new_state: RunState, output: RunOutput | None) -> None:
        for callback in list(self._subscribers):
            try:
                callback(old_state, new_state, output)
            except Exception:
                logger.exception(f"Status subscriber {callback!r} failed on {old_state.value} -> {new_state.value}")
