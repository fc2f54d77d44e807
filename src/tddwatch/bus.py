"""Event bus / hook adapter: the boundary hosts integrate against.

Pure glue with no logic of its own. An editor plugin, the CLI daemon and the
Textual app all talk to the core through this object.
"""

from pathlib import Path

from tddwatch.models import RunRequest, RunState
from tddwatch.output import RunOutput
from tddwatch.publisher import StatusPublisher, Subscriber
from tddwatch.trigger import TriggerController


class EventBus:
    """Inbound save/cancel events and outbound status for one controller."""

    def __init__(self, controller: TriggerController, publisher: StatusPublisher | None = None):
        self.controller = controller
        self.publisher = publisher or controller.publisher

    def subscribe(self, callback: Subscriber) -> Subscriber:
        """Register ``callback(old_state, new_state, output_ref)``. Usable as a decorator."""
        return self.publisher.subscribe(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self.publisher.unsubscribe(callback)

    def feed_save_event(self, path: str | Path | None = None) -> None:
        """Report a file save. Safe from any thread; returns immediately."""
        self.controller.on_save_event(RunRequest(path=Path(path) if path is not None else None))

    def cancel_current_run(self) -> None:
        """Explicit user abort. Safe from any thread; returns immediately."""
        self.controller.cancel_current_run()

    def get_current_state(self) -> tuple[RunState, RunOutput | None]:
        return self.publisher.get_current()
