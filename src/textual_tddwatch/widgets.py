"""Status line widget: the colored run-state glyph."""

from datetime import datetime

from rich.text import Text
from textual.widgets import Static

from tddwatch.config import DisplayConfig
from tddwatch.models import RunState
from tddwatch.output import RunOutput

STATE_LABELS = {
    RunState.IDLE: "idle",
    RunState.RUNNING: "running",
    RunState.SUCCEEDED: "passed",
    RunState.FAILED: "failed",
}


def status_label(state: RunState, output: RunOutput | None = None, enabled: bool = True) -> str:
    """Short text shown next to the glyph.

    Args:
        state: Current RunState
        output: Output of the current or last run
        enabled: Whether save triggers are active

    Returns:
        e.g. "running #3", "failed (exit 2) 14:02:11", "idle (paused)"
    """
    label = STATE_LABELS[state]
    if output is not None:
        if state is RunState.RUNNING:
            label = f"{label} #{output.run_id}"
        elif output.outcome is not None and state is not RunState.IDLE:
            label = output.outcome.summary()
        if state in (RunState.SUCCEEDED, RunState.FAILED) and output.finished_at is not None:
            label = f"{label} {output.finished_at:%H:%M:%S}"
    if not enabled:
        label = f"{label} (paused)"
    return label


def render_status(
    state: RunState,
    display: DisplayConfig,
    output: RunOutput | None = None,
    enabled: bool = True,
    command: str = "",
) -> Text:
    """Build the status line: colored glyph, label and command."""
    text = Text.assemble(
        (display.glyph, f"bold {display.color_for(state)}"),
        " ",
        status_label(state, output, enabled),
    )
    if command:
        text.append(f"  {command}", style="dim")
    return text


class StatusLine(Static):
    """One-line status display, the terminal counterpart of an editor mode-line glyph."""

    DEFAULT_CSS = """
    StatusLine {
        height: 1;
        width: 100%;
        padding: 0 1;
        background: $panel;
    }
    """

    def __init__(self, display: DisplayConfig, command: str = "", **kwargs):
        """Initialize status line.

        Args:
            display: Glyph and colors per state
            command: Command line shown after the label
        """
        super().__init__(render_status(RunState.IDLE, display, command=command), **kwargs)
        self.display_config = display
        self.command_line = command
        self.run_state = RunState.IDLE
        self.updated_at: datetime | None = None

    def show_state(self, state: RunState, output: RunOutput | None = None, enabled: bool = True) -> None:
        """Render a new state."""
        self.run_state = state
        self.updated_at = datetime.now()
        self.update(render_status(state, self.display_config, output, enabled, self.command_line))
