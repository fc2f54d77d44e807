"""Textual TUI for tddwatch.

Thin shell around a WatchSession: a status line with the run-state glyph,
a CommandLink with play/stop buttons for the configured command, and a log
pane streaming the current run's output.
"""

import asyncio
import logging
from pathlib import Path

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header, Log, Static
from textual_filelink import CommandLink, FileLinkList

from tddwatch.errors import ConfigurationError
from tddwatch.models import RunState, map_run_state_to_icon
from tddwatch.output import RunOutput
from tddwatch.session import WatchSession
from textual_tddwatch.widgets import StatusLine, status_label

logger = logging.getLogger(__name__)

OUTPUT_POLL_SECONDS = 0.25


class AppNotifier:
    """Routes core notifications to Textual toasts."""

    def __init__(self, app: App):
        self.app = app

    def info(self, msg: str) -> None:
        self.app.notify(msg)

    def warning(self, msg: str) -> None:
        self.app.notify(msg, severity="warning")

    def error(self, msg: str) -> None:
        self.app.notify(msg, severity="error")


class TddWatchApp(App):
    """Status-line TUI: runs the configured command on every save.

    Key features:
    - Colored glyph reflecting idle / running / passed / failed
    - Play/Stop on the command link trigger a run or cancel it
    - Output of the current run streamed into a log pane
    - Pause switch for the save triggers
    """

    TITLE = "tddwatch"
    BINDINGS = [
        Binding("s", "run_now", "Run"),
        Binding("c", "cancel_run", "Cancel"),
        Binding("p", "toggle_triggers", "Pause/Resume"),
        Binding("q", "quit", "Quit"),
    ]

    CSS = """
    Screen {
        layout: vertical;
    }

    FileLinkList {
        height: auto;
        max-height: 5;
        border: solid $accent;
    }

    #output {
        height: 1fr;
        border: solid $accent;
    }
    """

    def __init__(self, config_path: str = "tddwatch.toml", session: WatchSession | None = None, **kwargs):
        """Initialize app.

        Args:
            config_path: Path to TOML config file
            session: Pre-built session (config_path is ignored when given)
        """
        super().__init__(**kwargs)
        self.config_path = Path(config_path)
        self.session = session
        self.status_line: StatusLine | None = None
        self.file_list: FileLinkList | None = None
        self.command_link: CommandLink | None = None
        self.output_log: Log | None = None

        self._shown_output: RunOutput | None = None
        self._next_line = 0

    def compose(self) -> ComposeResult:
        """Compose app layout."""
        yield Header()

        try:
            if self.session is None:
                self.session = WatchSession(self.config_path, notifier=AppNotifier(self))
            runner = self.session.config.runner

            self.status_line = StatusLine(self.session.config.display, runner.display_command(), id="status")
            yield self.status_line

            # Items are added in on_mount(), once the list is mounted
            self.file_list = FileLinkList(show_toggles=False, show_remove=False, id="command-list")
            yield self.file_list

            self.output_log = Log(id="output")
            yield self.output_log

        except (FileNotFoundError, ConfigurationError) as e:
            logger.error(f"Failed to initialize app: {e}")
            yield Static(f"❌ Configuration Error: {e}")

        yield Footer()

    async def on_mount(self) -> None:
        """Attach session to the event loop and wire the status subscriber."""
        if not self.session or self.status_line is None:
            logger.error("Session not initialized")
            return

        try:
            self.session.attach(asyncio.get_running_loop())

            if self.file_list is not None:
                self.command_link = CommandLink(
                    command_name=self.command_name,
                    output_path=None,
                    initial_status_icon=map_run_state_to_icon(RunState.IDLE),
                    initial_status_tooltip="Not run yet",
                    show_settings=False,
                    tooltip=self.session.config.runner.display_command(),
                )
                self.file_list.add_item(self.command_link)

            self.session.bus.subscribe(self._on_transition)
            state, output = self.session.bus.get_current_state()
            self._render(state, output)

            self.set_interval(OUTPUT_POLL_SECONDS, self._stream_output)
        except Exception as e:
            logger.error(f"Failed to mount app: {e}", exc_info=True)
            self.exit(message=f"Error: {e}")

    async def on_unmount(self) -> None:
        """Cancel any running command and stop watchers."""
        if self.session:
            self.session.bus.unsubscribe(self._on_transition)
            await self.session.shutdown()

    @property
    def command_name(self) -> str:
        if not self.session:
            return "command"
        return Path(self.session.config.runner.command).name or "command"

    # ========================================================================
    # Actions
    # ========================================================================

    def action_run_now(self) -> None:
        """Behave as if a file had been saved."""
        if self.session:
            self.session.bus.feed_save_event()

    def action_cancel_run(self) -> None:
        if self.session:
            self.session.bus.cancel_current_run()

    def action_toggle_triggers(self) -> None:
        """Pause or resume reacting to file saves."""
        if not self.session:
            return
        controller = self.session.controller
        controller.set_enabled(not controller.enabled)
        self._render(*self.session.bus.get_current_state())
        self.notify("Save triggers resumed" if controller.enabled else "Save triggers paused")

    # ========================================================================
    # CommandLink Message Handlers
    # ========================================================================

    def on_command_link_play_clicked(self, event: CommandLink.PlayClicked) -> None:
        logger.debug(f"Play clicked: {event.name}")
        self.action_run_now()

    def on_command_link_stop_clicked(self, event: CommandLink.StopClicked) -> None:
        logger.debug(f"Stop clicked: {event.name}")
        self.action_cancel_run()

    # ========================================================================
    # Status updates
    # ========================================================================

    def _on_transition(self, old_state: RunState, new_state: RunState, output: RunOutput | None) -> None:
        """Subscriber called by the core on every state transition (same event loop)."""
        logger.debug(f"Transition {old_state.value} -> {new_state.value}")

        if new_state is RunState.RUNNING and output is not None and output is not self._shown_output:
            self._shown_output = output
            self._next_line = 0
            if self.output_log is not None:
                self.output_log.clear()
                self.output_log.write_line(f"▶ run #{output.run_id}: {self.session.config.runner.display_command()}")
        elif output is not None and output is self._shown_output:
            self._stream_output()
            if self.output_log is not None:
                if new_state is RunState.IDLE:
                    self.output_log.write_line("■ cancelled")
                elif output.outcome is not None:
                    self.output_log.write_line(f"■ {output.outcome.summary()}")

        self._render(new_state, output)

    def _stream_output(self) -> None:
        """Append lines produced since the last poll to the log pane."""
        output = self._shown_output
        if output is None or self.output_log is None:
            return
        lines, self._next_line = output.lines_since(self._next_line)
        if lines:
            self.output_log.write_lines(lines)

    def _render(self, state: RunState, output: RunOutput | None) -> None:
        enabled = self.session.controller.enabled if self.session else True
        if self.status_line is not None:
            self.status_line.show_state(state, output, enabled)
        self.sub_title = status_label(state, output, enabled)
        if self.command_link is not None:
            self.command_link.set_status(
                running=state is RunState.RUNNING,
                icon=map_run_state_to_icon(state),
                tooltip=status_label(state, output, enabled),
            )
