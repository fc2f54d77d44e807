#!/usr/bin/env python3
"""
Example: Editor Bridge
Shows how an editor plugin drives tddwatch through the EventBus instead of
file watchers.

The editor launches this script as a subprocess and talks to it over pipes:

    stdin  (one command per line)   save <path> | cancel | quit
    stdout (one line per change)    <state> <glyph-color> <label>

This example demonstrates:
- Embedding WatchSession with enable_watchers=False
- Feeding save events from a non-asyncio thread
- Rendering a mode-line glyph from status transitions
"""

import asyncio
import sys
import threading

try:
    from tddwatch import WatchSession
    from textual_tddwatch.widgets import status_label
except ImportError:
    print("Error: Install textual-tddwatch first: pip install textual-tddwatch")
    exit(1)


class EditorBridge:
    """Forwards editor commands to the bus and status changes back to the editor."""

    def __init__(self, config_path: str):
        self.session = WatchSession(config_path, enable_watchers=False)
        self.display = self.session.config.display
        self.stopped = asyncio.Event()

    def on_transition(self, old_state, new_state, output):
        color = self.display.color_for(new_state)
        print(f"{new_state.value} {color} {status_label(new_state, output)}", flush=True)

    def read_commands(self, loop: asyncio.AbstractEventLoop):
        """Runs on a plain thread: blocking reads from the editor."""
        for line in sys.stdin:
            verb, _, arg = line.strip().partition(" ")
            if verb == "save":
                self.session.bus.feed_save_event(arg or None)
            elif verb == "cancel":
                self.session.bus.cancel_current_run()
            elif verb == "quit":
                break
        loop.call_soon_threadsafe(self.stopped.set)

    async def run(self):
        loop = asyncio.get_running_loop()
        self.session.bus.subscribe(self.on_transition)
        self.session.attach(loop)

        reader = threading.Thread(target=self.read_commands, args=(loop,), daemon=True)
        reader.start()
        try:
            await self.stopped.wait()
        finally:
            await self.session.shutdown()


async def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else "tddwatch.toml"
    await EditorBridge(config_path).run()


if __name__ == "__main__":
    asyncio.run(main())
