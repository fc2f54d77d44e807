"""CLI entry point for tddwatch: auto-generates a default config and launches the TUI or daemon."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from textual.logging import TextualHandler

from tddwatch.config import load_config
from tddwatch.errors import ConfigurationError
from tddwatch.notifier import LoggingNotifier
from tddwatch.session import WatchSession
from textual_tddwatch import __version__
from textual_tddwatch.app import TddWatchApp
from textual_tddwatch.headless import run_headless

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

# Default config template for Python test-driven development
DEFAULT_CONFIG_TEMPLATE = """\
# Auto-generated tddwatch.toml

[runner]
command = "pytest"
args = ["-q", "-x"]
working_dir = "."
debounce_ms = 0
output_buffer_limit_bytes = 65536
cancel_grace_ms = 2000

[[file_watcher]]
dir = "."
patterns = ["**/*.py"]
ignore_dirs = ["__pycache__", ".git", "venv", ".venv", ".pytest_cache"]
settle_ms = 100

[display]
glyph = "●"
idle = "grey50"
running = "yellow"
succeeded = "green"
failed = "red"
"""


def create_default_config(config_path: Path) -> bool:
    """
    Create a default tddwatch.toml if it doesn't exist.

    Args:
        config_path: Path where config should be created

    Returns:
        True if config was created, False if it already exists

    Raises:
        PermissionError: If unable to write to the directory
        OSError: If other file system errors occur
    """
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
    return True


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="tddwatch",
        description="Run your build/test command on every save and show the result as a status glyph.",
        epilog="Examples:\n"
        "  tddwatch                        # Auto-create tddwatch.toml and launch the TUI\n"
        "  tddwatch --headless             # Watch without a UI, print status lines\n"
        "  tddwatch --check -c ci.toml     # Validate a config and exit\n"
        "  tddwatch --version              # Show version",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="tddwatch.toml",
        help="Path to config file (default: tddwatch.toml)",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--headless",
        action="store_true",
        help="Run without the TUI; print one line per state change",
    )
    mode.add_argument(
        "--check",
        action="store_true",
        help="Validate the configuration and exit",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool, console: bool) -> None:
    """Console logging for headless/check modes, Textual's devtools console for the TUI."""
    level = logging.DEBUG if verbose else logging.INFO
    if console:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)-7s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=level, handlers=[TextualHandler()])


def main(argv: list[str] | None = None) -> None:
    """
    Main entry point for the tddwatch CLI.

    Handles:
    - Argument parsing
    - Auto-creation of tddwatch.toml
    - Startup validation (exit 2 on configuration errors)
    - Launching TddWatchApp or the headless daemon
    """
    args = parse_args(argv)
    config_path = Path(args.config).resolve()
    configure_logging(args.verbose, console=args.headless or args.check)

    try:
        if create_default_config(config_path):
            print(f"Created default config at: {config_path}")

        config = load_config(config_path)
        notifier = LoggingNotifier(tag=Path(config.runner.command.split()[0]).name) if args.headless else None
        session = WatchSession(config=config, notifier=notifier)

        result = session.validate_config()
        for warning in result.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        for error in result.errors:
            print(f"Error: {error}", file=sys.stderr)
        if not result.ok:
            sys.exit(EXIT_CONFIG_ERROR)

        if args.check:
            print(f"Config OK: {result.command} ({result.watchers_configured} watcher(s))")
            return

        if args.headless:
            exit_code = asyncio.run(run_headless(session))
            if exit_code:
                sys.exit(exit_code)
            return

        # The app builds its own session so core notifications reach its toasts
        app = TddWatchApp(config_path=str(config_path))
        app.run()

    except KeyboardInterrupt:
        sys.exit(EXIT_INTERRUPTED)
    except (FileNotFoundError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
    except (PermissionError, OSError) as e:
        print(f"Error: Failed to create config: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
