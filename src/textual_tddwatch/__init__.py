"""textual-tddwatch: run tests on every save, show the result as a status glyph."""

__version__ = "0.1.0"

# Public API
from tddwatch.session import WatchSession
from textual_tddwatch.app import TddWatchApp

__all__ = [
    "__version__",
    # Primary components
    "TddWatchApp",
    "WatchSession",
]
