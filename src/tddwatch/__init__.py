"""tddwatch: save-triggered build/test runner core."""

__version__ = "0.1.0"

# Models
from tddwatch.models import (
    ConfigValidationResult,
    ProcessHandle,
    RunOutcome,
    RunRequest,
    RunState,
    map_run_state_to_icon,
)
from tddwatch.output import RunOutput

# Errors
from tddwatch.errors import (
    ConfigurationError,
    ProcessError,
    SignalError,
    SpawnError,
    TddWatchError,
)

# Config
from tddwatch.config import DisplayConfig, RunnerSettings, TddWatchConfig, load_config

# Engine
from tddwatch.bus import EventBus
from tddwatch.publisher import StatusPublisher
from tddwatch.runner import ProcessRunner
from tddwatch.session import WatchSession
from tddwatch.trigger import TriggerController

__all__ = [
    "__version__",
    # Models
    "RunState",
    "RunRequest",
    "RunOutcome",
    "RunOutput",
    "ProcessHandle",
    "ConfigValidationResult",
    "map_run_state_to_icon",
    # Errors
    "TddWatchError",
    "ConfigurationError",
    "SpawnError",
    "ProcessError",
    "SignalError",
    # Config
    "RunnerSettings",
    "DisplayConfig",
    "TddWatchConfig",
    "load_config",
    # Engine
    "ProcessRunner",
    "StatusPublisher",
    "TriggerController",
    "EventBus",
    "WatchSession",
]
