from copilot.engine.configuration_state import (
    ConfigurationSnapshot,
    ConfigurationState,
    InvalidSelectionError,
)
from copilot.engine.decision_engine import (
    EngineStatus,
    NextState,
    QuestionState,
    compute_next_state,
)

__all__ = [
    "compute_next_state",
    "EngineStatus",
    "NextState",
    "QuestionState",
    "ConfigurationState",
    "ConfigurationSnapshot",
    "InvalidSelectionError",
]
