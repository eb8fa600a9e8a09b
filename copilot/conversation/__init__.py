from copilot.conversation.coordinator import SessionCoordinator
from copilot.conversation.orchestrator import ConversationOrchestrator, NotReadyError
from copilot.conversation.reply_rules import ReplyContext, ReplyPlan, evaluate_reply_rules
from copilot.conversation.state_machine import (
    InvalidTransitionError,
    OrchestratorState,
    OrchestratorStateMachine,
    TransitionTrigger,
)

__all__ = [
    "SessionCoordinator",
    "ConversationOrchestrator",
    "NotReadyError",
    "ReplyContext",
    "ReplyPlan",
    "evaluate_reply_rules",
    "OrchestratorStateMachine",
    "OrchestratorState",
    "TransitionTrigger",
    "InvalidTransitionError",
]
