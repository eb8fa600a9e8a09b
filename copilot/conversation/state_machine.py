"""
Finite state machine for the per-session orchestrator lifecycle.

Booting -> Idle <-> AwaitingReply -> {ApplyingFollowUp | HandoverFlow |
PostingAnswerOrQuestion} -> Idle. A new utterance may arrive while an
earlier one is still awaiting its reply; a turn that finishes while
others are in flight returns to AwaitingReply instead of Idle.

Usage:
    sm = OrchestratorStateMachine()
    sm.transition(TransitionTrigger.BOOTED)
    assert sm.current_state == OrchestratorState.IDLE
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    """All states a session's orchestrator can be in."""
    BOOTING = "booting"
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    APPLYING_FOLLOW_UP = "applying_follow_up"
    HANDOVER_FLOW = "handover_flow"
    POSTING_ANSWER_OR_QUESTION = "posting_answer_or_question"


class TransitionTrigger(str, Enum):
    """Events that cause state transitions."""
    BOOTED = "booted"
    USER_MESSAGE = "user_message"
    HANDOVER = "handover"
    FOLLOW_UP = "follow_up"
    ANSWER = "answer"
    INPUT_REJECTED = "input_rejected"
    EXTRACTION_FAILED = "extraction_failed"
    REPLY_PENDING = "reply_pending"
    TURN_COMPLETE = "turn_complete"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: OrchestratorState
    to_state: OrchestratorState
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: OrchestratorState
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


_REPLY_STATES = (
    OrchestratorState.APPLYING_FOLLOW_UP,
    OrchestratorState.HANDOVER_FLOW,
    OrchestratorState.POSTING_ANSWER_OR_QUESTION,
)


class OrchestratorStateMachine:
    """
    Deterministic lifecycle for one session's orchestrator.

    Every transition must be explicitly defined; anything else raises
    InvalidTransitionError listing the triggers that are allowed.
    """

    TRANSITIONS: list[Transition] = [
        # --- Boot ---
        Transition(OrchestratorState.BOOTING, OrchestratorState.IDLE,
                   TransitionTrigger.BOOTED),

        # --- Utterances ---
        Transition(OrchestratorState.IDLE, OrchestratorState.AWAITING_REPLY,
                   TransitionTrigger.USER_MESSAGE),
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.AWAITING_REPLY,
                   TransitionTrigger.USER_MESSAGE),

        # --- Reply routing ---
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.HANDOVER_FLOW,
                   TransitionTrigger.HANDOVER),
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.APPLYING_FOLLOW_UP,
                   TransitionTrigger.FOLLOW_UP),
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.POSTING_ANSWER_OR_QUESTION,
                   TransitionTrigger.ANSWER),
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.POSTING_ANSWER_OR_QUESTION,
                   TransitionTrigger.INPUT_REJECTED),
        Transition(OrchestratorState.AWAITING_REPLY, OrchestratorState.POSTING_ANSWER_OR_QUESTION,
                   TransitionTrigger.EXTRACTION_FAILED),
    ] + [
        # --- Turn completion ---
        Transition(state, OrchestratorState.IDLE, TransitionTrigger.TURN_COMPLETE)
        for state in _REPLY_STATES
    ] + [
        Transition(state, OrchestratorState.AWAITING_REPLY, TransitionTrigger.REPLY_PENDING)
        for state in _REPLY_STATES
    ]

    def __init__(self) -> None:
        self._current_state = OrchestratorState.BOOTING
        self._history: list[StateEntry] = [
            StateEntry(state=OrchestratorState.BOOTING, entered_at=datetime.now(timezone.utc))
        ]
        self._failure_count: int = 0

    @property
    def current_state(self) -> OrchestratorState:
        return self._current_state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_ready(self) -> bool:
        return self._current_state != OrchestratorState.BOOTING

    def transition(self, trigger: TransitionTrigger) -> OrchestratorState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                if trigger == TransitionTrigger.EXTRACTION_FAILED:
                    self._failure_count += 1

                logger.debug(
                    "State transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def finish_turn(self, turns_in_flight: int) -> OrchestratorState:
        """Leave a reply state: back to Idle, or AwaitingReply if other turns are pending."""
        if turns_in_flight > 0:
            return self.transition(TransitionTrigger.REPLY_PENDING)
        return self.transition(TransitionTrigger.TURN_COMPLETE)

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]
