"""Tests for the orchestrator state machine."""

import pytest

from copilot.conversation.state_machine import (
    InvalidTransitionError,
    OrchestratorState,
    TransitionTrigger,
)


class TestInitialState:
    def test_starts_booting(self, state_machine):
        assert state_machine.current_state == OrchestratorState.BOOTING

    def test_not_ready_while_booting(self, state_machine):
        assert not state_machine.is_ready

    def test_initial_history_has_one_entry(self, state_machine):
        assert len(state_machine.get_history()) == 1

    def test_message_before_boot_rejected(self, state_machine):
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(TransitionTrigger.USER_MESSAGE)


class TestBoot:
    def test_booted_goes_idle(self, state_machine):
        assert state_machine.transition(TransitionTrigger.BOOTED) == OrchestratorState.IDLE
        assert state_machine.is_ready

    def test_cannot_boot_twice(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        with pytest.raises(InvalidTransitionError, match="Valid triggers"):
            state_machine.transition(TransitionTrigger.BOOTED)


class TestTurns:
    def _awaiting(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        state_machine.transition(TransitionTrigger.USER_MESSAGE)

    def test_message_awaits_reply(self, state_machine):
        self._awaiting(state_machine)
        assert state_machine.current_state == OrchestratorState.AWAITING_REPLY

    def test_second_message_while_awaiting(self, state_machine):
        self._awaiting(state_machine)
        new = state_machine.transition(TransitionTrigger.USER_MESSAGE)
        assert new == OrchestratorState.AWAITING_REPLY

    @pytest.mark.parametrize("trigger, expected", [
        (TransitionTrigger.HANDOVER, OrchestratorState.HANDOVER_FLOW),
        (TransitionTrigger.FOLLOW_UP, OrchestratorState.APPLYING_FOLLOW_UP),
        (TransitionTrigger.ANSWER, OrchestratorState.POSTING_ANSWER_OR_QUESTION),
        (TransitionTrigger.EXTRACTION_FAILED, OrchestratorState.POSTING_ANSWER_OR_QUESTION),
        (TransitionTrigger.INPUT_REJECTED, OrchestratorState.POSTING_ANSWER_OR_QUESTION),
    ])
    def test_reply_routing(self, state_machine, trigger, expected):
        self._awaiting(state_machine)
        assert state_machine.transition(trigger) == expected

    def test_finish_turn_returns_idle(self, state_machine):
        self._awaiting(state_machine)
        state_machine.transition(TransitionTrigger.ANSWER)
        assert state_machine.finish_turn(turns_in_flight=0) == OrchestratorState.IDLE

    def test_finish_turn_with_pending_turns(self, state_machine):
        self._awaiting(state_machine)
        state_machine.transition(TransitionTrigger.HANDOVER)
        assert state_machine.finish_turn(turns_in_flight=1) == OrchestratorState.AWAITING_REPLY

    def test_reply_trigger_invalid_from_idle(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        with pytest.raises(InvalidTransitionError):
            state_machine.transition(TransitionTrigger.ANSWER)

    def test_extraction_failures_counted(self, state_machine):
        self._awaiting(state_machine)
        state_machine.transition(TransitionTrigger.EXTRACTION_FAILED)
        assert state_machine.failure_count == 1


class TestHistory:
    def test_state_trace(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        state_machine.transition(TransitionTrigger.USER_MESSAGE)
        state_machine.transition(TransitionTrigger.FOLLOW_UP)
        state_machine.finish_turn(0)
        assert state_machine.get_state_trace() == [
            "booting", "idle", "awaiting_reply", "applying_follow_up", "idle",
        ]

    def test_history_records_triggers(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        history = state_machine.get_history()
        assert history[0].trigger is None
        assert history[1].trigger == TransitionTrigger.BOOTED

    def test_valid_triggers_from_idle(self, state_machine):
        state_machine.transition(TransitionTrigger.BOOTED)
        assert state_machine.get_valid_triggers() == [TransitionTrigger.USER_MESSAGE]
