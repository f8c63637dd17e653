import pytest

from interviewer_bot.core.session_state import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    DriverState,
    is_terminal_state,
    validate_state_machine_completeness,
    validate_transition,
)


class TestDriverStateMachine:
    def test_every_state_has_transitions_defined(self):
        assert validate_state_machine_completeness() == []

    def test_turn_taking_cycle(self):
        assert validate_transition(DriverState.CREATED, DriverState.AWAITING_ANSWER)
        assert validate_transition(DriverState.AWAITING_ANSWER, DriverState.AWAITING_NEXT_QUESTION)
        assert validate_transition(DriverState.AWAITING_NEXT_QUESTION, DriverState.AWAITING_ANSWER)

    @pytest.mark.parametrize("state", [s for s in DriverState if s not in TERMINAL_STATES])
    def test_live_states_can_end(self, state):
        assert validate_transition(state, DriverState.COMPLETED)
        assert validate_transition(state, DriverState.ABORTED)

    @pytest.mark.parametrize("state", sorted(TERMINAL_STATES, key=lambda s: s.value))
    def test_terminal_states_are_final(self, state):
        assert is_terminal_state(state)
        assert VALID_TRANSITIONS[state] == set()
        for target in DriverState:
            assert not validate_transition(state, target)

    def test_cannot_skip_the_answer(self):
        assert not validate_transition(DriverState.CREATED, DriverState.AWAITING_NEXT_QUESTION)

    def test_rejects_non_state(self):
        with pytest.raises(ValueError):
            validate_transition("created", DriverState.AWAITING_ANSWER)
