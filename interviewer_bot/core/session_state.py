from enum import Enum


class DriverState(Enum):
    """Turn-taking states of one interview session."""

    CREATED = "created"
    AWAITING_ANSWER = "awaiting_answer"
    AWAITING_NEXT_QUESTION = "awaiting_next_question"
    COMPLETED = "completed"
    ABORTED = "aborted"


TERMINAL_STATES = frozenset({DriverState.COMPLETED, DriverState.ABORTED})

# Time budget expiry and explicit abort can end a session from any live state
VALID_TRANSITIONS: dict[DriverState, set[DriverState]] = {
    DriverState.CREATED: {
        DriverState.AWAITING_ANSWER,
        DriverState.COMPLETED,
        DriverState.ABORTED,
    },
    DriverState.AWAITING_ANSWER: {
        DriverState.AWAITING_NEXT_QUESTION,
        DriverState.COMPLETED,
        DriverState.ABORTED,
    },
    DriverState.AWAITING_NEXT_QUESTION: {
        DriverState.AWAITING_ANSWER,
        DriverState.COMPLETED,
        DriverState.ABORTED,
    },
    DriverState.COMPLETED: set(),
    DriverState.ABORTED: set(),
}


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: DriverState, to_state: DriverState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition from {from_state.value} to {to_state.value}")


def validate_transition(from_state: DriverState, to_state: DriverState) -> bool:
    """Check if a state transition is valid."""
    if not isinstance(from_state, DriverState):
        raise ValueError(f"Invalid from_state type: {type(from_state)}")
    if not isinstance(to_state, DriverState):
        raise ValueError(f"Invalid to_state type: {type(to_state)}")

    return to_state in VALID_TRANSITIONS.get(from_state, set())


def is_terminal_state(state: DriverState) -> bool:
    if not isinstance(state, DriverState):
        raise ValueError(f"Invalid state type: {type(state)}")

    return state in TERMINAL_STATES


def validate_state_machine_completeness() -> list[str]:
    """Validate that all states have defined transitions and none are orphaned."""
    issues = []
    all_states = set(DriverState)

    orphaned_states = all_states - set(VALID_TRANSITIONS.keys())
    if orphaned_states:
        issues.append(f"States without transitions: {orphaned_states}")

    reachable = {DriverState.CREATED}
    for transitions in VALID_TRANSITIONS.values():
        reachable.update(transitions)

    unreachable = all_states - reachable
    if unreachable:
        issues.append(f"Unreachable states: {unreachable}")

    for state in TERMINAL_STATES:
        if VALID_TRANSITIONS.get(state):
            issues.append(f"Terminal state {state.value} has outgoing transitions")

    return issues
