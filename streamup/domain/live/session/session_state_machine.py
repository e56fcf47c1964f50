"""Session state machine for managing state transitions."""

from streamup.schemas import SessionState


class SessionStateMachine:
    """State machine for managing session state transitions.

    State flow with triggers:
    - SCHEDULED (session created) -> STARTING (go-live requested) | CANCELLED
    - STARTING -> LIVE (capture granted and transport confirmed) | CANCELLED
    - LIVE -> PAUSED (host paused) | ENDED
    - PAUSED -> LIVE (host resumed) | ENDED
    - ENDED/CANCELLED are terminal states

    Detailed triggers:
    1. SCHEDULED: Set when the session is created via create_session()
    2. STARTING: Set by request_go_live() before the capability check; a denied
       permission or a failed confirmation leaves the session here for retry
    3. LIVE: Set once capture access is granted and the transport confirms
    4. PAUSED: Set by pause() (only from LIVE)
    5. ENDED: Set by end() from LIVE or PAUSED, even if teardown steps fail
    6. CANCELLED: Set by cancel() when abandoning before going live
    """

    # State transition map defining valid state flows
    TRANSITIONS: dict[SessionState, set[SessionState]] = {
        SessionState.SCHEDULED: {
            SessionState.STARTING,
            SessionState.CANCELLED,
        },
        SessionState.STARTING: {
            SessionState.LIVE,
            SessionState.CANCELLED,
        },
        SessionState.LIVE: {
            SessionState.PAUSED,
            SessionState.ENDED,
        },
        SessionState.PAUSED: {
            SessionState.LIVE,
            SessionState.ENDED,
        },
        SessionState.ENDED: set(),
        SessionState.CANCELLED: set(),
    }

    # Terminal states that cannot transition further
    TERMINAL_STATES: set[SessionState] = {SessionState.ENDED, SessionState.CANCELLED}

    @classmethod
    def can_transition(cls, current: SessionState, new: SessionState) -> bool:
        """Check if state transition is valid.

        Args:
            current: Current session state
            new: Target state to transition to

        Returns:
            True if transition is valid, False otherwise
        """
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: SessionState) -> bool:
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, state: SessionState) -> set[SessionState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: SessionState) -> set[SessionState]:
        """Get all states that can transition to the target state.

        Args:
            target: Target session state

        Returns:
            Set of states that can transition to the target
        """
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
