"""Session lifecycle state machine."""

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """
    Session lifecycle states.

    State transitions:
        DISCONNECTED -> CONNECTING -> CONNECTED
              ^              |            |
              +--------------+------------+

    CONNECTING falls back to DISCONNECTED when a connection attempt
    fails; CONNECTED returns to DISCONNECTED on disconnect or when the
    connection is lost.
    """

    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: SessionState, to_state: SessionState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


# Type for state transition callbacks
StateTransitionCallback = Callable[[SessionState, SessionState], None]


class SessionStateMachine:
    """
    Tracks the session lifecycle state.

    Enforces valid state transitions and notifies listeners
    when transitions occur.
    """

    VALID_TRANSITIONS: dict[SessionState, list[SessionState]] = {
        SessionState.DISCONNECTED: [SessionState.CONNECTING],
        SessionState.CONNECTING: [
            SessionState.CONNECTED,
            SessionState.DISCONNECTED,  # Connection failed
        ],
        SessionState.CONNECTED: [SessionState.DISCONNECTED],
    }

    def __init__(self):
        self._state = SessionState.DISCONNECTED
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.CONNECTED

    @property
    def is_disconnected(self) -> bool:
        return self._state == SessionState.DISCONNECTED

    def can_transition_to(self, new_state: SessionState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: SessionState) -> None:
        """
        Transition to a new state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(f"Session state: {old_state} -> {new_state}")

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.warning(f"State listener failed: {e}")

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def remove_listener(self, callback: StateTransitionCallback) -> None:
        """Remove a previously registered callback."""
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def __str__(self) -> str:
        return f"SessionStateMachine({self._state.name})"

    def __repr__(self) -> str:
        return f"SessionStateMachine(state={self._state!r})"
