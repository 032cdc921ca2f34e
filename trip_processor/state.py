"""
Trip Recording State Module.

Defines the RecordingState enum and the state machine that tracks a capture
session from idle through finalization.
"""

from enum import Enum
from typing import Any

from core.exceptions import RecordingStateError
from date_utils import get_current_utc_time


class RecordingState(Enum):
    """Enumeration of capture session states."""

    IDLE = "idle"
    CAPTURING = "capturing"
    STOPPING = "stopping"
    FINALIZED = "finalized"
    DISCARDED = "discarded"


TERMINAL_STATES = frozenset({RecordingState.FINALIZED, RecordingState.DISCARDED})


class RecordingStateMachine:
    """
    Manages the state transitions for a capture session.

    Tracks the current state, maintains a history of state changes, and records any
    errors that occur while capturing or finalizing.
    """

    def __init__(self) -> None:
        """Initialize the state machine in IDLE state."""
        self.state = RecordingState.IDLE
        self.state_history: list[dict[str, Any]] = []
        self.errors: dict[str, str] = {}

    def set_state(self, new_state: RecordingState) -> None:
        """
        Update the session state and record it in history.

        Args:
            new_state: The new state to set
        """
        previous_state = self.state
        self.state = new_state
        self.state_history.append(
            {
                "from": previous_state.value,
                "to": new_state.value,
                "timestamp": get_current_utc_time(),
            },
        )

    def transition(self, new_state: RecordingState) -> None:
        """
        Move to ``new_state`` if the transition is valid.

        Raises:
            RecordingStateError: If the transition is not allowed
        """
        if not self.can_proceed_to(new_state):
            msg = (
                f"Cannot move recording from {self.state.value} "
                f"to {new_state.value}"
            )
            raise RecordingStateError(
                msg,
                {"from": self.state.value, "to": new_state.value},
            )
        self.set_state(new_state)

    def record_error(self, error: str) -> None:
        """Remember an error against the current state."""
        self.errors[self.state.value] = error

    def reset(self) -> None:
        """Reset the state machine to its initial state."""
        self.state = RecordingState.IDLE
        self.state_history = []
        self.errors = {}

    def get_status(self, user_id: str = "unknown") -> dict[str, Any]:
        """
        Get the current session status.

        Args:
            user_id: Owner of the session for the status report

        Returns:
            Dict with current state, history, and any errors
        """
        return {
            "state": self.state.value,
            "history": self.state_history,
            "errors": self.errors,
            "user_id": user_id,
        }

    def is_terminal(self) -> bool:
        """Check if the session has been finalized or discarded."""
        return self.state in TERMINAL_STATES

    def can_proceed_to(self, target_state: RecordingState) -> bool:
        """
        Check if transitioning to the target state is valid.

        Args:
            target_state: The state to transition to

        Returns:
            True if the transition is valid
        """
        valid_transitions = {
            RecordingState.IDLE: {RecordingState.CAPTURING},
            RecordingState.CAPTURING: {RecordingState.STOPPING},
            RecordingState.STOPPING: {
                RecordingState.FINALIZED,
                RecordingState.DISCARDED,
            },
            RecordingState.FINALIZED: set(),
            RecordingState.DISCARDED: set(),
        }
        return target_state in valid_transitions.get(self.state, set())
