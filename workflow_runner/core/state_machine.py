"""
State machine definitions for task and workflow states.

Implements explicit state transitions with validation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """
    Possible states for a task within a run.

    State transitions:
    - PENDING -> RUNNING -> COMPLETED
    - PENDING -> RUNNING -> RUNNING (retry) -> ... -> COMPLETED | FAILED
    - PENDING -> SKIPPED
    """

    PENDING = "PENDING"      # Initial state, waiting for dependencies
    RUNNING = "RUNNING"      # An attempt is in flight (or between retries)
    COMPLETED = "COMPLETED"  # Work settled successfully
    FAILED = "FAILED"        # Failed after all retries exhausted (includes timeouts)
    SKIPPED = "SKIPPED"      # Never started because a dependency did not complete


class WorkflowStatus(str, Enum):
    """Overall outcome of a run."""

    COMPLETED = "COMPLETED"  # No task failed
    FAILED = "FAILED"        # At least one task failed


class StateTransition(BaseModel):
    """Represents a state transition event."""

    from_state: str
    to_state: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reason: Optional[str] = None


class InvalidStateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: str, to_state: str, message: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition from {from_state} to {to_state}"
            + (f": {message}" if message else "")
        )


class TaskStateMachine:
    """
    State machine for task states.

    Terminal states (COMPLETED, FAILED, SKIPPED) accept no further transitions.
    """

    # Valid state transitions: from_state -> {valid_to_states}
    VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
        TaskStatus.PENDING: {TaskStatus.RUNNING, TaskStatus.SKIPPED},
        TaskStatus.RUNNING: {
            TaskStatus.RUNNING,  # next retry attempt
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
        },
        TaskStatus.COMPLETED: set(),  # Terminal state
        TaskStatus.FAILED: set(),     # Terminal state
        TaskStatus.SKIPPED: set(),    # Terminal state
    }

    TERMINAL_STATES: frozenset[TaskStatus] = frozenset({
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.SKIPPED,
    })

    def __init__(self, initial_state: TaskStatus = TaskStatus.PENDING):
        self._state = initial_state
        self._history: list[StateTransition] = []

    @property
    def state(self) -> TaskStatus:
        """Get current state."""
        return self._state

    @property
    def history(self) -> list[StateTransition]:
        """Get state transition history."""
        return self._history.copy()

    @property
    def is_terminal(self) -> bool:
        return self._state in self.TERMINAL_STATES

    def can_transition_to(self, to_state: TaskStatus) -> bool:
        """Check if transition to given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def get_valid_transitions(self) -> set[TaskStatus]:
        """Get all valid transitions from current state."""
        return self.VALID_TRANSITIONS.get(self._state, set()).copy()

    def transition(
        self,
        to_state: TaskStatus,
        reason: Optional[str] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Args:
            to_state: Target state
            reason: Reason for transition

        Returns:
            StateTransition record

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        if not self.can_transition_to(to_state):
            valid = sorted(s.value for s in self.get_valid_transitions())
            raise InvalidStateTransitionError(
                self._state.value,
                to_state.value,
                f"Valid transitions: {valid}",
            )

        transition = StateTransition(
            from_state=self._state.value,
            to_state=to_state.value,
            reason=reason,
        )

        self._history.append(transition)
        self._state = to_state

        return transition


def compute_workflow_status(statuses: Iterable[TaskStatus]) -> WorkflowStatus:
    """
    Compute the overall workflow status from terminal task statuses.

    SKIPPED tasks alone never fail a workflow; only a FAILED task does.
    """
    for status in statuses:
        if status == TaskStatus.FAILED:
            return WorkflowStatus.FAILED
    return WorkflowStatus.COMPLETED
