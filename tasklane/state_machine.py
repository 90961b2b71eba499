"""Task lifecycle state machine."""

from __future__ import annotations

from enum import Enum

from tasklane.errors import InvalidTransitionError


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


TRANSITIONS: dict[TaskStatus, tuple[TaskStatus, ...]] = {
    TaskStatus.PENDING: (TaskStatus.RUNNING, TaskStatus.CANCELLED),
    TaskStatus.RUNNING: (
        TaskStatus.PAUSED,
        TaskStatus.SUCCEEDED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    ),
    TaskStatus.PAUSED: (TaskStatus.RUNNING, TaskStatus.CANCELLED),
    TaskStatus.SUCCEEDED: (),
    TaskStatus.FAILED: (),
    TaskStatus.CANCELLED: (),
}

TERMINAL_STATES = frozenset({TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED})


class TaskStateMachine:
    """The finite set of legal task status transitions.

    Stateless: every answer depends only on the (from, to) pair.
    """

    def validate_transition(self, current: TaskStatus, target: TaskStatus) -> bool:
        return target in TRANSITIONS.get(TaskStatus(current), ())

    def valid_next_states(self, current: TaskStatus) -> list[TaskStatus]:
        return list(TRANSITIONS.get(TaskStatus(current), ()))

    def is_terminal(self, status: TaskStatus) -> bool:
        return TaskStatus(status) in TERMINAL_STATES

    def transition_error_message(self, current: TaskStatus, target: TaskStatus) -> str:
        current, target = TaskStatus(current), TaskStatus(target)
        if self.is_terminal(current):
            return f"Cannot transition from terminal state {current.value}"
        valid = ", ".join(s.value for s in self.valid_next_states(current))
        return f"Cannot transition from {current.value} to {target.value}. Valid transitions: {valid}"

    def ensure_transition(self, current: TaskStatus, target: TaskStatus) -> None:
        """Raise InvalidTransitionError unless current -> target is legal."""
        if not self.validate_transition(current, target):
            raise InvalidTransitionError(
                current=TaskStatus(current),
                target=TaskStatus(target),
                valid_next=self.valid_next_states(current),
                message=self.transition_error_message(current, target),
            )
