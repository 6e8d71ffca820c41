"""Exception taxonomy for the Conductor scheduling engine.

``ValidationError`` and ``DependencyError`` abort a whole decomposition.
``AssignmentError`` and ``ReassignmentExhausted`` are per-task and are
normally recorded on results rather than propagated. ``ConductorTimeoutError``
marks a truncated run; callers receive partial results instead.
"""

from typing import Any


class ConductorError(Exception):
    """Base exception for Conductor errors."""

    pass


class ValidationError(ConductorError):
    """Structural problem in a decomposition request.

    Covers schema violations, missing fields and duplicate task ids.
    """

    def __init__(self, message: str, issues: list[Any] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []


class DependencyError(ConductorError):
    """Dangling dependency reference or dependency cycle."""

    def __init__(
        self,
        message: str,
        issues: list[Any] | None = None,
        cycle: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.issues = issues or []
        self.cycle = cycle or []


class TaskCreationError(ConductorError):
    """The task store rejected a task, or one of its dependencies was never created."""

    pass


class AssignmentError(ConductorError):
    """No eligible worker was found for a task."""

    def __init__(
        self,
        task_id: str,
        reason: str,
        attempted_workers: list[str] | None = None,
    ) -> None:
        super().__init__(f"Could not assign task {task_id}: {reason}")
        self.task_id = task_id
        self.reason = reason
        self.attempted_workers = attempted_workers or []

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "task_id": self.task_id,
            "reason": self.reason,
            "attempted_workers": self.attempted_workers,
        }


class ReassignmentExhausted(ConductorError):
    """A task reached its reassignment bound and is permanently failed."""

    def __init__(self, task_id: str, attempts: int) -> None:
        super().__init__(
            f"Task {task_id} exceeded max reassignment attempts ({attempts})"
        )
        self.task_id = task_id
        self.attempts = attempts


class ConductorTimeoutError(ConductorError, TimeoutError):
    """Validation or monitoring exceeded its time budget."""

    pass
