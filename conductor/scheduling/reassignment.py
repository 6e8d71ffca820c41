"""Failure and reassignment manager.

Reacts to failed workers and failed tasks by moving tasks to substitute
workers. Each task may be moved at most ``max_reassignment_attempts`` times;
every move is recorded in the scheduler's append-only history.
"""

from dataclasses import dataclass, field

from loguru import logger

from conductor.core.config import Settings, get_settings
from conductor.core.events import TASK_REASSIGNED, EventBus
from conductor.core.exceptions import (
    AssignmentError,
    ConductorError,
    ReassignmentExhausted,
)
from conductor.core.interfaces import AgentDirectory
from conductor.decomposition.models import (
    Assignment,
    ReassignmentRecord,
    TaskStatus,
)
from conductor.scheduling.scoring import ScoringEngine
from conductor.scheduling.state import SchedulerState


@dataclass
class WorkerFailureResult:
    """Outcome of moving every task off a failed worker."""

    worker_id: str
    reassigned: list[Assignment] = field(default_factory=list)
    failed: list[ConductorError] = field(default_factory=list)

    @property
    def failed_task_ids(self) -> list[str]:
        """Tasks that could not be moved and are now permanently failed."""
        return [getattr(e, "task_id", "") for e in self.failed]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "worker_id": self.worker_id,
            "reassigned": [a.to_dict() for a in self.reassigned],
            "failed": [str(e) for e in self.failed],
        }


class FailureManager:
    """
    Move tasks away from failing workers with bounded retries.

    Reassignment re-scores the task against the remaining eligible workers
    with the configured reassignment strategy and the live workloads. The
    whole read-score-move sequence runs under the scheduler lock, so a
    concurrent completion cannot interleave with it.

    Example:
        >>> manager = FailureManager(state, scoring, directory)
        >>> new = await manager.handle_task_failure("task-1", "tests failed")
        >>> state.attempts("task-1")
        1
    """

    def __init__(
        self,
        state: SchedulerState,
        scoring: ScoringEngine,
        directory: AgentDirectory,
        events: EventBus | None = None,
        settings: Settings | None = None,
    ):
        self.state = state
        self.scoring = scoring
        self.directory = directory
        self.events = events
        self.settings = settings or get_settings()
        self.errors: list[ConductorError] = []

    @property
    def max_attempts(self) -> int:
        """Reassignment bound per task."""
        return self.settings.max_reassignment_attempts

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    async def handle_worker_failure(
        self,
        worker_id: str,
        reason: str = "worker failed",
    ) -> WorkerFailureResult:
        """
        Mark a worker ineligible and move each of its live tasks.

        Tasks that cannot be moved are permanently failed; the others are
        unaffected by those failures.
        """
        result = WorkerFailureResult(worker_id=worker_id)

        async with self.state.lock:
            task_ids = self.state.mark_worker_failed(worker_id)
            logger.warning(f"Worker {worker_id} failed with {len(task_ids)} live tasks")

            for task_id in task_ids:
                try:
                    assignment = await self._reassign_locked(task_id, f"{reason}: {worker_id}")
                    if assignment is not None:
                        result.reassigned.append(assignment)
                except (ReassignmentExhausted, AssignmentError) as e:
                    logger.error(str(e))
                    self.errors.append(e)
                    result.failed.append(e)

            self.state.worker_tasks.pop(worker_id, None)

        return result

    async def handle_task_failure(
        self,
        task_id: str,
        reason: str = "task failed",
    ) -> Assignment | None:
        """
        Move a failed task away from its current worker.

        Returns:
            The new live assignment, or None when the task is now
            permanently failed or was released while the move was pending.
        """
        try:
            return await self.reassign(task_id, reason)
        except (ReassignmentExhausted, AssignmentError) as e:
            logger.error(str(e))
            self.errors.append(e)
            return None

    async def reassign(self, task_id: str, reason: str) -> Assignment | None:
        """
        Reassign one task.

        Returns None without recording anything when the task stopped being
        live on its worker while candidates were being listed.

        Raises:
            ReassignmentExhausted: If the task already used every attempt.
            AssignmentError: If the task has no live assignment, no other
                worker is eligible, or dynamic reassignment is disabled.
        """
        async with self.state.lock:
            return await self._reassign_locked(task_id, reason)

    # =========================================================================
    # REASSIGNMENT
    # =========================================================================

    async def _reassign_locked(self, task_id: str, reason: str) -> Assignment | None:
        current = self.state.assignments.get(task_id)
        if current is None:
            self.state.mark_permanently_failed(task_id)
            raise AssignmentError(task_id, "task has no live assignment")

        task = current.task

        if not self.settings.enable_dynamic_reassignment:
            self._fail(task_id)
            raise AssignmentError(task_id, "dynamic reassignment disabled")

        attempts = self.state.attempts(task_id)
        if attempts >= self.max_attempts:
            self._fail(task_id)
            raise ReassignmentExhausted(task_id, attempts)

        workers = await self.directory.list_available()

        # a completion may have released the task during the await
        if self.state.worker_of(task_id) != current.worker.id:
            logger.info(f"Task {task_id} is no longer live on {current.worker.id}; not reassigned")
            return None

        candidates = [
            w for w in workers
            if self.state.is_eligible(w.id) and w.id != current.worker.id
        ]
        selected = self.scoring.score(
            task,
            candidates,
            self.state.workloads(),
            strategy=self.settings.reassignment_strategy,
        )

        if selected is None:
            self._fail(task_id)
            raise AssignmentError(
                task_id,
                "no eligible worker for reassignment",
                attempted_workers=[w.id for w in candidates],
            )

        record = ReassignmentRecord(
            task_id=task_id,
            original_worker_id=current.worker.id,
            new_worker_id=selected.worker.id,
            reason=reason,
            attempt_number=attempts + 1,
        )
        assignment = selected.model_copy(update={"layer": current.layer})
        self.state.move(assignment, record)

        task.status = TaskStatus.ASSIGNED
        task.assigned_to = assignment.worker.id

        logger.info(
            f"Reassigned task {task_id}: {record.original_worker_id} -> "
            f"{record.new_worker_id} (attempt {record.attempt_number}/{self.max_attempts})"
        )
        if self.events is not None:
            self.events.publish(TASK_REASSIGNED, record.model_dump())

        return assignment

    def _fail(self, task_id: str) -> None:
        current = self.state.assignments.get(task_id)
        if current is not None:
            current.task.status = TaskStatus.FAILED
        self.state.mark_permanently_failed(task_id)
