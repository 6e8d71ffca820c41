"""Scheduler state - the single owner of assignment and workload bookkeeping.

Every scheduling component receives the same ``SchedulerState`` instance.
Mutations are synchronous; sequences that read state, await a collaborator
and then write back must hold ``lock`` for their whole duration.
"""

import asyncio
from collections import defaultdict

from loguru import logger

from conductor.decomposition.models import Assignment, ReassignmentRecord


class SchedulerState:
    """
    Live assignments, workloads and reassignment history.

    Invariants:
    - ``task_assignments`` and ``worker_tasks`` always describe the same
      set of live assignments.
    - A task has at most one live assignment.
    - ``reassignment_history`` is append-only.
    """

    def __init__(self) -> None:
        self.assignments: dict[str, Assignment] = {}
        self.task_assignments: dict[str, str] = {}
        self.worker_tasks: dict[str, set[str]] = defaultdict(set)
        self.reassignment_history: dict[str, list[ReassignmentRecord]] = defaultdict(list)
        self.failed_workers: set[str] = set()
        self.permanently_failed: set[str] = set()
        self.lock = asyncio.Lock()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def workload(self, worker_id: str) -> int:
        """Number of live tasks bound to a worker."""
        return len(self.worker_tasks.get(worker_id, ()))

    def workloads(self) -> dict[str, int]:
        """Worker id -> live task count, for workers with any tasks."""
        return {w: len(tasks) for w, tasks in self.worker_tasks.items() if tasks}

    def worker_of(self, task_id: str) -> str | None:
        """Worker currently holding a task."""
        return self.task_assignments.get(task_id)

    def tasks_of(self, worker_id: str) -> list[str]:
        """Live tasks of a worker, sorted for deterministic iteration."""
        return sorted(self.worker_tasks.get(worker_id, ()))

    @property
    def in_flight(self) -> set[str]:
        """Ids of all live-assigned tasks."""
        return set(self.task_assignments)

    def is_eligible(self, worker_id: str) -> bool:
        """Whether a worker may be scored."""
        return worker_id not in self.failed_workers

    def attempts(self, task_id: str) -> int:
        """Number of reassignments recorded for a task."""
        return len(self.reassignment_history.get(task_id, ()))

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def bind(self, assignment: Assignment) -> None:
        """Make an assignment live, superseding any previous one for the task."""
        task_id = assignment.task.id
        self.release(task_id)
        self.assignments[task_id] = assignment
        self.task_assignments[task_id] = assignment.worker.id
        self.worker_tasks[assignment.worker.id].add(task_id)

    def move(self, assignment: Assignment, record: ReassignmentRecord) -> None:
        """Supersede a task's assignment and append the audit record."""
        self.bind(assignment)
        self.reassignment_history[record.task_id].append(record)
        logger.debug(
            f"Moved task {record.task_id}: {record.original_worker_id} -> "
            f"{record.new_worker_id} (attempt {record.attempt_number})"
        )

    def release(self, task_id: str) -> str | None:
        """Drop a task's live assignment, returning the worker that held it."""
        worker_id = self.task_assignments.pop(task_id, None)
        self.assignments.pop(task_id, None)
        if worker_id is not None:
            self.worker_tasks[worker_id].discard(task_id)
        return worker_id

    def mark_worker_failed(self, worker_id: str) -> list[str]:
        """Exclude a worker from scoring and return its live tasks."""
        self.failed_workers.add(worker_id)
        return self.tasks_of(worker_id)

    def mark_permanently_failed(self, task_id: str) -> None:
        """Release a task for good."""
        self.release(task_id)
        self.permanently_failed.add(task_id)
