"""Assignment orchestrator - binds layered tasks to workers.

The orchestrator walks execution layers in order and parallel groups within
each layer, scoring every task against the available workers. It never
blocks: tasks that would exceed the global in-flight ceiling, or that have
no eligible worker, are returned as unassigned with a reason.
"""

from collections import Counter
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING, Any

from loguru import logger

from conductor.core.config import Settings, get_settings
from conductor.core.events import TASK_ASSIGNED, EventBus
from conductor.core.exceptions import AssignmentError
from conductor.core.interfaces import AgentDirectory
from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.layers import ExecutionLayerBuilder
from conductor.decomposition.models import (
    Assignment,
    ExecutionLayer,
    Task,
    TaskStatus,
    Worker,
)
from conductor.scheduling.scoring import ScoringEngine
from conductor.scheduling.state import SchedulerState

if TYPE_CHECKING:
    from conductor.scheduling.reassignment import FailureManager

# Callback handing a live assignment to the worker that should run it
Dispatcher = Callable[[Assignment], Awaitable[None]]

CONCURRENCY_CAP_REACHED = "concurrency cap reached"
NO_ELIGIBLE_WORKER = "no eligible worker"


class AssignmentMetrics:
    """Summary figures for one assignment pass."""

    def __init__(
        self,
        total_tasks: int = 0,
        assigned: int = 0,
        layer_count: int = 0,
        parallel_group_count: int = 0,
        average_score: float = 0.0,
        estimated_completion: float = 0.0,
    ):
        self.total_tasks = total_tasks
        self.assigned = assigned
        self.layer_count = layer_count
        self.parallel_group_count = parallel_group_count
        self.average_score = average_score
        self.estimated_completion = estimated_completion

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_tasks": self.total_tasks,
            "assigned": self.assigned,
            "layer_count": self.layer_count,
            "parallel_group_count": self.parallel_group_count,
            "average_score": round(self.average_score, 4),
            "estimated_completion_minutes": round(self.estimated_completion, 2),
        }


class AssignmentResult:
    """Assignments and unassigned tasks produced by one pass."""

    def __init__(self, layers: list[ExecutionLayer] | None = None):
        self.layers = layers or []
        self.assignments: list[Assignment] = []
        self.unassigned: list[AssignmentError] = []
        self.metrics = AssignmentMetrics()

    @property
    def assigned_count(self) -> int:
        """Number of tasks bound to a worker."""
        return len(self.assignments)

    @property
    def unassigned_ids(self) -> list[str]:
        """Ids of tasks left unassigned."""
        return [e.task_id for e in self.unassigned]

    def reason_for(self, task_id: str) -> str | None:
        """Why a task was left unassigned."""
        for error in self.unassigned:
            if error.task_id == task_id:
                return error.reason
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "layers": [layer.task_ids for layer in self.layers],
            "assignments": [a.to_dict() for a in self.assignments],
            "unassigned": [e.to_dict() for e in self.unassigned],
            "metrics": self.metrics.to_dict(),
        }


class AssignmentOrchestrator:
    """
    Bind tasks to workers layer by layer.

    Workload bookkeeping is updated immediately after each binding, so the
    next scoring call in the same pass sees the new load. Scoring and
    binding happen without an intervening await.

    The global ceiling counts in-flight tasks that are not dependencies of
    the task being placed; a dependency cannot run at the same time as its
    dependent, so it never occupies a slot the dependent would need.

    Example:
        >>> orchestrator = AssignmentOrchestrator(state, scoring, directory)
        >>> result = await orchestrator.assign(tasks)
        >>> result.assigned_count, result.unassigned_ids
        (2, ['task-3', 'task-4'])
    """

    def __init__(
        self,
        state: SchedulerState,
        scoring: ScoringEngine,
        directory: AgentDirectory,
        failure_manager: "FailureManager | None" = None,
        events: EventBus | None = None,
        settings: Settings | None = None,
        dispatcher: Dispatcher | None = None,
        layer_builder: ExecutionLayerBuilder | None = None,
    ):
        self.state = state
        self.scoring = scoring
        self.directory = directory
        self.failure_manager = failure_manager
        self.events = events
        self.settings = settings or get_settings()
        self.dispatcher = dispatcher
        self.layer_builder = layer_builder or ExecutionLayerBuilder()

    @property
    def max_parallel_tasks(self) -> int:
        """Global ceiling on in-flight tasks."""
        return self.settings.max_parallel_tasks

    async def assign(self, tasks: Iterable[Task]) -> AssignmentResult:
        """
        Run one assignment pass over the given tasks.

        Args:
            tasks: Tasks in sequencing order.

        Returns:
            AssignmentResult with layers, live assignments, unassigned
            tasks and metrics.

        Raises:
            DependencyError: If the tasks contain a cycle.
        """
        tasks = list(tasks)
        layers = self.layer_builder.build(tasks)
        graph = DependencyGraph.from_tasks(tasks)
        result = AssignmentResult(layers)
        blocked: set[str] = set()
        group_count = 0

        logger.info(
            f"Assigning {len(tasks)} tasks across {len(layers)} layers "
            f"(ceiling {self.max_parallel_tasks})"
        )

        for layer in layers:
            workers = await self.directory.list_available()
            groups = self.layer_builder.partition_parallel_groups(layer)
            group_count += len(groups)

            for group in groups:
                logger.debug(f"Layer {layer.index} group {group.group_id}: {group.task_ids}")

                for task in group.tasks:
                    assignment = self._assign_task(task, layer.index, workers, graph, blocked, result)
                    if assignment is None:
                        blocked.add(task.id)
                        continue

                    if self.dispatcher is not None:
                        assignment = await self._dispatch(assignment, result)
                        if assignment is None:
                            blocked.add(task.id)
                            continue

                    result.assignments.append(assignment)

        result.metrics = self._compute_metrics(tasks, result, group_count)
        logger.info(
            f"Assignment pass complete: {result.assigned_count}/{len(tasks)} assigned, "
            f"{len(result.unassigned)} unassigned"
        )
        return result

    # =========================================================================
    # SINGLE TASK
    # =========================================================================

    def _assign_task(
        self,
        task: Task,
        layer_index: int,
        workers: list[Worker],
        graph: DependencyGraph,
        blocked: set[str],
        result: AssignmentResult,
    ) -> Assignment | None:
        """Score and bind one task, or record why it stays unassigned."""
        blocking = [d for d in graph.dependencies_of(task.id) if d in blocked]
        if blocking:
            result.unassigned.append(
                AssignmentError(task.id, f"dependency not assigned: {', '.join(blocking)}")
            )
            return None

        peers = self.state.in_flight - graph.ancestors(task.id) - {task.id}
        if len(peers) >= self.max_parallel_tasks:
            logger.debug(f"Task {task.id} deferred: {len(peers)} tasks in flight")
            result.unassigned.append(AssignmentError(task.id, CONCURRENCY_CAP_REACHED))
            return None

        candidates = [w for w in workers if self.state.is_eligible(w.id)]
        selected = self.scoring.score(task, candidates, self.state.workloads())

        if selected is None:
            error = AssignmentError(
                task.id,
                NO_ELIGIBLE_WORKER,
                attempted_workers=[w.id for w in candidates],
            )
            logger.warning(str(error))
            result.unassigned.append(error)
            return None

        assignment = selected.model_copy(update={"layer": layer_index})
        self._bind(assignment)
        return assignment

    def _bind(self, assignment: Assignment) -> None:
        task = assignment.task
        self.state.bind(assignment)
        task.status = TaskStatus.ASSIGNED
        task.assigned_to = assignment.worker.id

        logger.info(
            f"Assigned task {task.id} to {assignment.worker.id} "
            f"(score {assignment.score:.3f}, layer {assignment.layer})"
        )
        if self.events is not None:
            self.events.publish(TASK_ASSIGNED, assignment.to_dict())

    async def _dispatch(
        self,
        assignment: Assignment,
        result: AssignmentResult,
    ) -> Assignment | None:
        """
        Hand an assignment to the dispatcher.

        A dispatch failure is treated as a task failure: the failure manager
        moves the task to another worker and dispatch is retried until it
        succeeds or the task is permanently failed.
        """
        attempted: list[str] = []

        while assignment is not None:
            attempted.append(assignment.worker.id)
            try:
                await self.dispatcher(assignment)
                return assignment
            except Exception as e:
                reason = f"dispatch failed: {e}"
                logger.warning(f"Task {assignment.task.id} on {assignment.worker.id}: {reason}")

            if self.failure_manager is None:
                self.state.mark_permanently_failed(assignment.task.id)
                assignment.task.status = TaskStatus.FAILED
                result.unassigned.append(AssignmentError(assignment.task.id, reason, attempted))
                return None

            task_id = assignment.task.id
            assignment = await self.failure_manager.handle_task_failure(task_id, reason)
            if assignment is None:
                result.unassigned.append(AssignmentError(task_id, reason, attempted))

        return None

    # =========================================================================
    # METRICS
    # =========================================================================

    def _compute_metrics(
        self,
        tasks: list[Task],
        result: AssignmentResult,
        group_count: int,
    ) -> AssignmentMetrics:
        assignments = result.assignments
        average_score = (
            sum(a.score for a in assignments) / len(assignments) if assignments else 0.0
        )

        per_worker = Counter(a.worker.id for a in assignments)
        average_duration = (
            sum(a.task.estimated_duration for a in assignments) / len(assignments)
            if assignments
            else 0.0
        )

        return AssignmentMetrics(
            total_tasks=len(tasks),
            assigned=len(assignments),
            layer_count=len(result.layers),
            parallel_group_count=group_count,
            average_score=average_score,
            estimated_completion=max(per_worker.values(), default=0) * average_duration,
        )
