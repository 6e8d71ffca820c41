"""Execution monitor - per-task lifecycle driven by external signals.

The engine runs no work itself. Workers (or tests) report outcomes by
putting signals on the monitor's queue; the monitor is the only consumer
and processes them one at a time, so state transitions are deterministic
for a given signal order.

A timeout ends bookkeeping only. Work already dispatched to external
workers keeps running and must be cancelled by the caller if needed.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loguru import logger

from conductor.core.config import Settings, get_settings
from conductor.core.events import (
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_STARTED,
    EventBus,
)
from conductor.core.interfaces import TaskStore
from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.models import Task, TaskStatus, WorkerStatus
from conductor.scheduling.state import SchedulerState

if TYPE_CHECKING:
    from conductor.scheduling.orchestrator import AssignmentOrchestrator
    from conductor.scheduling.reassignment import FailureManager

# =============================================================================
# SIGNALS
# =============================================================================


@dataclass(frozen=True)
class TaskSucceeded:
    """A worker finished a task."""

    task_id: str


@dataclass(frozen=True)
class TaskFailed:
    """A worker reported a task failure."""

    task_id: str
    reason: str = "task failed"


@dataclass(frozen=True)
class WorkerStatusChanged:
    """The agent directory reported a new worker status."""

    worker_id: str
    status: WorkerStatus


Signal = TaskSucceeded | TaskFailed | WorkerStatusChanged


# =============================================================================
# SUMMARY
# =============================================================================


class ExecutionSummary:
    """Final (or, after a timeout, partial) state of a monitored run."""

    def __init__(
        self,
        completed: list[str],
        failed: list[str],
        running: list[str],
        pending: list[str],
        duration: float,
        sequential_estimate: float,
        timed_out: bool = False,
    ):
        self.completed = completed
        self.failed = failed
        self.running = running
        self.pending = pending
        self.duration = duration
        self.sequential_estimate = sequential_estimate
        self.timed_out = timed_out

    @property
    def speedup(self) -> float:
        """Sequential estimate divided by wall-clock duration."""
        if self.duration <= 0:
            return 1.0
        return self.sequential_estimate / self.duration

    @property
    def success(self) -> bool:
        """Whether every task completed."""
        return not (self.failed or self.running or self.pending or self.timed_out)

    @property
    def in_progress(self) -> list[str]:
        """Tasks that were not terminal when the run ended."""
        return [*self.running, *self.pending]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "completed": self.completed,
            "failed": self.failed,
            "running": self.running,
            "pending": self.pending,
            "duration_seconds": round(self.duration, 3),
            "sequential_estimate_seconds": self.sequential_estimate,
            "speedup": round(self.speedup, 2),
            "timed_out": self.timed_out,
        }


# =============================================================================
# MONITOR
# =============================================================================


class ExecutionMonitor:
    """
    Drive tasks through pending -> running -> completed | failed.

    A pending task starts running once every dependency has completed and
    it holds a live assignment. Tasks the orchestrator left unplaced stay
    pending; when an orchestrator is given they are offered to it again
    whenever their dependencies are met and a signal has been processed. A
    failed task is handed to the failure manager: if it is reassigned it
    goes back to pending for a fresh attempt, otherwise it stays failed and
    every pending task depending on it fails as well.

    Example:
        >>> monitor = ExecutionMonitor(tasks, state, failure_manager)
        >>> runner = asyncio.create_task(monitor.run())
        >>> monitor.submit(TaskSucceeded("task-1"))
        >>> summary = await runner
    """

    def __init__(
        self,
        tasks: list[Task],
        state: SchedulerState,
        failure_manager: "FailureManager | None" = None,
        events: EventBus | None = None,
        settings: Settings | None = None,
        timeout: float | None = None,
        task_store: TaskStore | None = None,
        queue: asyncio.Queue | None = None,
        orchestrator: "AssignmentOrchestrator | None" = None,
    ):
        self.tasks: dict[str, Task] = {t.id: t for t in tasks}
        self.state = state
        self.failure_manager = failure_manager
        self.events = events
        self.settings = settings or get_settings()
        self.timeout = timeout if timeout is not None else self.settings.monitor_timeout
        self.task_store = task_store
        self.queue: asyncio.Queue = queue if queue is not None else asyncio.Queue()
        self.orchestrator = orchestrator

        self.graph = DependencyGraph.from_tasks(tasks)
        self.status: dict[str, TaskStatus] = {}
        self._external_completed: set[str] = set()
        self._started = False

    def submit(self, signal: Signal) -> None:
        """Deliver a signal without waiting."""
        self.queue.put_nowait(signal)

    async def put(self, signal: Signal) -> None:
        """Deliver a signal."""
        await self.queue.put(signal)

    @property
    def is_finished(self) -> bool:
        """Whether every task is terminal."""
        return all(
            s in (TaskStatus.COMPLETED, TaskStatus.FAILED) for s in self.status.values()
        )

    async def run(self) -> ExecutionSummary:
        """
        Process signals until every task is terminal or the timeout elapses.

        Raises:
            RuntimeError: If the monitor was already run.
        """
        if self._started:
            raise RuntimeError("ExecutionMonitor.run() may only be called once")
        self._started = True

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.timeout
        timed_out = False

        await self._initialize()
        logger.info(f"Monitoring {len(self.tasks)} tasks (timeout {self.timeout}s)")

        while not self.is_finished:
            remaining = deadline - loop.time()
            if remaining <= 0:
                timed_out = True
                break

            try:
                signal = await asyncio.wait_for(self.queue.get(), timeout=remaining)
            except TimeoutError:
                timed_out = True
                break

            await self._handle(signal)
            await self._advance()

        if timed_out:
            logger.warning(
                f"Monitoring timed out after {self.timeout}s; dispatched work is not cancelled"
            )

        summary = self._summary(loop.time() - started, timed_out)
        logger.info(
            f"Monitoring finished: {len(summary.completed)} completed, "
            f"{len(summary.failed)} failed, speedup {summary.speedup:.2f}x"
        )
        return summary

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    async def _initialize(self) -> None:
        for task_id, task in self.tasks.items():
            if task_id in self.state.permanently_failed or task.status == TaskStatus.FAILED:
                self.status[task_id] = TaskStatus.FAILED
            elif task.status == TaskStatus.COMPLETED:
                self.status[task_id] = TaskStatus.COMPLETED
            else:
                self.status[task_id] = TaskStatus.PENDING

        await self._resolve_external_dependencies()

        for task_id, status in list(self.status.items()):
            if status == TaskStatus.FAILED:
                self._cascade(task_id)
        await self._advance()

    async def _resolve_external_dependencies(self) -> None:
        """Look up dependencies outside the monitored set in the task store."""
        if self.task_store is None:
            return

        external = {
            dep for task in self.tasks.values() for dep in task.dependencies
            if dep not in self.tasks
        }
        for dep_id in sorted(external):
            dep = await self.task_store.get_task(dep_id)
            if dep is not None and dep.status == TaskStatus.COMPLETED:
                self._external_completed.add(dep_id)

    def _dependencies_met(self, task: Task) -> bool:
        for dep_id in task.dependencies:
            if dep_id in self.status:
                if self.status[dep_id] != TaskStatus.COMPLETED:
                    return False
            elif self.task_store is not None and dep_id not in self._external_completed:
                return False
        return True

    async def _advance(self) -> None:
        """Start every ready pending task that holds a live assignment."""
        unplaced: list[Task] = []
        for task_id, task in self.tasks.items():
            if self.status[task_id] != TaskStatus.PENDING or not self._dependencies_met(task):
                continue
            if self.state.worker_of(task_id) is None:
                unplaced.append(task)
            else:
                self._start(task_id)

        if unplaced and self.orchestrator is not None:
            await self._place(unplaced)

    async def _place(self, tasks: list[Task]) -> None:
        """Offer ready but unplaced tasks to the orchestrator again."""
        logger.debug(f"Offering {len(tasks)} unplaced tasks for assignment")
        result = await self.orchestrator.assign(tasks)

        for assignment in result.assignments:
            self._start(assignment.task.id)
        for task in tasks:
            if task.id in self.state.permanently_failed:
                self._fail_task(task.id, result.reason_for(task.id) or "assignment failed")

    def _start(self, task_id: str) -> None:
        self._set(task_id, TaskStatus.RUNNING)
        self._emit(TASK_STARTED, {"task_id": task_id, "worker_id": self.state.worker_of(task_id)})

    async def _handle(self, signal: Signal) -> None:
        if isinstance(signal, TaskSucceeded):
            await self._on_success(signal)
        elif isinstance(signal, TaskFailed):
            await self._on_failure(signal)
        elif isinstance(signal, WorkerStatusChanged):
            await self._on_worker_status(signal)
        else:
            logger.warning(f"Ignoring unknown signal: {signal!r}")

    async def _on_success(self, signal: TaskSucceeded) -> None:
        task_id = signal.task_id
        if self.status.get(task_id) != TaskStatus.RUNNING:
            logger.warning(f"Ignoring completion of task {task_id} in state {self.status.get(task_id)}")
            return

        async with self.state.lock:
            worker_id = self.state.release(task_id)
        self._set(task_id, TaskStatus.COMPLETED)
        self._emit(TASK_COMPLETED, {"task_id": task_id, "worker_id": worker_id})
        logger.info(f"Task {task_id} completed")

    async def _on_failure(self, signal: TaskFailed) -> None:
        task_id = signal.task_id
        if self.status.get(task_id) != TaskStatus.RUNNING:
            logger.warning(f"Ignoring failure of task {task_id} in state {self.status.get(task_id)}")
            return

        self._set(task_id, TaskStatus.FAILED)
        self._emit(TASK_FAILED, {"task_id": task_id, "reason": signal.reason})

        reassigned = None
        if self.failure_manager is not None:
            reassigned = await self.failure_manager.handle_task_failure(task_id, signal.reason)

        if reassigned is not None:
            logger.info(f"Task {task_id} retrying on {reassigned.worker.id}")
            self._set(task_id, TaskStatus.PENDING)
        else:
            self.state.mark_permanently_failed(task_id)
            self._cascade(task_id)

    async def _on_worker_status(self, signal: WorkerStatusChanged) -> None:
        if signal.status.is_available:
            logger.debug(f"Worker {signal.worker_id} is {signal.status.value}")
            return

        if self.failure_manager is None:
            task_ids = self.state.mark_worker_failed(signal.worker_id)
            for task_id in task_ids:
                self._fail_task(task_id, f"worker {signal.worker_id} {signal.status.value}")
            return

        result = await self.failure_manager.handle_worker_failure(
            signal.worker_id, reason=f"worker {signal.status.value}"
        )
        for assignment in result.reassigned:
            if self.status.get(assignment.task.id) == TaskStatus.RUNNING:
                self._set(assignment.task.id, TaskStatus.PENDING)
        for task_id in result.failed_task_ids:
            self._fail_task(task_id, f"worker {signal.worker_id} {signal.status.value}")

    def _fail_task(self, task_id: str, reason: str) -> None:
        if task_id not in self.status or self.status[task_id] in (
            TaskStatus.COMPLETED,
            TaskStatus.FAILED,
        ):
            return
        self.state.mark_permanently_failed(task_id)
        self._set(task_id, TaskStatus.FAILED)
        self._emit(TASK_FAILED, {"task_id": task_id, "reason": reason})
        self._cascade(task_id)

    def _cascade(self, failed_id: str) -> None:
        """Fail every pending task that depends on a permanently failed task."""
        for dependent in self.graph.dependents_of(failed_id):
            if self.status.get(dependent) == TaskStatus.PENDING:
                logger.warning(f"Task {dependent} failed: dependency {failed_id} failed")
                self._fail_task(dependent, "dependency failed")

    def _set(self, task_id: str, status: TaskStatus) -> None:
        self.status[task_id] = status
        self.tasks[task_id].status = status

    def _emit(self, event: str, payload: dict[str, Any]) -> None:
        if self.events is not None:
            self.events.publish(event, payload)

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def _summary(self, duration: float, timed_out: bool) -> ExecutionSummary:
        def with_status(status: TaskStatus) -> list[str]:
            return [t for t, s in self.status.items() if s == status]

        return ExecutionSummary(
            completed=with_status(TaskStatus.COMPLETED),
            failed=with_status(TaskStatus.FAILED),
            running=with_status(TaskStatus.RUNNING),
            pending=with_status(TaskStatus.PENDING),
            duration=duration,
            sequential_estimate=sum(t.estimated_duration for t in self.tasks.values()) * 60,
            timed_out=timed_out,
        )
