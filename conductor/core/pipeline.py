"""
Conductor - the scheduling pipeline facade.

Wires the validator, sequencer, layer builder, scoring engine, assignment
orchestrator, failure manager and execution monitor around one shared
scheduler state.
"""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from conductor.core.config import Settings, get_settings
from conductor.core.events import EventBus
from conductor.core.interfaces import (
    AgentDirectory,
    CapabilityMatcher,
    TaskStore,
    TemplateCatalog,
)
from conductor.decomposition.layers import ExecutionLayerBuilder
from conductor.decomposition.models import ProjectAnalysis, SpawnResult, Task
from conductor.decomposition.sequencer import SequencingResult, TaskSequencer
from conductor.decomposition.validator import RequestValidator, ValidationReport
from conductor.scheduling.capability import SynonymCapabilityMatcher
from conductor.scheduling.monitor import ExecutionMonitor
from conductor.scheduling.orchestrator import (
    AssignmentOrchestrator,
    AssignmentResult,
    Dispatcher,
)
from conductor.scheduling.reassignment import FailureManager
from conductor.scheduling.scoring import ScoringEngine
from conductor.scheduling.spawner import WorkerSpawner
from conductor.scheduling.state import SchedulerState


class DecompositionResult:
    """Validation report plus the tasks created from a request."""

    def __init__(
        self,
        report: ValidationReport,
        sequencing: SequencingResult | None = None,
    ):
        self.report = report
        self.sequencing = sequencing or SequencingResult()

    @property
    def analysis(self) -> ProjectAnalysis | None:
        """Parsed request, when valid."""
        return self.report.analysis

    @property
    def tasks(self) -> list[Task]:
        """Created tasks in sequencing order."""
        return self.sequencing.tasks

    @property
    def warnings(self) -> list[str]:
        """Validation warnings."""
        return self.report.warnings

    @property
    def success(self) -> bool:
        """Whether the request was valid and every task was created."""
        return self.report.is_valid and self.sequencing.all_created

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "validation": self.report.to_dict(),
            "sequencing": self.sequencing.to_dict(),
        }


class PlanResult:
    """Everything produced by one planning run."""

    def __init__(
        self,
        decomposition: DecompositionResult,
        spawn: SpawnResult | None = None,
        assignment: AssignmentResult | None = None,
    ):
        self.decomposition = decomposition
        self.spawn = spawn
        self.assignment = assignment

    @property
    def tasks(self) -> list[Task]:
        """Created tasks."""
        return self.decomposition.tasks

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "decomposition": self.decomposition.to_dict(),
            "spawn": self.spawn.model_dump(exclude={"workers"}) if self.spawn else None,
            "assignment": self.assignment.to_dict() if self.assignment else None,
        }


class Conductor:
    """
    Task decomposition and capability-aware scheduling.

    Example:
        >>> conductor = Conductor(InMemoryTaskStore(), InMemoryAgentDirectory(workers))
        >>> plan = await conductor.plan(document)
        >>> monitor = conductor.monitor(plan)
        >>> runner = asyncio.create_task(monitor.run())
    """

    def __init__(
        self,
        task_store: TaskStore,
        directory: AgentDirectory,
        template_catalog: TemplateCatalog | None = None,
        matcher: CapabilityMatcher | None = None,
        events: EventBus | None = None,
        settings: Settings | None = None,
        dispatcher: Dispatcher | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            task_store: Persists created tasks.
            directory: Lists and spawns workers.
            template_catalog: Optional worker template catalog for validation.
            matcher: Capability matcher; SynonymCapabilityMatcher by default.
            events: Event bus receiving assignment and spawn events.
            settings: Engine settings; loaded from the environment by default.
            dispatcher: Optional callback handing assignments to workers.
        """
        self.settings = settings or get_settings()
        self.task_store = task_store
        self.directory = directory
        self.events = events or EventBus()
        self.state = SchedulerState()

        self.validator = RequestValidator(template_catalog)
        self.sequencer = TaskSequencer(task_store)
        self.layer_builder = ExecutionLayerBuilder()
        self.scoring = ScoringEngine(
            matcher=matcher if matcher is not None else SynonymCapabilityMatcher(),
            settings=self.settings,
        )
        self.failure_manager = FailureManager(
            self.state, self.scoring, directory, events=self.events, settings=self.settings
        )
        self.orchestrator = AssignmentOrchestrator(
            self.state,
            self.scoring,
            directory,
            failure_manager=self.failure_manager,
            events=self.events,
            settings=self.settings,
            dispatcher=dispatcher,
            layer_builder=self.layer_builder,
        )
        self.spawner = WorkerSpawner(directory, events=self.events)

        logger.info(
            f"Conductor initialized (strategy={self.settings.assignment_strategy}, "
            f"max_parallel={self.settings.max_parallel_tasks})"
        )

    async def decompose(self, document: Mapping[str, Any]) -> DecompositionResult:
        """
        Validate a request and create its tasks.

        An invalid request creates no tasks; the report carries every error.

        Raises:
            DependencyError: If sequencing finds the dependency order violated.
        """
        report = await self.validator.validate_with_timeout(
            document, self.settings.validation_timeout
        )
        for warning in report.warnings:
            logger.warning(warning)

        if not report.is_valid or report.analysis is None:
            logger.error(f"Decomposition rejected: {'; '.join(report.error_messages)}")
            return DecompositionResult(report)

        sequencing = await self.sequencer.create_tasks(report.analysis)
        return DecompositionResult(report, sequencing)

    async def plan(self, document: Mapping[str, Any]) -> PlanResult:
        """Decompose a request, spawn required workers and assign tasks."""
        decomposition = await self.decompose(document)
        if decomposition.analysis is None:
            return PlanResult(decomposition)

        spawn = None
        if self.settings.auto_spawn_workers:
            spawn = await self.spawner.spawn_required(decomposition.analysis.required_agents)

        assignment = await self.orchestrator.assign(decomposition.tasks)
        return PlanResult(decomposition, spawn, assignment)

    def monitor(
        self,
        plan: PlanResult | list[Task],
        timeout: float | None = None,
    ) -> ExecutionMonitor:
        """
        Build an execution monitor over the tasks of a plan.

        Tasks the plan left unassigned are offered to the orchestrator again
        as running tasks finish.
        """
        tasks = plan.tasks if isinstance(plan, PlanResult) else list(plan)
        return ExecutionMonitor(
            tasks,
            self.state,
            failure_manager=self.failure_manager,
            events=self.events,
            settings=self.settings,
            timeout=timeout,
            task_store=self.task_store,
            orchestrator=self.orchestrator,
        )
