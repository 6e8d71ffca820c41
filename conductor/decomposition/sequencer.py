"""Task sequencer - creates validated tasks in dependency order."""

from typing import Any

from loguru import logger

from conductor.core.exceptions import DependencyError, TaskCreationError
from conductor.core.interfaces import TaskStore
from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.models import (
    AnalyzedTask,
    ProjectAnalysis,
    Task,
    TaskConfig,
    TaskCreationResult,
)

TITLE_LENGTH = 50


class SequencingResult:
    """Outcome of creating every task of one decomposition."""

    def __init__(
        self,
        results: list[TaskCreationResult] | None = None,
        tasks: list[Task] | None = None,
        id_map: dict[str, str] | None = None,
    ):
        self.results = results or []
        self.tasks = tasks or []
        self.id_map = id_map or {}

    @property
    def created_count(self) -> int:
        """Number of tasks the store accepted."""
        return sum(1 for r in self.results if r.success)

    @property
    def failures(self) -> list[TaskCreationResult]:
        """Creation failures in sequencing order."""
        return [r for r in self.results if not r.success]

    @property
    def all_created(self) -> bool:
        """Whether every task was created."""
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "created": self.created_count,
            "total": len(self.results),
            "id_map": dict(self.id_map),
            "failures": [r.model_dump() for r in self.failures],
        }


class TaskSequencer:
    """
    Create tasks in topological order, remapping ids as it goes.

    Each task's dependency list is translated from document ids to the ids
    assigned by the task store. Because tasks are created dependencies
    first, a dependency is always either mapped or known to have failed.
    A dependency that is neither means the ordering was violated, which is
    a fatal internal error.

    Example:
        >>> sequencer = TaskSequencer(InMemoryTaskStore())
        >>> result = await sequencer.create_tasks(analysis)
        >>> result.id_map
        {'schema': 'task-1', 'api': 'task-2'}
    """

    # Capabilities implied by each task type, merged with declared ones
    TYPE_CAPABILITIES: dict[str, list[str]] = {
        "frontend": ["React", "Vue", "CSS", "TypeScript", "UI/UX"],
        "backend": ["Node.js", "API", "Database", "TypeScript", "REST"],
        "database": ["SQL", "Schema Design", "Optimization", "Migrations"],
        "testing": ["Jest", "Testing", "E2E", "Unit Tests", "QA"],
        "devops": ["Docker", "CI/CD", "Kubernetes", "Infrastructure"],
        "security": ["Security", "Authentication", "Encryption", "Auditing"],
        "mobile": ["React Native", "iOS", "Android", "Mobile UI"],
    }
    DEFAULT_CAPABILITIES = ["General"]

    def __init__(self, task_store: TaskStore):
        """
        Initialize sequencer.

        Args:
            task_store: Store that persists created tasks.
        """
        self.task_store = task_store

    def order(self, analysis: ProjectAnalysis) -> list[AnalyzedTask]:
        """
        Topologically order the tasks of an analysis.

        Raises:
            DependencyError: If the tasks contain a cycle.
        """
        by_id = {t.id: t for t in analysis.tasks}
        graph = DependencyGraph(analysis.edges())
        return [by_id[task_id] for task_id in graph.topological_order()]

    async def create_tasks(self, analysis: ProjectAnalysis) -> SequencingResult:
        """
        Create every task, dependencies first.

        Store rejections are recorded as failed TaskCreationResults and do
        not stop the run. Dependents of a rejected task still attempt
        creation and fail with a message naming the missing dependency.

        Raises:
            DependencyError: If a dependency was never attempted before its
                dependent, or the tasks contain a cycle.
        """
        ordered = self.order(analysis)
        groups = self._parallel_groups(analysis)

        result = SequencingResult()
        failed: set[str] = set()

        logger.info(f"Sequencing {len(ordered)} tasks")

        for analyzed in ordered:
            try:
                dependencies = self._translate_dependencies(analyzed, result.id_map, failed)
                config = self._build_config(analyzed, analysis, groups, dependencies)
                task = await self.task_store.create_task(config)
            except DependencyError:
                raise
            except Exception as e:
                failed.add(analyzed.id)
                result.results.append(
                    TaskCreationResult(original_id=analyzed.id, success=False, error=str(e))
                )
                logger.warning(f"Failed to create task {analyzed.id}: {e}")
                continue

            result.id_map[analyzed.id] = task.id
            result.tasks.append(task)
            result.results.append(
                TaskCreationResult(original_id=analyzed.id, task_id=task.id, success=True)
            )
            logger.debug(f"Created task {task.id} from {analyzed.id}")

        logger.info(f"Tasks created: {result.created_count}/{len(ordered)}")
        return result

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _translate_dependencies(
        self,
        analyzed: AnalyzedTask,
        id_map: dict[str, str],
        failed: set[str],
    ) -> list[str]:
        """Map document dependency ids to persisted ids."""
        dependencies = []
        for dep_id in analyzed.depends_on:
            if dep_id in id_map:
                dependencies.append(id_map[dep_id])
            elif dep_id in failed:
                raise TaskCreationError(
                    f"Dependency '{dep_id}' of task '{analyzed.id}' failed to create"
                )
            else:
                raise DependencyError(
                    f"Dependency '{dep_id}' not found for task '{analyzed.id}' "
                    "(topological order violated)"
                )
        return dependencies

    def _build_config(
        self,
        analyzed: AnalyzedTask,
        analysis: ProjectAnalysis,
        groups: dict[str, str],
        dependencies: list[str],
    ) -> TaskConfig:
        capabilities = list(
            dict.fromkeys(
                [*analyzed.required_capabilities, *self.capabilities_for(analyzed.type)]
            )
        )
        return TaskConfig(
            title=analyzed.description[:TITLE_LENGTH],
            description=analyzed.description,
            type=analyzed.type,
            priority=analyzed.priority,
            estimated_duration=analyzed.estimated_minutes,
            required_capabilities=capabilities,
            dependencies=dependencies,
            parallel_group=groups.get(analyzed.id),
            tags=[analyzed.type, analysis.project_type.value],
        )

    def capabilities_for(self, task_type: str) -> list[str]:
        """Capabilities implied by a task type."""
        return list(self.TYPE_CAPABILITIES.get(task_type, self.DEFAULT_CAPABILITIES))

    @staticmethod
    def _parallel_groups(analysis: ProjectAnalysis) -> dict[str, str]:
        """Task id -> group id; the first group naming a task wins."""
        groups: dict[str, str] = {}
        for index, group in enumerate(analysis.parallelizable, start=1):
            for task_id in group:
                groups.setdefault(task_id, f"parallel-{index}")
        return groups
