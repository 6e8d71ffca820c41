"""Pydantic models for task decomposition and scheduling.

This module defines the data structures that flow through Conductor:
the incoming project-analysis document, the persisted tasks created from
it, the workers that execute them, and the assignment and reassignment
records produced while scheduling.
"""

import time
from enum import Enum
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

# =============================================================================
# ENUMS
# =============================================================================


class ProjectType(str, Enum):
    """Type of project being decomposed."""

    WEBAPP = "webapp"
    API = "api"
    CLI = "cli"
    LIBRARY = "library"
    FULLSTACK = "fullstack"
    MOBILE = "mobile"
    DESKTOP = "desktop"


class Complexity(str, Enum):
    """Overall project complexity."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class TaskPriority(str, Enum):
    """Task priority level."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    """Lifecycle status of a persisted task."""

    PENDING = "pending"
    ASSIGNED = "assigned"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkerStatus(str, Enum):
    """Status reported by the agent directory."""

    IDLE = "idle"
    WORKING = "working"
    OFFLINE = "offline"
    FAILED = "failed"

    @property
    def is_available(self) -> bool:
        """Whether a worker in this status may receive tasks."""
        return self in (WorkerStatus.IDLE, WorkerStatus.WORKING)


KNOWN_TASK_TYPES = (
    "frontend",
    "backend",
    "database",
    "testing",
    "devops",
    "security",
    "mobile",
)


# =============================================================================
# INPUT DOCUMENT
# =============================================================================


class AnalyzedTask(BaseModel):
    """A task as described by the incoming project analysis.

    Accepts the camelCase keys of the wire format (``estimatedMinutes``,
    ``dependsOn``, ``requiredCapabilities``) as well as snake_case names.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(..., min_length=1, strict=True)
    description: str = Field(..., min_length=1, strict=True)
    type: str = Field(..., min_length=1, strict=True)
    estimated_minutes: float = Field(..., ge=0, strict=True)
    depends_on: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dependsOn", "dependencies", "depends_on"),
    )
    priority: TaskPriority = TaskPriority.MEDIUM
    required_capabilities: list[str] = Field(default_factory=list)

    @field_validator("depends_on", "required_capabilities", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Treat an explicit null as an empty list."""
        return [] if v is None else v

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, v: Any) -> Any:
        """Treat an explicit null priority as medium."""
        return TaskPriority.MEDIUM if v is None else v


class ProjectAnalysis(BaseModel):
    """Structured decomposition request produced by the response parser.

    Example:
        >>> analysis = ProjectAnalysis.model_validate({
        ...     "projectType": "api",
        ...     "complexity": "simple",
        ...     "estimatedDuration": 4,
        ...     "tasks": [{"id": "t1", "description": "Schema", "type": "database",
        ...                "estimatedMinutes": 30}],
        ...     "requiredAgents": ["backend-specialist"],
        ... })
        >>> analysis.tasks[0].estimated_minutes
        30.0
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    project_type: ProjectType
    complexity: Complexity = Complexity.MODERATE
    estimated_duration: float = Field(default=0.0, ge=0, strict=True)
    tasks: list[AnalyzedTask]
    required_agents: list[str] = Field(default_factory=list)
    parallelizable: list[list[str]] = Field(default_factory=list)

    @field_validator("required_agents", "parallelizable", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        """Treat an explicit null as an empty list."""
        return [] if v is None else v

    def task_ids(self) -> list[str]:
        """Task ids in document order."""
        return [t.id for t in self.tasks]

    def edges(self) -> dict[str, list[str]]:
        """Task id -> dependency ids, as written in the document."""
        return {t.id: list(t.depends_on) for t in self.tasks}


# =============================================================================
# PERSISTED TASKS AND WORKERS
# =============================================================================


class TaskConfig(BaseModel):
    """Configuration handed to the task store to create a task."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    type: str
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_duration: float = 0.0
    required_capabilities: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    parallel_group: str | None = None
    can_run_in_parallel: bool | None = None
    tags: list[str] = Field(default_factory=list)


class Task(BaseModel):
    """A persisted unit of work.

    Tasks are never deleted; they end in ``completed`` or ``failed``.
    """

    model_config = ConfigDict(frozen=False)

    id: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    type: str = "general"
    dependencies: list[str] = Field(
        default_factory=list,
        description="Persisted ids of tasks this task depends on",
    )
    required_capabilities: list[str] = Field(default_factory=list)
    priority: TaskPriority = TaskPriority.MEDIUM
    estimated_duration: float = Field(
        default=30.0,
        ge=0,
        description="Estimated duration in minutes",
    )
    parallel_group: str | None = None
    can_run_in_parallel: bool | None = None
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str | None = None
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_config(cls, task_id: str, config: TaskConfig) -> "Task":
        """Build a task from a creation config."""
        return cls(id=task_id, **config.model_dump())


class Worker(BaseModel):
    """An external executor known to the agent directory."""

    model_config = ConfigDict(frozen=False)

    id: str = Field(..., min_length=1)
    name: str = ""
    type: str = "general"
    capabilities: list[str] = Field(default_factory=list)
    status: WorkerStatus = WorkerStatus.IDLE
    specializations: list[str] = Field(
        default_factory=list,
        description="Specialization tags declared by the worker template",
    )
    template_id: str | None = None

    @property
    def is_available(self) -> bool:
        """Whether the directory reports this worker as able to take work."""
        return self.status.is_available

    def has_capability(self, capability: str) -> bool:
        """Case-insensitive membership test on declared capabilities."""
        wanted = capability.lower()
        return any(c.lower() == wanted for c in self.capabilities)

    def type_labels(self) -> set[str]:
        """Lower-cased type, template id and specialization labels."""
        labels = {self.type.lower(), *(s.lower() for s in self.specializations)}
        if self.template_id:
            labels.add(self.template_id.lower())
        return labels


# =============================================================================
# ASSIGNMENT RECORDS
# =============================================================================


class AssignmentCriteria(BaseModel):
    """Per-component breakdown of an assignment score."""

    model_config = ConfigDict(frozen=True)

    capability_score: float = 0.5
    workload_balance: float = 0.5
    specialization_match: float = 0.5
    historical_performance: float = 0.5


class Assignment(BaseModel):
    """Binding of one task to one worker."""

    model_config = ConfigDict(frozen=True)

    task: Task
    worker: Worker
    score: float
    criteria: AssignmentCriteria = Field(default_factory=AssignmentCriteria)
    layer: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "task_id": self.task.id,
            "worker_id": self.worker.id,
            "score": round(self.score, 4),
            "criteria": self.criteria.model_dump(),
            "layer": self.layer,
        }


class ReassignmentRecord(BaseModel):
    """Audit entry for a task moved from one worker to another."""

    model_config = ConfigDict(frozen=True)

    task_id: str
    original_worker_id: str
    new_worker_id: str
    reason: str
    timestamp: float = Field(default_factory=time.time)
    attempt_number: int = Field(..., ge=1)


# =============================================================================
# LAYERS AND GROUPS
# =============================================================================


class ParallelGroup(BaseModel):
    """Subset of a layer intended for concurrent dispatch."""

    model_config = ConfigDict(frozen=False)

    group_id: str
    tasks: list[Task] = Field(default_factory=list)
    solo: bool = False

    @property
    def task_ids(self) -> list[str]:
        """Ids of the tasks in this group."""
        return [t.id for t in self.tasks]


class ExecutionLayer(BaseModel):
    """Tasks sharing one dependency depth."""

    model_config = ConfigDict(frozen=False)

    index: int = Field(..., ge=0)
    tasks: list[Task] = Field(default_factory=list)

    @property
    def task_ids(self) -> list[str]:
        """Ids of the tasks in this layer."""
        return [t.id for t in self.tasks]

    def __len__(self) -> int:
        return len(self.tasks)


# =============================================================================
# CREATION AND SPAWN RESULTS
# =============================================================================


class TaskCreationResult(BaseModel):
    """Outcome of creating one task in the task store."""

    model_config = ConfigDict(frozen=True)

    original_id: str
    task_id: str | None = None
    success: bool
    error: str | None = None


class SpawnResult(BaseModel):
    """Outcome of spawning the worker types a decomposition requires."""

    model_config = ConfigDict(frozen=False)

    spawned: list[str] = Field(default_factory=list)
    existing: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    workers: list[Worker] = Field(default_factory=list)
