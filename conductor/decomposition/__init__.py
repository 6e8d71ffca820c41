"""Task decomposition - validating requests and ordering their tasks.

This module provides the decomposition half of the pipeline:
- Validation (raw document -> validated project analysis)
- Sequencing (analysis -> persisted tasks, dependencies first)
- Layering (tasks -> dependency-depth layers and parallel groups)
"""

from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.layers import ExecutionLayerBuilder
from conductor.decomposition.models import (
    AnalyzedTask,
    Assignment,
    AssignmentCriteria,
    Complexity,
    ExecutionLayer,
    ParallelGroup,
    ProjectAnalysis,
    ProjectType,
    ReassignmentRecord,
    Task,
    TaskConfig,
    TaskCreationResult,
    TaskPriority,
    TaskStatus,
    Worker,
    WorkerStatus,
)
from conductor.decomposition.sequencer import SequencingResult, TaskSequencer
from conductor.decomposition.validator import (
    RequestValidator,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    # Models
    "AnalyzedTask",
    "Assignment",
    "AssignmentCriteria",
    "Complexity",
    "ExecutionLayer",
    "ParallelGroup",
    "ProjectAnalysis",
    "ProjectType",
    "ReassignmentRecord",
    "Task",
    "TaskConfig",
    "TaskCreationResult",
    "TaskPriority",
    "TaskStatus",
    "Worker",
    "WorkerStatus",
    # Graph
    "DependencyGraph",
    # Validation
    "RequestValidator",
    "ValidationIssue",
    "ValidationReport",
    # Sequencing
    "TaskSequencer",
    "SequencingResult",
    # Layering
    "ExecutionLayerBuilder",
]
