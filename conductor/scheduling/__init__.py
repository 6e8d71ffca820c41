"""Scheduling - scoring, assignment, reassignment and execution monitoring."""

from conductor.scheduling.capability import SynonymCapabilityMatcher
from conductor.scheduling.monitor import (
    ExecutionMonitor,
    ExecutionSummary,
    TaskFailed,
    TaskSucceeded,
    WorkerStatusChanged,
)
from conductor.scheduling.orchestrator import (
    AssignmentMetrics,
    AssignmentOrchestrator,
    AssignmentResult,
)
from conductor.scheduling.reassignment import FailureManager, WorkerFailureResult
from conductor.scheduling.scoring import (
    BalancedStrategy,
    FastStrategy,
    OptimalStrategy,
    ScoringEngine,
    ScoringStrategy,
    create_strategy,
)
from conductor.scheduling.spawner import WorkerSpawner
from conductor.scheduling.state import SchedulerState

__all__ = [
    "AssignmentMetrics",
    "AssignmentOrchestrator",
    "AssignmentResult",
    "BalancedStrategy",
    "ExecutionMonitor",
    "ExecutionSummary",
    "FailureManager",
    "FastStrategy",
    "OptimalStrategy",
    "SchedulerState",
    "ScoringEngine",
    "ScoringStrategy",
    "SynonymCapabilityMatcher",
    "TaskFailed",
    "TaskSucceeded",
    "WorkerFailureResult",
    "WorkerSpawner",
    "WorkerStatusChanged",
    "create_strategy",
]
