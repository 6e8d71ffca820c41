"""
Capability scoring engine.

Strategy pattern for choosing the worker a task should be bound to.
Every strategy receives the candidate workers in input order together with
their current workloads and returns an Assignment, or None when no
candidate is eligible. Ties always go to the earliest candidate.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from loguru import logger

from conductor.core.config import Settings, StrategyName, get_settings
from conductor.core.interfaces import CapabilityMatcher
from conductor.decomposition.models import (
    Assignment,
    AssignmentCriteria,
    Task,
    TaskPriority,
    Worker,
)

NEUTRAL = 0.5

CAPABILITY_WEIGHT = 0.4
WORKLOAD_WEIGHT = 0.2
SPECIALIZATION_WEIGHT = 0.3
PERFORMANCE_WEIGHT = 0.1


class ScoringStrategy(ABC):
    """Base class for worker selection strategies."""

    name: str = ""

    @abstractmethod
    def select(
        self,
        task: Task,
        workers: list[Worker],
        workloads: Mapping[str, int],
    ) -> Assignment | None:
        """
        Pick a worker for the task.

        Args:
            task: Task to assign
            workers: Candidate workers, in priority order
            workloads: Worker id -> current live task count

        Returns:
            Assignment for the chosen worker, or None
        """
        pass


class FastStrategy(ScoringStrategy):
    """First candidate below a fixed workload cap, constant score."""

    name = "fast"
    SCORE = 0.5

    def __init__(self, workload_cap: int = 10):
        self.workload_cap = workload_cap

    def select(
        self,
        task: Task,
        workers: list[Worker],
        workloads: Mapping[str, int],
    ) -> Assignment | None:
        for worker in workers:
            if workloads.get(worker.id, 0) < self.workload_cap:
                return Assignment(task=task, worker=worker, score=self.SCORE)
        return None


class BalancedStrategy(ScoringStrategy):
    """Least-loaded candidate below the per-worker cap."""

    name = "balanced"
    SCORE = 0.7

    def __init__(self, max_concurrent: int = 10):
        self.max_concurrent = max_concurrent

    def select(
        self,
        task: Task,
        workers: list[Worker],
        workloads: Mapping[str, int],
    ) -> Assignment | None:
        best: Worker | None = None
        best_load = 0

        for worker in workers:
            load = workloads.get(worker.id, 0)
            if load >= self.max_concurrent:
                continue
            if best is None or load < best_load:
                best, best_load = worker, load

        if best is None:
            return None

        return Assignment(
            task=task,
            worker=best,
            score=self.SCORE,
            criteria=AssignmentCriteria(workload_balance=1.0),
        )


class OptimalStrategy(ScoringStrategy):
    """
    Weighted multi-factor score.

    score = 0.4 * capability + 0.2 * workload_balance
            + 0.3 * specialization_match + 0.1 * historical_performance
            + priority bonus (high-priority tasks only)

    ``historical_performance`` is a configured constant until a performance
    tracking feed is available.
    """

    name = "optimal"

    def __init__(
        self,
        matcher: CapabilityMatcher | None = None,
        max_concurrent: int = 10,
        priority_weight: float = 0.3,
        historical_performance: float = 0.7,
    ):
        self.matcher = matcher
        self.max_concurrent = max_concurrent
        self.priority_weight = priority_weight
        self.historical_performance = historical_performance

    def select(
        self,
        task: Task,
        workers: list[Worker],
        workloads: Mapping[str, int],
    ) -> Assignment | None:
        eligible = [w for w in workers if workloads.get(w.id, 0) < self.max_concurrent]
        if not eligible:
            return None

        capability_scores = self._capability_scores(eligible, task)
        bonus = self.priority_weight if task.priority == TaskPriority.HIGH else 0.0

        best: Assignment | None = None
        for worker in eligible:
            criteria = AssignmentCriteria(
                capability_score=capability_scores.get(worker.id, NEUTRAL),
                workload_balance=self.workload_balance(workloads.get(worker.id, 0)),
                specialization_match=self.specialization_match(worker, task),
                historical_performance=self.historical_performance,
            )
            score = self.combine(criteria) + bonus

            if best is None or score > best.score:
                best = Assignment(task=task, worker=worker, score=score, criteria=criteria)

        return best

    @staticmethod
    def combine(criteria: AssignmentCriteria) -> float:
        """Weighted sum of the score components."""
        return (
            CAPABILITY_WEIGHT * criteria.capability_score
            + WORKLOAD_WEIGHT * criteria.workload_balance
            + SPECIALIZATION_WEIGHT * criteria.specialization_match
            + PERFORMANCE_WEIGHT * criteria.historical_performance
        )

    def workload_balance(self, workload: int) -> float:
        """1 - workload / max_concurrent."""
        return 1.0 - workload / self.max_concurrent

    @staticmethod
    def specialization_match(worker: Worker, task: Task) -> float:
        """Fraction of required capabilities the worker declares (0.5 if none required)."""
        if not task.required_capabilities:
            return NEUTRAL
        matched = sum(1 for c in task.required_capabilities if worker.has_capability(c))
        return matched / len(task.required_capabilities)

    def _capability_scores(self, workers: list[Worker], task: Task) -> dict[str, float]:
        """Matcher scores per worker; empty when no matcher is usable."""
        if self.matcher is None:
            return {}

        try:
            ranked = self.matcher.rank_workers(workers, task)
        except Exception as e:
            logger.warning(f"Capability matcher failed for task {task.id}: {e}")
            return {}

        scores = {worker_id: score for worker_id, score in ranked}
        # Workers the matcher did not rank have no matching capability
        return {w.id: scores.get(w.id, 0.0) for w in workers}


def create_strategy(
    name: StrategyName,
    settings: Settings | None = None,
    matcher: CapabilityMatcher | None = None,
) -> ScoringStrategy:
    """
    Build a strategy by name.

    Raises:
        ValueError: For an unknown strategy name.
    """
    settings = settings or get_settings()

    if name == "fast":
        return FastStrategy(workload_cap=settings.fast_workload_cap)
    if name == "balanced":
        return BalancedStrategy(max_concurrent=settings.max_concurrent_per_worker)
    if name == "optimal":
        return OptimalStrategy(
            matcher=matcher,
            max_concurrent=settings.max_concurrent_per_worker,
            priority_weight=settings.priority_weight,
            historical_performance=settings.historical_performance,
        )
    raise ValueError(f"Unknown scoring strategy: {name}")


class ScoringEngine:
    """
    Facade over the scoring strategies.

    Example:
        >>> engine = ScoringEngine(matcher=SynonymCapabilityMatcher())
        >>> assignment = engine.score(task, workers, state.workloads())
        >>> engine.score(task, workers, workloads, strategy="balanced")
    """

    def __init__(
        self,
        strategy: StrategyName | None = None,
        matcher: CapabilityMatcher | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.matcher = matcher
        self.default_strategy: StrategyName = strategy or self.settings.assignment_strategy
        self._strategies: dict[str, ScoringStrategy] = {}

    def strategy(self, name: StrategyName | None = None) -> ScoringStrategy:
        """Strategy instance for a name, defaulting to the configured one."""
        name = name or self.default_strategy
        if name not in self._strategies:
            self._strategies[name] = create_strategy(name, self.settings, self.matcher)
        return self._strategies[name]

    def score(
        self,
        task: Task,
        workers: list[Worker],
        workloads: Mapping[str, int],
        strategy: StrategyName | None = None,
    ) -> Assignment | None:
        """Select a worker for a task with the given (or default) strategy."""
        selected = self.strategy(strategy).select(task, workers, workloads)

        if selected is None:
            logger.debug(f"No eligible worker for task {task.id} among {len(workers)} candidates")
        else:
            logger.debug(
                f"Task {task.id} -> {selected.worker.id} (score {selected.score:.3f})"
            )
        return selected
