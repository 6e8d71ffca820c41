"""Unit tests for the scoring engine and capability matcher."""

import pytest

from conductor.decomposition.models import TaskPriority
from conductor.scheduling.capability import SynonymCapabilityMatcher
from conductor.scheduling.scoring import (
    BalancedStrategy,
    FastStrategy,
    OptimalStrategy,
    ScoringEngine,
    create_strategy,
)


class FixedMatcher:
    """Capability matcher returning preset scores."""

    def __init__(self, scores: dict[str, float]) -> None:
        self.scores = scores

    def rank_workers(self, workers, task):
        return sorted(
            ((w.id, self.scores.get(w.id, 0.0)) for w in workers),
            key=lambda pair: pair[1],
            reverse=True,
        )


class BrokenMatcher:
    """Capability matcher that always fails."""

    def rank_workers(self, workers, task):
        raise RuntimeError("matcher offline")


# =============================================================================
# FAST
# =============================================================================


class TestFastStrategy:
    """Tests for the fast strategy."""

    def test_first_below_cap(self, make_task, make_worker) -> None:
        """Test that the first worker under the cap wins."""
        workers = [make_worker("w1"), make_worker("w2")]

        assignment = FastStrategy(workload_cap=3).select(make_task("t"), workers, {"w1": 3})

        assert assignment.worker.id == "w2"
        assert assignment.score == 0.5

    def test_none_when_all_full(self, make_task, make_worker) -> None:
        """Test that no assignment is made when every worker is full."""
        workers = [make_worker("w1")]

        assert FastStrategy(workload_cap=1).select(make_task("t"), workers, {"w1": 1}) is None


# =============================================================================
# BALANCED
# =============================================================================


class TestBalancedStrategy:
    """Tests for the balanced strategy."""

    def test_least_loaded(self, make_task, make_worker) -> None:
        """Test that the least loaded worker wins."""
        workers = [make_worker("w1"), make_worker("w2"), make_worker("w3")]

        assignment = BalancedStrategy().select(make_task("t"), workers, {"w1": 2, "w2": 1, "w3": 1})

        assert assignment.worker.id == "w2"
        assert assignment.score == 0.7
        assert assignment.criteria.workload_balance == 1.0
        assert assignment.criteria.capability_score == 0.5

    def test_full_workers_excluded(self, make_task, make_worker) -> None:
        """Test that workers at the per-worker cap are skipped."""
        workers = [make_worker("w1"), make_worker("w2")]

        strategy = BalancedStrategy(max_concurrent=2)

        assert strategy.select(make_task("t"), workers, {"w1": 2, "w2": 2}) is None


# =============================================================================
# OPTIMAL
# =============================================================================


class TestOptimalStrategy:
    """Tests for the optimal strategy."""

    def test_full_match_idle_beats_partial_match_busy(self, make_task, make_worker) -> None:
        """Test that a fully matching idle worker outscores a partial busy one."""
        task = make_task("t", required_capabilities=["Python", "SQL", "Docker"])
        expert = make_worker("expert", ["Python", "SQL", "Docker"])
        generalist = make_worker("generalist", ["Python"])

        strategy = OptimalStrategy(max_concurrent=10)
        best = strategy.select(task, [generalist, expert], {"generalist": 8, "expert": 0})

        assert best.worker.id == "expert"
        assert best.criteria.specialization_match == 1.0
        assert best.criteria.workload_balance == 1.0

    def test_composite_score(self, make_task, make_worker) -> None:
        """Test the weighted sum without a capability matcher."""
        task = make_task("t", required_capabilities=["Go"])

        assignment = OptimalStrategy().select(task, [make_worker("w", ["go"])], {})

        # 0.4 * 0.5 + 0.2 * 1.0 + 0.3 * 1.0 + 0.1 * 0.7
        assert assignment.score == pytest.approx(0.77)
        assert assignment.criteria.capability_score == 0.5

    def test_workload_balance(self, make_task, make_worker) -> None:
        """Test workload balance is 1 - load / max."""
        assignment = OptimalStrategy(max_concurrent=4).select(
            make_task("t"), [make_worker("w")], {"w": 1}
        )

        assert assignment.criteria.workload_balance == pytest.approx(0.75)
        assert assignment.criteria.specialization_match == 0.5

    def test_high_priority_bonus(self, make_task, make_worker) -> None:
        """Test that high priority tasks receive the bonus."""
        strategy = OptimalStrategy(priority_weight=0.3)
        workers = [make_worker("w")]

        normal = strategy.select(make_task("n"), workers, {})
        urgent = strategy.select(make_task("u", priority=TaskPriority.HIGH), workers, {})

        assert urgent.score - normal.score == pytest.approx(0.3)

    def test_ties_go_to_input_order(self, make_task, make_worker) -> None:
        """Test that equal scores pick the earliest candidate."""
        workers = [make_worker("first"), make_worker("second")]

        assert OptimalStrategy().select(make_task("t"), workers, {}).worker.id == "first"
        assert OptimalStrategy().select(make_task("t"), workers[::-1], {}).worker.id == "second"

    def test_full_workers_excluded(self, make_task, make_worker) -> None:
        """Test that workers at the per-worker cap are never chosen."""
        workers = [make_worker("busy", ["Go"]), make_worker("idle")]
        task = make_task("t", required_capabilities=["Go"])

        assignment = OptimalStrategy(max_concurrent=2).select(task, workers, {"busy": 2})

        assert assignment.worker.id == "idle"

    def test_none_when_no_candidates(self, make_task) -> None:
        """Test that an empty pool yields None."""
        assert OptimalStrategy().select(make_task("t"), [], {}) is None

    def test_matcher_scores_used(self, make_task, make_worker) -> None:
        """Test that capability scores come from the matcher."""
        strategy = OptimalStrategy(matcher=FixedMatcher({"a": 0.1, "b": 0.9}))

        assignment = strategy.select(make_task("t"), [make_worker("a"), make_worker("b")], {})

        assert assignment.worker.id == "b"
        assert assignment.criteria.capability_score == 0.9

    def test_broken_matcher_falls_back(self, make_task, make_worker) -> None:
        """Test that a failing matcher is treated as unavailable."""
        strategy = OptimalStrategy(matcher=BrokenMatcher())

        assignment = strategy.select(make_task("t"), [make_worker("a")], {})

        assert assignment.criteria.capability_score == 0.5


# =============================================================================
# ENGINE
# =============================================================================


class TestScoringEngine:
    """Tests for strategy selection."""

    def test_create_strategy(self, settings) -> None:
        """Test building strategies by name."""
        assert isinstance(create_strategy("fast", settings), FastStrategy)
        assert isinstance(create_strategy("balanced", settings), BalancedStrategy)
        assert isinstance(create_strategy("optimal", settings), OptimalStrategy)

    def test_unknown_strategy(self, settings) -> None:
        """Test that unknown names are rejected."""
        with pytest.raises(ValueError):
            create_strategy("random", settings)

    def test_default_from_settings(self, make_settings, make_task, make_worker) -> None:
        """Test that the configured strategy is the default."""
        engine = ScoringEngine(settings=make_settings(assignment_strategy="balanced"))

        assignment = engine.score(make_task("t"), [make_worker("w")], {})

        assert assignment.score == 0.7

    def test_strategy_override(self, settings, make_task, make_worker) -> None:
        """Test that a strategy can be chosen per call."""
        engine = ScoringEngine(settings=settings)

        assignment = engine.score(make_task("t"), [make_worker("w")], {}, strategy="fast")

        assert assignment.score == 0.5
        assert engine.strategy("fast") is engine.strategy("fast")


# =============================================================================
# CAPABILITY MATCHER
# =============================================================================


class TestSynonymCapabilityMatcher:
    """Tests for the default capability matcher."""

    def test_synonyms_match(self, make_task, make_worker) -> None:
        """Test that synonyms satisfy a requirement in both directions."""
        matcher = SynonymCapabilityMatcher()
        task = make_task("t", required_capabilities=["React"])

        assert matcher.capability_match(make_worker("w", ["frontend"]), task) == 1.0
        assert matcher.capability_match(make_worker("w", ["SQL"]), task) == 0.0

    def test_case_insensitive(self, make_task, make_worker) -> None:
        """Test that matching ignores case."""
        matcher = SynonymCapabilityMatcher()
        task = make_task("t", required_capabilities=["DOCKER", "kubernetes"])

        assert matcher.capability_match(make_worker("w", ["docker", "Kubernetes"]), task) == 1.0

    def test_no_requirements(self, make_task, make_worker) -> None:
        """Test that a task without requirements matches fully."""
        assert SynonymCapabilityMatcher().capability_match(make_worker("w"), make_task("t")) == 1.0

    def test_rank_workers(self, make_task, make_worker) -> None:
        """Test ranking best first."""
        matcher = SynonymCapabilityMatcher()
        task = make_task("t", type="frontend", required_capabilities=["React"])
        dba = make_worker("dba", ["SQL"], type="database")
        react_dev = make_worker("react-dev", ["react"], type="frontend")

        ranked = matcher.rank_workers([dba, react_dev], task)

        assert [worker_id for worker_id, _ in ranked] == ["react-dev", "dba"]
        assert ranked[0][1] == pytest.approx(1.0)
        assert ranked[1][1] == 0.0

    def test_scores_bounded(self, make_task, make_worker) -> None:
        """Test that scores stay within [0, 1]."""
        matcher = SynonymCapabilityMatcher()
        task = make_task("t", type="mystery", required_capabilities=["A", "B"])

        score = matcher.score(make_worker("w", ["a"], type="wizard"), task)

        assert 0.0 <= score <= 1.0
        assert score == pytest.approx(0.7 * 0.5 + 0.3 * 0.5)
