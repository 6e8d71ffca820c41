"""Default capability matcher based on capability synonym groups."""

from collections import defaultdict

from loguru import logger

from conductor.decomposition.models import Task, Worker

# Every capability in a group matches every other capability in that group.
CAPABILITY_GROUPS: list[list[str]] = [
    ["react", "frontend", "javascript", "typescript", "ui/ux"],
    ["typescript", "javascript", "frontend", "react", "node.js"],
    ["javascript", "frontend", "backend", "node.js", "react"],
    ["node.js", "backend", "javascript", "api", "apis", "server"],
    ["python", "backend", "ai", "ml", "data science"],
    ["database", "postgresql", "mongodb", "redis", "sql"],
    ["api", "apis", "rest", "graphql", "backend", "node.js"],
    ["testing", "qa", "e2e", "unit tests", "unit testing", "automation"],
    ["devops", "docker", "kubernetes", "ci/cd", "cloud", "infrastructure"],
    ["mobile", "react native", "ios", "android", "mobile ui"],
]

# Worker type -> task types it can serve
TYPE_COMPATIBILITY: dict[str, list[str]] = {
    "frontend": ["frontend", "fullstack"],
    "backend": ["backend", "fullstack"],
    "fullstack": ["frontend", "backend", "fullstack"],
    "mobile": ["mobile", "frontend"],
    "devops": ["devops", "backend"],
    "testing": ["testing", "frontend", "backend"],
    "ai": ["ai", "backend"],
    "database": ["database", "backend"],
}

CAPABILITY_WEIGHT = 0.7
TYPE_WEIGHT = 0.3


class SynonymCapabilityMatcher:
    """
    Rank workers by capability overlap with a task.

    A required capability is satisfied by the same capability (case
    insensitive) or by any synonym from a shared group. A worker's score
    combines the satisfied fraction of required capabilities with a
    type-compatibility term, and always lies in [0, 1].

    Example:
        >>> matcher = SynonymCapabilityMatcher()
        >>> matcher.rank_workers([react_dev, dba], frontend_task)
        [('react-dev', 1.0), ('dba', 0.0)]
    """

    def __init__(
        self,
        groups: list[list[str]] | None = None,
        type_compatibility: dict[str, list[str]] | None = None,
    ) -> None:
        self.type_compatibility = type_compatibility or TYPE_COMPATIBILITY
        self._synonyms: dict[str, set[str]] = defaultdict(set)
        for group in groups or CAPABILITY_GROUPS:
            normalized = {c.lower() for c in group}
            for capability in normalized:
                self._synonyms[capability] |= normalized

    def synonyms_of(self, capability: str) -> set[str]:
        """The capability itself plus all of its synonyms, lower-cased."""
        normalized = capability.lower()
        return {normalized} | self._synonyms.get(normalized, set())

    def capability_match(self, worker: Worker, task: Task) -> float:
        """Fraction of the task's required capabilities the worker covers."""
        if not task.required_capabilities:
            return 1.0

        offered = {c.lower() for c in worker.capabilities}
        matched = sum(
            1 for required in task.required_capabilities
            if offered & self.synonyms_of(required)
        )
        return matched / len(task.required_capabilities)

    def type_match(self, worker: Worker, task: Task) -> float:
        """1.0 when the worker type serves the task type, 0.0 when it does not.

        Unknown worker types are neutral (0.5).
        """
        compatible = self.type_compatibility.get(worker.type.lower())
        if compatible is None:
            return 0.5
        return 1.0 if task.type.lower() in compatible else 0.0

    def score(self, worker: Worker, task: Task) -> float:
        """Combined capability and type score."""
        value = (
            CAPABILITY_WEIGHT * self.capability_match(worker, task)
            + TYPE_WEIGHT * self.type_match(worker, task)
        )
        return max(0.0, min(1.0, value))

    def rank_workers(self, workers: list[Worker], task: Task) -> list[tuple[str, float]]:
        """Return ``(worker_id, score)`` pairs, best first, ties in input order."""
        ranked = sorted(
            ((w.id, self.score(w, task)) for w in workers),
            key=lambda pair: pair[1],
            reverse=True,
        )
        logger.debug(f"Ranked {len(ranked)} workers for task {task.id}")
        return ranked
