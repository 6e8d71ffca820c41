"""Request validation for Conductor.

This module checks a raw decomposition document for structural and
referential correctness before any task is created. Problems are collected
rather than raised, so the caller always receives the full list.
"""

import asyncio
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from conductor.core.exceptions import (
    ConductorTimeoutError,
    DependencyError,
    ValidationError,
)
from conductor.core.interfaces import TemplateCatalog
from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.models import KNOWN_TASK_TYPES, ProjectAnalysis

# =============================================================================
# VALIDATION RESULTS
# =============================================================================

CATEGORY_VALIDATION = "validation"
CATEGORY_DEPENDENCY = "dependency"
CATEGORY_TIMEOUT = "timeout"


class ValidationIssue:
    """A single hard validation failure."""

    def __init__(
        self,
        code: str,
        message: str,
        task_id: str | None = None,
        category: str = CATEGORY_VALIDATION,
    ):
        self.code = code
        self.message = message
        self.task_id = task_id
        self.category = category

    def __repr__(self) -> str:
        return f"ValidationIssue({self.code!r}, {self.message!r})"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "code": self.code,
            "message": self.message,
            "task_id": self.task_id,
            "category": self.category,
        }


class ValidationReport:
    """Combined result of validating one decomposition request."""

    def __init__(self) -> None:
        self.errors: list[ValidationIssue] = []
        self.warnings: list[str] = []
        self.analysis: ProjectAnalysis | None = None
        self.completed_at = datetime.utcnow().isoformat()

    @property
    def is_valid(self) -> bool:
        """True when no hard errors were found."""
        return not self.errors

    @property
    def error_messages(self) -> list[str]:
        """Messages of all hard errors."""
        return [e.message for e in self.errors]

    def add_error(
        self,
        code: str,
        message: str,
        task_id: str | None = None,
        category: str = CATEGORY_VALIDATION,
    ) -> None:
        """Record a hard error."""
        self.errors.append(ValidationIssue(code, message, task_id, category))

    def add_warning(self, message: str) -> None:
        """Record a non-fatal warning."""
        self.warnings.append(message)

    def raise_for_errors(self) -> None:
        """
        Raise the exception matching the recorded errors.

        Raises:
            ConductorTimeoutError: If validation ran out of time.
            ValidationError: If any structural error was recorded.
            DependencyError: If only dependency errors were recorded.
        """
        if not self.errors:
            return

        summary = "; ".join(self.error_messages)
        categories = {e.category for e in self.errors}

        if CATEGORY_TIMEOUT in categories:
            raise ConductorTimeoutError(summary)
        if CATEGORY_VALIDATION in categories:
            raise ValidationError(summary, issues=list(self.errors))

        cycle = next(
            (
                e.message.split(": ", 1)[1].split(" -> ")
                for e in self.errors
                if e.code == "circular_dependency"
            ),
            None,
        )
        raise DependencyError(summary, issues=list(self.errors), cycle=cycle)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": self.warnings,
            "completed_at": self.completed_at,
        }


# =============================================================================
# REQUEST VALIDATOR
# =============================================================================


class RequestValidator:
    """
    Validate decomposition requests.

    Checks run in order:
    - Schema (required fields, enums, arrays, numeric fields)
    - Duplicate task ids
    - Dangling dependency references
    - Dependency cycles
    - Worker template references and parallel groups (warnings)

    When a worker-template catalog is reachable, an empty ``requiredAgents``
    list is an error. When the catalog is missing, failing or empty the
    validator degrades gracefully and records a warning instead.

    Example:
        >>> validator = RequestValidator()
        >>> report = await validator.validate(document)
        >>> if report.is_valid:
        ...     tasks = report.analysis.tasks
    """

    def __init__(self, template_catalog: TemplateCatalog | None = None):
        """
        Initialize validator.

        Args:
            template_catalog: Optional catalog of known worker templates.
        """
        self.template_catalog = template_catalog

    async def validate(self, document: Mapping[str, Any] | Any) -> ValidationReport:
        """
        Run every validation check.

        Args:
            document: Raw decomposition document. A wrapper object with a
                ``projectAnalysis`` key is unwrapped first.

        Returns:
            ValidationReport with errors, warnings and, when valid, the
            parsed ProjectAnalysis.
        """
        report = ValidationReport()

        if isinstance(document, Mapping) and isinstance(
            document.get("projectAnalysis"), Mapping
        ):
            document = document["projectAnalysis"]

        if not isinstance(document, Mapping):
            report.add_error("schema", "Decomposition document must be a JSON object")
            return report

        raw_tasks = document.get("tasks")

        analysis = self._check_schema(document, report)
        self._check_duplicate_ids(raw_tasks, report)

        if analysis is None or not report.is_valid:
            logger.warning(f"Validation failed with {len(report.errors)} errors")
            return report

        graph = DependencyGraph({t.id: t.depends_on for t in analysis.tasks})
        self._check_references(graph, report)
        self._check_cycles(graph, report)

        if not report.is_valid:
            logger.warning(f"Dependency validation failed with {len(report.errors)} errors")
            return report

        await self._check_required_agents(analysis, report)
        self._check_task_types(analysis, report)
        self._check_parallel_groups(analysis, graph, report)

        if report.is_valid:
            report.analysis = analysis

        logger.info(
            f"Validation complete: {len(report.errors)} errors, "
            f"{len(report.warnings)} warnings"
        )
        return report

    async def validate_with_timeout(
        self,
        document: Mapping[str, Any] | Any,
        timeout: float,
    ) -> ValidationReport:
        """
        Validate within a time budget.

        A budget overrun is reported as an error instead of raised.
        """
        try:
            return await asyncio.wait_for(self.validate(document), timeout=timeout)
        except TimeoutError:
            error = ConductorTimeoutError(f"Validation timed out after {timeout}s")
            logger.error(str(error))
            report = ValidationReport()
            report.add_error("timeout", str(error), category=CATEGORY_TIMEOUT)
            return report

    # =========================================================================
    # CHECKS
    # =========================================================================

    def _check_schema(
        self,
        document: Mapping[str, Any],
        report: ValidationReport,
    ) -> ProjectAnalysis | None:
        """Parse the document, translating pydantic errors into issues."""
        if document.get("complexity") in (None, ""):
            report.add_warning(
                'Missing optional field: complexity (defaulting to "moderate")'
            )
            document = {k: v for k, v in document.items() if k != "complexity"}

        try:
            return ProjectAnalysis.model_validate(dict(document))
        except PydanticValidationError as e:
            raw_tasks = document.get("tasks")
            for error in e.errors():
                loc = error["loc"]
                task_id = None
                if len(loc) >= 2 and loc[0] == "tasks" and isinstance(loc[1], int):
                    task_id = self._task_label(raw_tasks, loc[1])
                    field = ".".join(str(part) for part in loc[2:]) or "task"
                    message = f"Task '{task_id}': {field}: {error['msg']}"
                else:
                    field = ".".join(str(part) for part in loc) or "document"
                    message = f"{field}: {error['msg']}"
                report.add_error("schema", message, task_id=task_id)
            return None

    def _check_duplicate_ids(self, raw_tasks: Any, report: ValidationReport) -> None:
        """Report every id used by more than one task."""
        if not isinstance(raw_tasks, list):
            return

        seen: set[str] = set()
        reported: set[str] = set()
        for raw in raw_tasks:
            task_id = raw.get("id") if isinstance(raw, Mapping) else None
            if not isinstance(task_id, str) or not task_id:
                continue
            if task_id in seen and task_id not in reported:
                report.add_error("duplicate_id", f"Duplicate task id: {task_id}", task_id=task_id)
                reported.add(task_id)
            seen.add(task_id)

    def _check_references(self, graph: DependencyGraph, report: ValidationReport) -> None:
        """Report dependencies that name no task in the document."""
        for task_id, missing in graph.missing_dependencies().items():
            for dep_id in missing:
                report.add_error(
                    "missing_dependency",
                    f"Task {task_id} depends on non-existent task: {dep_id}",
                    task_id=task_id,
                    category=CATEGORY_DEPENDENCY,
                )

    def _check_cycles(self, graph: DependencyGraph, report: ValidationReport) -> None:
        """Report a dependency cycle if one exists."""
        cycle = graph.find_cycle()
        if cycle:
            report.add_error(
                "circular_dependency",
                f"Circular dependency detected: {' -> '.join(cycle)}",
                task_id=cycle[0],
                category=CATEGORY_DEPENDENCY,
            )

    async def _check_required_agents(
        self,
        analysis: ProjectAnalysis,
        report: ValidationReport,
    ) -> None:
        """Validate required worker types against the template catalog."""
        templates = await self._load_templates()

        if templates is None:
            report.add_warning(
                "Worker templates unavailable; skipping strict requiredAgents validation"
            )
            if not analysis.required_agents:
                report.add_warning("requiredAgents is empty")
            return

        if not analysis.required_agents:
            report.add_error("missing_required_agents", "requiredAgents cannot be empty")
            return

        known = {t.lower() for t in templates}
        for agent_type in analysis.required_agents:
            if agent_type.lower() not in known:
                report.add_warning(
                    f"Unknown worker template: {agent_type} (will use default worker)"
                )

    def _check_task_types(self, analysis: ProjectAnalysis, report: ValidationReport) -> None:
        """Warn about task types outside the known set."""
        for task in analysis.tasks:
            if task.type not in KNOWN_TASK_TYPES:
                report.add_warning(
                    f"Task '{task.id}': unknown type '{task.type}', expected one of: "
                    f"{', '.join(KNOWN_TASK_TYPES)}"
                )

    def _check_parallel_groups(
        self,
        analysis: ProjectAnalysis,
        graph: DependencyGraph,
        report: ValidationReport,
    ) -> None:
        """Warn about unknown or mutually dependent parallel group members."""
        for group in analysis.parallelizable:
            for task_id in group:
                if task_id not in graph:
                    report.add_warning(
                        f"Parallelizable group contains non-existent task: {task_id}"
                    )

            members = [t for t in group if t in graph]
            for i, first in enumerate(members):
                for second in members[i + 1:]:
                    if graph.has_path(second, first):
                        report.add_warning(
                            f"Parallel group contains dependent tasks: {first} -> {second}"
                        )
                    elif graph.has_path(first, second):
                        report.add_warning(
                            f"Parallel group contains dependent tasks: {second} -> {first}"
                        )

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    async def _load_templates(self) -> list[str] | None:
        """Template ids, or None when the catalog cannot be consulted."""
        if self.template_catalog is None:
            return None

        try:
            templates = await self.template_catalog.list_templates()
        except Exception as e:
            logger.warning(f"Worker template catalog unreachable: {e}")
            return None

        return list(templates) or None

    @staticmethod
    def _task_label(raw_tasks: Any, index: int) -> str:
        """Id of a raw task, or its 1-based position when it has none."""
        if isinstance(raw_tasks, list) and index < len(raw_tasks):
            raw = raw_tasks[index]
            if isinstance(raw, Mapping) and isinstance(raw.get("id"), str) and raw["id"]:
                return raw["id"]
        return f"#{index + 1}"
