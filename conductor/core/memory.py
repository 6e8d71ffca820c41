"""In-memory collaborators used by the CLI, tests and embedding demos."""

import itertools
from collections.abc import Iterable

from loguru import logger

from conductor.decomposition.models import (
    Task,
    TaskConfig,
    Worker,
    WorkerStatus,
)


class InMemoryTaskStore:
    """
    Task store keeping tasks in a dict.

    Persisted ids are ``<prefix>-<n>`` with a monotonically increasing n,
    so the first task created by ``InMemoryTaskStore()`` is ``task-1``.
    """

    def __init__(self, prefix: str = "task") -> None:
        self.prefix = prefix
        self.tasks: dict[str, Task] = {}
        self._counter = itertools.count(1)

    async def create_task(self, config: TaskConfig) -> Task:
        """Create and store a task."""
        task_id = f"{self.prefix}-{next(self._counter)}"
        task = Task.from_config(task_id, config)
        self.tasks[task_id] = task
        logger.debug(f"Stored task {task_id}: {config.title}")
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """Look up a task."""
        return self.tasks.get(task_id)


class InMemoryAgentDirectory:
    """
    Agent directory backed by a dict of workers.

    ``spawn`` builds a worker from a registered template when one matches
    the requested type, otherwise from a bare type name.
    """

    def __init__(
        self,
        workers: Iterable[Worker] | None = None,
        templates: dict[str, list[str]] | None = None,
    ) -> None:
        self.workers: dict[str, Worker] = {w.id: w for w in workers or []}
        self.templates = templates or {}
        self._counter = itertools.count(1)

    async def list_available(self) -> list[Worker]:
        """Workers in idle or working status, in registration order."""
        return [w for w in self.workers.values() if w.is_available]

    async def get_worker(self, worker_id: str) -> Worker | None:
        """Look up a worker."""
        return self.workers.get(worker_id)

    async def spawn(self, worker_type: str) -> Worker:
        """Create and register a worker of the given type."""
        normalized = worker_type.strip().lower()
        worker = Worker(
            id=f"{normalized}-{next(self._counter)}",
            name=normalized.replace("-", " ").replace("_", " ").title(),
            type=normalized,
            capabilities=list(self.templates.get(normalized, [])),
            template_id=normalized if normalized in self.templates else None,
        )
        self.workers[worker.id] = worker
        logger.debug(f"Spawned worker {worker.id}")
        return worker

    def add(self, worker: Worker) -> None:
        """Register an existing worker."""
        self.workers[worker.id] = worker

    def set_status(self, worker_id: str, status: WorkerStatus) -> None:
        """Change a worker's status."""
        self.workers[worker_id].status = status


class StaticTemplateCatalog:
    """Template catalog over a fixed list of template ids."""

    def __init__(self, template_ids: Iterable[str]) -> None:
        self.template_ids = list(template_ids)

    async def list_templates(self) -> list[str]:
        """Known template ids."""
        return list(self.template_ids)
