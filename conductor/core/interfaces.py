"""Boundaries to the collaborators Conductor does not own.

Calls into these collaborators are the only places the engine yields
control, so every method that may perform I/O is a coroutine.
"""

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from conductor.decomposition.models import Task, TaskConfig, Worker


@runtime_checkable
class TaskStore(Protocol):
    """Persists tasks created from a decomposition."""

    async def create_task(self, config: "TaskConfig") -> "Task":
        """Create a task and return it with its persisted id.

        Raises:
            Exception: Any error means the store rejected the task.
        """
        ...

    async def get_task(self, task_id: str) -> "Task | None":
        """Look up a task by persisted id."""
        ...


@runtime_checkable
class AgentDirectory(Protocol):
    """Owns workers and their status."""

    async def list_available(self) -> list["Worker"]:
        """Workers currently able to receive tasks."""
        ...

    async def get_worker(self, worker_id: str) -> "Worker | None":
        """Look up a worker by id."""
        ...

    async def spawn(self, worker_type: str) -> "Worker":
        """Start a new worker of the given type.

        Raises:
            Exception: Any error means the spawn failed.
        """
        ...


@runtime_checkable
class CapabilityMatcher(Protocol):
    """Ranks workers by how well their capabilities fit a task."""

    def rank_workers(self, workers: list["Worker"], task: "Task") -> list[tuple[str, float]]:
        """Return ``(worker_id, score)`` pairs, best first."""
        ...


@runtime_checkable
class TemplateCatalog(Protocol):
    """Lists the worker templates a request may reference."""

    async def list_templates(self) -> list[str]:
        """Known template ids.

        Raises:
            Exception: The catalog is unreachable.
        """
        ...
