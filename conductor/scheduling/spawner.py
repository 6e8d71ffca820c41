"""Worker spawner - makes sure the worker types a decomposition needs exist."""

from collections.abc import Iterable

from loguru import logger

from conductor.core.events import (
    AGENT_SPAWN_BATCH_COMPLETE,
    AGENT_SPAWN_FAILED,
    AGENT_SPAWN_REQUESTED,
    AGENT_SPAWN_SUCCEEDED,
    EventBus,
)
from conductor.core.interfaces import AgentDirectory
from conductor.decomposition.models import SpawnResult


class WorkerSpawner:
    """
    Spawn required worker types that are not already active.

    A type counts as active when an available worker has it as its type,
    template id or specialization (case insensitive). Types repeated in one
    request are spawned once. A failed spawn is recorded and the batch goes on.

    Example:
        >>> spawner = WorkerSpawner(directory, events)
        >>> result = await spawner.spawn_required(["frontend-specialist", "backend-specialist"])
        >>> result.spawned, result.existing
        (['backend-specialist'], ['frontend-specialist'])
    """

    def __init__(self, directory: AgentDirectory, events: EventBus | None = None):
        self.directory = directory
        self.events = events

    async def spawn_required(self, worker_types: Iterable[str]) -> SpawnResult:
        """Spawn every missing worker type."""
        result = SpawnResult()
        requested = [t for t in worker_types if isinstance(t, str) and t.strip()]

        if not requested:
            logger.info("No workers required")
            return result

        active: set[str] = set()
        for worker in await self.directory.list_available():
            active |= worker.type_labels()

        logger.info(f"Processing {len(requested)} required worker types")
        logger.debug(f"Active worker types: {', '.join(sorted(active))}")

        spawned_in_batch: set[str] = set()

        for requested_type in requested:
            normalized = requested_type.strip().lower()

            if normalized in active or normalized in spawned_in_batch:
                logger.debug(f"Worker type {requested_type} already active")
                result.existing.append(requested_type)
                continue

            self._emit(AGENT_SPAWN_REQUESTED, {"type": normalized})
            try:
                worker = await self.directory.spawn(normalized)
            except Exception as e:
                logger.error(f"Failed to spawn {requested_type}: {e}")
                result.failed.append(requested_type)
                self._emit(AGENT_SPAWN_FAILED, {"type": normalized, "error": str(e)})
                continue

            spawned_in_batch.add(normalized)
            result.spawned.append(requested_type)
            result.workers.append(worker)
            logger.info(f"Spawned {requested_type} as {worker.id}")
            self._emit(AGENT_SPAWN_SUCCEEDED, {"type": normalized, "worker_id": worker.id})

        self._emit(
            AGENT_SPAWN_BATCH_COMPLETE,
            {
                "spawned": len(result.spawned),
                "existing": len(result.existing),
                "failed": len(result.failed),
            },
        )
        logger.info(
            f"Spawn summary: {len(result.spawned)} spawned, {len(result.existing)} existing, "
            f"{len(result.failed)} failed"
        )
        return result

    def _emit(self, event: str, payload: dict) -> None:
        if self.events is not None:
            self.events.publish(event, payload)
