"""Unit tests for the task sequencer."""

import pytest

from conductor.core.exceptions import DependencyError
from conductor.core.memory import InMemoryTaskStore
from conductor.decomposition.models import ProjectAnalysis, TaskConfig, TaskPriority
from conductor.decomposition.sequencer import TaskSequencer


class RejectingTaskStore(InMemoryTaskStore):
    """Task store that rejects tasks whose title starts with a given word."""

    def __init__(self, reject_prefix: str) -> None:
        super().__init__()
        self.reject_prefix = reject_prefix
        self.attempted: list[str] = []

    async def create_task(self, config: TaskConfig):
        self.attempted.append(config.title)
        if config.title.startswith(self.reject_prefix):
            raise RuntimeError("store is read-only")
        return await super().create_task(config)


def _analysis(sample_document: dict) -> ProjectAnalysis:
    return ProjectAnalysis.model_validate(sample_document)


class TestOrdering:
    """Tests for topological creation order."""

    @pytest.mark.asyncio
    async def test_ids_remapped(self, sample_document: dict, task_store: InMemoryTaskStore) -> None:
        """Test that dependencies are translated to persisted ids."""
        result = await TaskSequencer(task_store).create_tasks(_analysis(sample_document))

        assert result.all_created
        assert result.id_map == {
            "schema": "task-1",
            "api": "task-2",
            "ui": "task-3",
            "tests": "task-4",
        }
        assert task_store.tasks["task-2"].dependencies == ["task-1"]
        assert task_store.tasks["task-3"].dependencies == ["task-2"]

    @pytest.mark.asyncio
    async def test_dependencies_created_first(
        self,
        sample_document: dict,
        task_store: InMemoryTaskStore,
    ) -> None:
        """Test that reversed input is still created dependencies first."""
        sample_document["tasks"].reverse()

        result = await TaskSequencer(task_store).create_tasks(_analysis(sample_document))

        created_order = list(task_store.tasks)
        for task in result.tasks:
            for dep in task.dependencies:
                assert created_order.index(dep) < created_order.index(task.id)

    def test_cycle_rejected(self, sample_document: dict, task_store: InMemoryTaskStore) -> None:
        """Test that ordering a cyclic analysis raises."""
        sample_document["tasks"][0]["dependsOn"] = ["tests"]

        with pytest.raises(DependencyError):
            TaskSequencer(task_store).order(_analysis(sample_document))

    @pytest.mark.asyncio
    async def test_violated_order_is_fatal(
        self,
        sample_document: dict,
        task_store: InMemoryTaskStore,
    ) -> None:
        """Test that an unmapped, never-attempted dependency raises."""
        analysis = _analysis(sample_document)
        sequencer = TaskSequencer(task_store)
        sequencer.order = lambda a: list(reversed(a.tasks))

        with pytest.raises(DependencyError, match="topological order violated"):
            await sequencer.create_tasks(analysis)


class TestTaskConfig:
    """Tests for the configs handed to the task store."""

    @pytest.mark.asyncio
    async def test_capabilities_merged(self, sample_document: dict, task_store: InMemoryTaskStore) -> None:
        """Test that declared and type capabilities are merged without duplicates."""
        sample_document["tasks"][1]["requiredCapabilities"] = ["GraphQL", "REST"]

        await TaskSequencer(task_store).create_tasks(_analysis(sample_document))

        api = task_store.tasks["task-2"]
        assert api.required_capabilities == [
            "GraphQL", "REST", "Node.js", "API", "Database", "TypeScript",
        ]

    @pytest.mark.asyncio
    async def test_unknown_type_gets_general(self, sample_document: dict, task_store: InMemoryTaskStore) -> None:
        """Test that unmapped task types require General."""
        sample_document["tasks"][0]["type"] = "research"

        await TaskSequencer(task_store).create_tasks(_analysis(sample_document))

        assert task_store.tasks["task-1"].required_capabilities == ["General"]

    @pytest.mark.asyncio
    async def test_title_tags_and_groups(self, sample_document: dict, task_store: InMemoryTaskStore) -> None:
        """Test derived title, tags, priority and parallel group."""
        sample_document["tasks"][0]["description"] = "x" * 80

        await TaskSequencer(task_store).create_tasks(_analysis(sample_document))

        schema = task_store.tasks["task-1"]
        api = task_store.tasks["task-2"]
        ui = task_store.tasks["task-3"]
        assert schema.title == "x" * 50
        assert schema.tags == ["database", "webapp"]
        assert schema.parallel_group is None
        assert api.priority == TaskPriority.HIGH
        assert api.estimated_duration == 60
        assert ui.parallel_group == "parallel-1"
        assert task_store.tasks["task-4"].parallel_group == "parallel-1"


class TestCreationFailures:
    """Tests for task store rejections."""

    @pytest.mark.asyncio
    async def test_failure_chain(self, sample_document: dict) -> None:
        """Test that dependents of a rejected task fail with a clear message."""
        store = RejectingTaskStore(reject_prefix="Implement the REST API")

        result = await TaskSequencer(store).create_tasks(_analysis(sample_document))

        assert result.created_count == 1
        by_id = {r.original_id: r for r in result.results}
        assert by_id["schema"].success
        assert by_id["api"].error == "store is read-only"
        assert by_id["ui"].error == "Dependency 'api' of task 'ui' failed to create"
        assert by_id["tests"].error == "Dependency 'api' of task 'tests' failed to create"
        assert len(store.attempted) == 2

    @pytest.mark.asyncio
    async def test_sibling_unaffected(self, sample_document: dict) -> None:
        """Test that a rejected leaf does not affect its siblings."""
        store = RejectingTaskStore(reject_prefix="Build the todo list UI")

        result = await TaskSequencer(store).create_tasks(_analysis(sample_document))

        assert [f.original_id for f in result.failures] == ["ui"]
        assert result.created_count == 3
        assert result.to_dict()["failures"][0]["original_id"] == "ui"
