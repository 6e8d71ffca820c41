"""Execution layer builder - groups tasks by dependency depth.

Processing layers in increasing order never dispatches a task before its
dependencies have been dispatched. It does not wait for them to complete;
completion gating belongs to the execution monitor.
"""

from collections.abc import Iterable

from loguru import logger

from conductor.decomposition.graph import DependencyGraph
from conductor.decomposition.models import ExecutionLayer, ParallelGroup, Task

DEFAULT_GROUP = "default"


class ExecutionLayerBuilder:
    """
    Partition tasks into dependency-depth layers and parallel groups.

    Example:
        >>> builder = ExecutionLayerBuilder()
        >>> layers = builder.build(tasks)
        >>> [layer.task_ids for layer in layers]
        [['task-1', 'task-2'], ['task-3']]
    """

    def build(self, tasks: Iterable[Task]) -> list[ExecutionLayer]:
        """
        Build execution layers.

        A task without dependencies has depth 0; any other task has depth
        one more than its deepest dependency. Dependencies outside the given
        task set are ignored. Within a layer tasks keep their input order.

        Raises:
            DependencyError: If the tasks contain a cycle.
        """
        tasks = list(tasks)
        depths = DependencyGraph.from_tasks(tasks).depths()

        layer_count = max(depths.values(), default=-1) + 1
        layers = [ExecutionLayer(index=i) for i in range(layer_count)]
        for task in tasks:
            layers[depths[task.id]].tasks.append(task)

        logger.info(f"Built {len(layers)} execution layers from {len(tasks)} tasks")
        for layer in layers:
            logger.debug(f"Layer {layer.index}: {layer.task_ids}")

        return layers

    def partition_parallel_groups(self, tasks: ExecutionLayer | Iterable[Task]) -> list[ParallelGroup]:
        """
        Split tasks into parallel groups.

        Tasks are grouped by ``parallel_group`` (``"default"`` when unset).
        A task with ``can_run_in_parallel`` explicitly False gets a solo
        group of its own. A task depending on another member of its group
        is demoted to a solo group instead of being rejected.

        Groups are returned in order of first appearance.
        """
        if isinstance(tasks, ExecutionLayer):
            tasks = tasks.tasks
        tasks = list(tasks)
        graph = DependencyGraph.from_tasks(tasks)

        groups: dict[str, ParallelGroup] = {}
        for task in tasks:
            if task.can_run_in_parallel is False:
                self._add_solo(groups, task)
                continue

            group_id = task.parallel_group or DEFAULT_GROUP
            group = groups.get(group_id)

            if group is not None:
                conflicts = [m.id for m in group.tasks if graph.related(task.id, m.id)]
                if conflicts:
                    logger.warning(
                        f"Task {task.id} depends on {', '.join(conflicts)} in group "
                        f"{group_id}; moving it to a solo group"
                    )
                    self._add_solo(groups, task)
                    continue
            else:
                group = groups[group_id] = ParallelGroup(group_id=group_id)

            group.tasks.append(task)

        return list(groups.values())

    @staticmethod
    def _add_solo(groups: dict[str, ParallelGroup], task: Task) -> None:
        group_id = f"solo-{task.id}"
        groups[group_id] = ParallelGroup(group_id=group_id, tasks=[task], solo=True)
