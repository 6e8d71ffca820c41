"""Directed dependency graph shared by validation, sequencing and layering.

Edges point from a task to the tasks it depends on. Cycle detection and
topological ordering use one iterative three-color depth-first walk, so
large graphs never hit the interpreter recursion limit.
"""

from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol

from loguru import logger

from conductor.core.exceptions import DependencyError

WHITE, GRAY, BLACK = 0, 1, 2


class _HasDependencies(Protocol):
    id: str
    dependencies: list[str]


class DependencyGraph:
    """
    Task dependency graph.

    Dependencies that do not name a node of the graph are kept for
    reporting (``missing_dependencies``) but ignored by every traversal.

    Example:
        >>> graph = DependencyGraph({"a": [], "b": ["a"], "c": ["b"]})
        >>> graph.topological_order()
        ['a', 'b', 'c']
        >>> DependencyGraph({"a": ["b"], "b": ["a"]}).find_cycle()
        ['a', 'b', 'a']
    """

    def __init__(self, edges: Mapping[str, Iterable[str]] | None = None) -> None:
        self._edges: dict[str, list[str]] = {}
        for node, deps in (edges or {}).items():
            self.add_node(node, deps)

    @classmethod
    def from_tasks(cls, tasks: Iterable[_HasDependencies]) -> "DependencyGraph":
        """Build a graph from objects exposing ``id`` and ``dependencies``."""
        return cls({task.id: task.dependencies for task in tasks})

    def add_node(self, node: str, dependencies: Iterable[str] = ()) -> None:
        """Add a node with its dependency list (duplicates collapsed)."""
        self._edges[node] = list(dict.fromkeys(dependencies))

    # =========================================================================
    # QUERIES
    # =========================================================================

    @property
    def nodes(self) -> list[str]:
        """Node ids in insertion order."""
        return list(self._edges)

    def __contains__(self, node: object) -> bool:
        return node in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def dependencies_of(self, node: str) -> list[str]:
        """Known dependencies of a node."""
        return [d for d in self._edges.get(node, []) if d in self._edges]

    def dependents_of(self, node: str) -> list[str]:
        """Nodes that directly depend on ``node``."""
        return [n for n, deps in self._edges.items() if node in deps]

    def missing_dependencies(self) -> dict[str, list[str]]:
        """Node -> dependency ids that are not nodes of the graph."""
        missing: dict[str, list[str]] = {}
        for node, deps in self._edges.items():
            unknown = [d for d in deps if d not in self._edges]
            if unknown:
                missing[node] = unknown
        return missing

    def ancestors(self, node: str) -> set[str]:
        """All direct and transitive dependencies of ``node``."""
        seen: set[str] = set()
        queue: deque[str] = deque(self.dependencies_of(node))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.dependencies_of(current))
        return seen

    def has_path(self, source: str, target: str) -> bool:
        """Whether ``source`` depends on ``target``, directly or transitively."""
        return target in self.ancestors(source)

    def related(self, a: str, b: str) -> bool:
        """Whether either node depends on the other."""
        return self.has_path(a, b) or self.has_path(b, a)

    # =========================================================================
    # THREE-COLOR TRAVERSAL
    # =========================================================================

    def _walk(self) -> tuple[list[str], list[str] | None]:
        """Post-order walk returning (order, first cycle found or None)."""
        colors: dict[str, int] = {node: WHITE for node in self._edges}
        order: list[str] = []

        for root in self._edges:
            if colors[root] != WHITE:
                continue

            colors[root] = GRAY
            path: list[str] = [root]
            stack: list[tuple[str, Iterator[str]]] = [
                (root, iter(self.dependencies_of(root)))
            ]

            while stack:
                node, pending = stack[-1]
                descended = False

                for dep in pending:
                    if colors[dep] == GRAY:
                        start = path.index(dep)
                        return order, path[start:] + [dep]
                    if colors[dep] == WHITE:
                        colors[dep] = GRAY
                        path.append(dep)
                        stack.append((dep, iter(self.dependencies_of(dep))))
                        descended = True
                        break

                if not descended:
                    stack.pop()
                    path.pop()
                    colors[node] = BLACK
                    order.append(node)

        return order, None

    def find_cycle(self) -> list[str] | None:
        """
        Find one dependency cycle.

        Returns:
            The cycle as a closed path (first node repeated at the end),
            or None when the graph is acyclic.
        """
        _, cycle = self._walk()
        return cycle

    def topological_order(self) -> list[str]:
        """
        Order nodes so every dependency precedes its dependents.

        Roots are visited in insertion order, which keeps the result
        deterministic for a given input.

        Raises:
            DependencyError: If the graph contains a cycle.
        """
        order, cycle = self._walk()
        if cycle:
            cycle_str = " -> ".join(cycle)
            raise DependencyError(f"Circular dependency detected: {cycle_str}", cycle=cycle)
        return order

    def depths(self) -> dict[str, int]:
        """
        Dependency depth of every node.

        A node without known dependencies has depth 0; otherwise its depth
        is one more than the deepest dependency.
        """
        depths: dict[str, int] = {}
        for node in self.topological_order():
            deps = self.dependencies_of(node)
            depths[node] = 1 + max(depths[d] for d in deps) if deps else 0

        logger.debug(f"Computed depths for {len(depths)} nodes")
        return depths
