"""Unit tests for the shared dependency graph."""

import pytest

from conductor.core.exceptions import DependencyError
from conductor.decomposition.graph import DependencyGraph


class TestTopologicalOrder:
    """Tests for DependencyGraph.topological_order."""

    def test_linear_chain(self) -> None:
        """Test that a chain is ordered dependencies first."""
        graph = DependencyGraph({"a": [], "b": ["a"], "c": ["b"]})

        assert graph.topological_order() == ["a", "b", "c"]

    def test_dependencies_precede_dependents(self) -> None:
        """Test ordering for a graph listed dependents first."""
        edges = {
            "deploy": ["test", "build"],
            "test": ["build"],
            "build": ["schema"],
            "docs": [],
            "schema": [],
        }
        order = DependencyGraph(edges).topological_order()
        position = {node: i for i, node in enumerate(order)}

        assert sorted(order) == sorted(edges)
        for node, deps in edges.items():
            for dep in deps:
                assert position[dep] < position[node]

    def test_deterministic_for_same_input(self) -> None:
        """Test that repeated calls return the same order."""
        edges = {"x": [], "y": [], "z": ["x", "y"]}

        assert DependencyGraph(edges).topological_order() == DependencyGraph(edges).topological_order()

    def test_unknown_dependencies_ignored(self) -> None:
        """Test that dependencies outside the graph do not block ordering."""
        graph = DependencyGraph({"a": ["external"], "b": ["a"]})

        assert graph.topological_order() == ["a", "b"]

    def test_cycle_raises(self) -> None:
        """Test that a cycle raises DependencyError with the cycle path."""
        graph = DependencyGraph({"a": ["b"], "b": ["a"]})

        with pytest.raises(DependencyError) as exc_info:
            graph.topological_order()

        assert "Circular dependency detected" in str(exc_info.value)
        assert exc_info.value.cycle == ["a", "b", "a"]

    def test_deep_chain_does_not_recurse(self) -> None:
        """Test that very deep graphs are handled iteratively."""
        size = 5000
        edges = {f"n{i}": [f"n{i - 1}"] if i else [] for i in reversed(range(size))}

        order = DependencyGraph(edges).topological_order()

        assert len(order) == size
        assert order[0] == "n0"
        assert order[-1] == f"n{size - 1}"


class TestFindCycle:
    """Tests for DependencyGraph.find_cycle."""

    def test_acyclic_graph(self) -> None:
        """Test that an acyclic graph has no cycle."""
        assert DependencyGraph({"a": [], "b": ["a"]}).find_cycle() is None

    def test_three_node_cycle(self) -> None:
        """Test detection of A -> B -> C -> A."""
        graph = DependencyGraph({"A": ["C"], "B": ["A"], "C": ["B"]})

        cycle = graph.find_cycle()

        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A", "B", "C"}

    def test_self_dependency(self) -> None:
        """Test that a task depending on itself is a cycle."""
        assert DependencyGraph({"a": ["a"]}).find_cycle() == ["a", "a"]

    def test_cycle_behind_acyclic_prefix(self) -> None:
        """Test that only the cyclic part is reported."""
        graph = DependencyGraph({"root": ["x"], "x": ["y"], "y": ["x"]})

        assert graph.find_cycle() == ["x", "y", "x"]


class TestQueries:
    """Tests for graph queries."""

    def test_depths(self) -> None:
        """Test dependency depth computation."""
        graph = DependencyGraph({"a": [], "b": ["a"], "c": ["a", "b"], "d": []})

        assert graph.depths() == {"a": 0, "b": 1, "c": 2, "d": 0}

    def test_missing_dependencies(self) -> None:
        """Test reporting of dependencies outside the graph."""
        graph = DependencyGraph({"a": ["ghost"], "b": ["a"]})

        assert graph.missing_dependencies() == {"a": ["ghost"]}

    def test_ancestors_and_paths(self) -> None:
        """Test transitive dependency queries."""
        graph = DependencyGraph({"a": [], "b": ["a"], "c": ["b"], "d": []})

        assert graph.ancestors("c") == {"a", "b"}
        assert graph.has_path("c", "a")
        assert not graph.has_path("a", "c")
        assert graph.related("a", "c")
        assert not graph.related("a", "d")

    def test_dependents_of(self) -> None:
        """Test direct dependent lookup."""
        graph = DependencyGraph({"a": [], "b": ["a"], "c": ["a"], "d": ["b"]})

        assert graph.dependents_of("a") == ["b", "c"]

    def test_duplicate_dependencies_collapsed(self) -> None:
        """Test that repeated dependency ids are stored once."""
        graph = DependencyGraph({"a": [], "b": ["a", "a"]})

        assert graph.dependencies_of("b") == ["a"]
