"""
Tests for the Dependency Graph Resolver.
"""

import sys

import pytest

from lazypack.unit.registry import Registry
from lazypack.unit.resolver import CircularDependencyError, build_graph, resolve_load_order
from lazypack.unit.spec import normalize_batch


def make_registry(*entries) -> Registry:
    registry = Registry()
    _, errors = normalize_batch(registry, entries)
    assert errors == []
    return registry


def unit(name, **options):
    return {"src": f"owner/{name}", "name": name, **options}


class TestLoadOrder:
    """Test activation order computation."""

    def test_dependencies_before_dependents(self):
        """Should place every dependency before its dependents."""
        registry = make_registry(
            unit("app", dependencies=["ui", "lib"]),
            unit("ui", dependencies=["lib"]),
            unit("lib"),
        )
        order = resolve_load_order(registry)

        assert sorted(order) == ["app", "lib", "ui"]
        assert order.index("lib") < order.index("ui") < order.index("app")

    def test_independent_units_by_priority(self):
        """Should order independent units by priority, highest first."""
        registry = make_registry(
            unit("low", priority=10),
            unit("high", priority=100),
            unit("mid"),
        )
        assert resolve_load_order(registry) == ["high", "mid", "low"]

    def test_ties_use_registration_order(self):
        """Should break priority ties by registration order."""
        registry = make_registry(unit("c"), unit("a"), unit("b"))
        assert resolve_load_order(registry) == ["c", "a", "b"]

    def test_dependency_beats_priority(self):
        """Should load a low-priority dependency before its high-priority dependent."""
        registry = make_registry(
            unit("x", priority=10),
            unit("y", priority=100, dependencies=["x"]),
        )
        assert resolve_load_order(registry) == ["x", "y"]

    def test_shared_dependency_loaded_with_first_root(self):
        """Should load a shared dependency just before the highest-priority root."""
        registry = make_registry(
            unit("a", priority=1, dependencies=["d"]),
            unit("b", priority=50, dependencies=["d"]),
            unit("d", priority=90),
        )
        assert resolve_load_order(registry) == ["d", "b", "a"]

    def test_dependency_declaration_order(self):
        """Should visit dependencies in declaration order."""
        registry = make_registry(
            unit("app", dependencies=["second", "first"]),
            unit("first"),
            unit("second"),
        )
        assert resolve_load_order(registry) == ["second", "first", "app"]

    def test_deterministic(self):
        """Should return the same order for the same registry."""
        registry = make_registry(
            unit("a", dependencies=["c"]),
            unit("b", priority=70),
            unit("c"),
            unit("d", dependencies=["b"]),
        )
        assert resolve_load_order(registry) == resolve_load_order(registry)

    def test_recomputed_on_change(self):
        """Should reflect registry changes made between calls."""
        registry = make_registry(unit("a"), unit("b"))
        assert resolve_load_order(registry) == ["a", "b"]

        normalize_batch(registry, [unit("b", priority=99)])
        assert resolve_load_order(registry) == ["b", "a"]

    def test_empty_registry(self):
        """Should return an empty order for an empty registry."""
        assert resolve_load_order(Registry()) == []

    def test_long_chain(self):
        """Should order a dependency chain deeper than the recursion limit."""
        depth = sys.getrecursionlimit() + 500
        entries = [unit(f"u{i}", dependencies=[f"u{i + 1}"]) for i in range(depth)]
        entries.append(unit(f"u{depth}"))
        registry = make_registry(*entries)

        assert resolve_load_order(registry) == [f"u{i}" for i in range(depth, -1, -1)]

    def test_long_cycle(self):
        """Should report a cycle longer than the recursion limit."""
        depth = sys.getrecursionlimit() + 500
        entries = [unit(f"u{i}", dependencies=[f"u{(i + 1) % depth}"]) for i in range(depth)]
        registry = make_registry(*entries)

        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_load_order(registry)

        cycle = exc_info.value.cycle
        assert len(cycle) == depth + 1
        assert cycle[0] == cycle[-1] == "u0"


class TestDependencyReferences:
    """Test dependency reference handling."""

    def test_dangling_reference_ignored(self):
        """Should ignore dependencies that are not registered."""
        registry = make_registry(unit("a", dependencies=["missing"]))
        assert resolve_load_order(registry) == ["a"]

    def test_locator_reference(self):
        """Should resolve a dependency given as a locator."""
        registry = make_registry(
            {"src": "owner/telescope.nvim", "dependencies": ["nvim-lua/plenary.nvim"]},
            "nvim-lua/plenary.nvim",
        )
        assert resolve_load_order(registry) == ["plenary", "telescope"]

    def test_table_reference(self):
        """Should resolve a dependency given as a table."""
        registry = make_registry(
            unit("a", dependencies=[{"src": "owner/b.nvim"}, {"name": "c"}]),
            unit("b"),
            unit("c"),
        )
        assert resolve_load_order(registry) == ["b", "c", "a"]

    def test_disabled_units_excluded(self):
        """Should leave disabled units out of the order and the graph."""
        registry = make_registry(
            unit("a", enabled=False),
            unit("b", dependencies=["a"]),
        )

        assert resolve_load_order(registry) == ["b"]
        assert build_graph(registry) == {"b": []}


class TestCycles:
    """Test cycle detection."""

    def test_two_node_cycle(self):
        """Should report a cycle naming both units."""
        registry = make_registry(
            unit("a", dependencies=["b"]),
            unit("b", dependencies=["a"]),
        )

        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_load_order(registry)

        assert exc_info.value.cycle == ["a", "b", "a"]
        assert "a -> b -> a" in str(exc_info.value)

    def test_cycle_below_root(self):
        """Should report only the cycle, not the path leading into it."""
        registry = make_registry(
            unit("app", dependencies=["b"]),
            unit("b", dependencies=["c"]),
            unit("c", dependencies=["b"]),
        )

        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_load_order(registry)

        assert exc_info.value.cycle == ["b", "c", "b"]

    def test_self_dependency(self):
        """Should treat a unit depending on itself as a cycle."""
        registry = make_registry(unit("a", dependencies=["a"]))

        with pytest.raises(CircularDependencyError) as exc_info:
            resolve_load_order(registry)

        assert exc_info.value.cycle == ["a", "a"]

    def test_cycle_through_disabled_unit_ignored(self):
        """Should not report a cycle broken by a disabled unit."""
        registry = make_registry(
            unit("a", dependencies=["b"]),
            unit("b", dependencies=["a"], enabled=False),
        )
        assert resolve_load_order(registry) == ["a"]
