"""
Dependency Graph Resolver.

Computes a deterministic activation order for the enabled units of a
registry: every unit appears after all of its enabled dependencies.

Roots (enabled units nothing else depends on) are visited by priority
descending, ties broken by registration order, and each root's dependencies
are visited depth-first in declaration order. A node seen again while still
on the current path is a cycle.
"""

import logging

from lazypack.errors import LazyPackError
from lazypack.unit.registry import Registry

logger = logging.getLogger(__name__)


class CircularDependencyError(LazyPackError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")


def build_graph(registry: Registry) -> dict[str, list[str]]:
    """
    Build the dependency graph of enabled units.

    Edges to unknown or disabled units are dropped.

    Returns:
        Mapping of unit id to its enabled dependency ids, in registration order
    """
    enabled = {r.id for r in registry.records() if r.metadata.enabled}
    return {
        record.id: [d for d in registry.dependency_ids(record) if d in enabled]
        for record in registry.records()
        if record.id in enabled
    }


def resolve_load_order(registry: Registry) -> list[str]:
    """
    Resolve the activation order of all enabled units.

    Args:
        registry: Registry to resolve

    Returns:
        Unit ids, dependencies strictly before dependents

    Raises:
        CircularDependencyError: If a cycle is found; no partial order is returned
    """
    graph = build_graph(registry)
    position = {unit_id: index for index, unit_id in enumerate(graph)}

    def rank(unit_id: str) -> tuple[int, int]:
        return (-registry.get(unit_id).spec.priority, position[unit_id])

    depended_on = {dep for deps in graph.values() for dep in deps}
    roots = sorted((u for u in graph if u not in depended_on), key=rank)
    # Units only reachable through a cycle have no root; visit them last so the
    # cycle is reported instead of silently dropped
    remaining = sorted((u for u in graph if u in depended_on), key=rank)

    order: list[str] = []
    visited: set[str] = set()

    # Iterative post-order; each frame is a unit and the dependencies it has
    # yet to visit
    for root in roots + remaining:
        if root in visited:
            continue

        path = [root]
        on_path = {root}
        stack = [(root, iter(graph[root]))]
        while stack:
            unit_id, deps = stack[-1]
            for dep in deps:
                if dep in on_path:
                    start = path.index(dep)
                    raise CircularDependencyError(path[start:] + [dep])
                if dep not in visited:
                    path.append(dep)
                    on_path.add(dep)
                    stack.append((dep, iter(graph[dep])))
                    break
            else:
                stack.pop()
                path.pop()
                on_path.discard(unit_id)
                visited.add(unit_id)
                order.append(unit_id)

    logger.debug("Resolved load order: %s", order)
    return order
