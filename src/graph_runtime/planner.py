"""
Execution Planner - Derive a deterministic execution order.

Precondition: the graph passed validation. Planning a cyclic graph is a
caller error and raises CyclicGraphError instead of looping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Set

from .errors import CyclicGraphError
from .models import Graph
from .validation import detect_cycles


logger = logging.getLogger(__name__)


@dataclass
class ExecutionPlan:
    """
    Planned execution of a graph.

    `order` is a topological order; `levels` groups nodes by dependency
    depth, so nodes in the same level never depend on each other.
    """
    order: List[str]
    levels: List[List[str]]
    upstream: Dict[str, List[str]] = field(default_factory=dict)
    downstream: Dict[str, List[str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.order)


def _dependency_map(graph: Graph) -> Dict[str, List[str]]:
    """node id -> distinct upstream node ids, in edge declaration order."""
    known = set(graph.node_ids)
    upstream: Dict[str, List[str]] = {node_id: [] for node_id in graph.node_ids}
    for edge in graph.connections:
        if edge.source not in known or edge.target not in known:
            continue
        deps = upstream[edge.target]
        if edge.source not in deps:
            deps.append(edge.source)
    return upstream


def _ensure_acyclic(graph: Graph) -> None:
    cycles = detect_cycles(graph)
    if cycles:
        raise CyclicGraphError(node_id=cycles[0].details.node_id)


def order(graph: Graph) -> List[str]:
    """
    Compute a topological execution order.

    Nodes are taken in declaration order (so root nodes keep their
    declaration order); each node's dependencies are visited before the
    node itself is appended, and a visited-set keeps shared ancestors
    from being processed twice. Disconnected nodes appear exactly once.

    Raises:
        CyclicGraphError: If the graph contains a cycle
    """
    _ensure_acyclic(graph)
    upstream = _dependency_map(graph)

    ordered: List[str] = []
    visited: Set[str] = set()

    for start in upstream:
        if start in visited:
            continue
        visited.add(start)
        stack = [(start, iter(upstream[start]))]
        while stack:
            node_id, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                ordered.append(node_id)
                stack.pop()
            elif dep not in visited:
                visited.add(dep)
                stack.append((dep, iter(upstream[dep])))

    return ordered


def execution_levels(graph: Graph) -> List[List[str]]:
    """Group nodes by dependency depth (level 0 = nodes without inputs edges)."""
    ordered = order(graph)
    upstream = _dependency_map(graph)
    position = {node_id: index for index, node_id in enumerate(graph.node_ids)}

    depth: Dict[str, int] = {}
    for node_id in ordered:
        deps = upstream[node_id]
        depth[node_id] = 1 + max(depth[dep] for dep in deps) if deps else 0

    levels: List[List[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
    for node_id, level in depth.items():
        levels[level].append(node_id)
    for level in levels:
        level.sort(key=position.__getitem__)
    return levels


def build_plan(graph: Graph) -> ExecutionPlan:
    """Build the full execution plan for a validated graph."""
    upstream = _dependency_map(graph)
    downstream: Dict[str, List[str]] = {node_id: [] for node_id in upstream}
    for node_id, deps in upstream.items():
        for dep in deps:
            downstream[dep].append(node_id)

    plan = ExecutionPlan(
        order=order(graph),
        levels=execution_levels(graph),
        upstream=upstream,
        downstream=downstream,
    )
    logger.debug(f"Planned {len(plan)} nodes in {len(plan.levels)} levels")
    return plan


__all__ = [
    "ExecutionPlan",
    "build_plan",
    "execution_levels",
    "order",
]
