"""
Graph Validator - Structural and type checks for workflow graphs.

`validate()` never raises: every defect is returned as a ValidationError
value so the editor can render all of them inline. Three independent
checks always run and their results are concatenated:

1. Cycle detection (DFS with an on-stack set, self-loops included)
2. Connection checks (endpoints exist, parameters exist, types match)
3. Duplicate connection detection (one error per repeat)
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from .models import ANY_TYPE, Edge, Graph


logger = logging.getLogger(__name__)


class ValidationErrorType(str, Enum):
    CYCLE_DETECTED = "CYCLE_DETECTED"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INVALID_CONNECTION = "INVALID_CONNECTION"
    DUPLICATE_CONNECTION = "DUPLICATE_CONNECTION"


@dataclass(frozen=True)
class ValidationDetails:
    node_id: Optional[str] = None
    connection_source: Optional[str] = None
    connection_target: Optional[str] = None


@dataclass(frozen=True)
class ValidationError:
    """A single graph-definition defect."""
    type: ValidationErrorType
    message: str
    details: ValidationDetails = field(default_factory=ValidationDetails)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the editor (camelCase keys, empty details dropped)."""
        details = {
            "nodeId": self.details.node_id,
            "connectionSource": self.details.connection_source,
            "connectionTarget": self.details.connection_target,
        }
        return {
            "type": self.type.value,
            "message": self.message,
            "details": {k: v for k, v in details.items() if v is not None},
        }


def types_compatible(source_type: str, target_type: str) -> bool:
    """Exact match, with `any` matching everything on either side."""
    if ANY_TYPE in (source_type, target_type):
        return True
    return source_type == target_type


def detect_cycles(graph: Graph) -> List[ValidationError]:
    """
    Report the first directed cycle found, if any.

    Iterative DFS from every unvisited node in declaration order. Reaching
    a node that is still on the stack means a back-edge, i.e. a cycle.
    """
    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in graph.node_ids}
    for edge in graph.connections:
        if edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].append(edge.target)

    visited: Set[str] = set()
    on_stack: Set[str] = set()

    for start in adjacency:
        if start in visited:
            continue
        visited.add(start)
        on_stack.add(start)
        stack = [(start, iter(adjacency[start]))]
        while stack:
            node_id, children = stack[-1]
            child = next(children, None)
            if child is None:
                on_stack.discard(node_id)
                stack.pop()
                continue
            if child in on_stack:
                logger.debug(f"Back-edge {node_id} -> {child}")
                return [
                    ValidationError(
                        type=ValidationErrorType.CYCLE_DETECTED,
                        message="Cycle detected in workflow",
                        details=ValidationDetails(node_id=child),
                    )
                ]
            if child not in visited:
                visited.add(child)
                on_stack.add(child)
                stack.append((child, iter(adjacency[child])))
    return []


def _invalid(edge: Edge, message: str) -> ValidationError:
    return ValidationError(
        type=ValidationErrorType.INVALID_CONNECTION,
        message=message,
        details=ValidationDetails(
            connection_source=edge.source,
            connection_target=edge.target,
        ),
    )


def check_connection(graph: Graph, edge: Edge) -> Optional[ValidationError]:
    """Check one edge for referential integrity and type agreement."""
    source = graph.get_node(edge.source)
    if source is None:
        return _invalid(edge, f"Source node not found: {edge.source}")
    target = graph.get_node(edge.target)
    if target is None:
        return _invalid(edge, f"Target node not found: {edge.target}")

    output = source.get_output(edge.source_output)
    if output is None:
        return _invalid(
            edge, f"Output '{edge.source_output}' not found on node {edge.source}"
        )
    target_input = target.get_input(edge.target_input)
    if target_input is None:
        return _invalid(
            edge, f"Input '{edge.target_input}' not found on node {edge.target}"
        )

    if not types_compatible(output.type, target_input.type):
        return ValidationError(
            type=ValidationErrorType.TYPE_MISMATCH,
            message=f"Type mismatch: {output.type} -> {target_input.type}",
            details=ValidationDetails(
                connection_source=edge.source,
                connection_target=edge.target,
            ),
        )
    return None


def check_connections(
    graph: Graph,
    first_connection_error_only: bool = False,
) -> List[ValidationError]:
    errors: List[ValidationError] = []
    for edge in graph.connections:
        error = check_connection(graph, edge)
        if error is None:
            continue
        errors.append(error)
        if first_connection_error_only:
            break
    return errors


def detect_duplicates(graph: Graph) -> List[ValidationError]:
    """Emit one DUPLICATE_CONNECTION per repeated occurrence of an edge."""
    seen: Counter = Counter()
    errors: List[ValidationError] = []
    for edge in graph.connections:
        seen[edge.key] += 1
        if seen[edge.key] > 1:
            errors.append(
                ValidationError(
                    type=ValidationErrorType.DUPLICATE_CONNECTION,
                    message="Duplicate connection detected",
                    details=ValidationDetails(
                        connection_source=edge.source,
                        connection_target=edge.target,
                    ),
                )
            )
    return errors


def validate(
    graph: Graph,
    first_connection_error_only: bool = False,
) -> List[ValidationError]:
    """
    Validate a graph. An empty list means the graph is sound.

    Args:
        graph: Graph to check (never mutated)
        first_connection_error_only: Stop the connection check at the
            first broken edge instead of reporting every one

    Returns:
        Cycle errors, then connection errors, then duplicate errors
    """
    errors = detect_cycles(graph)
    errors.extend(check_connections(graph, first_connection_error_only))
    errors.extend(detect_duplicates(graph))
    if errors:
        logger.debug(f"Graph {graph.id or graph.name} has {len(errors)} validation errors")
    return errors


def is_valid(graph: Graph) -> bool:
    return not validate(graph)


__all__ = [
    "ValidationDetails",
    "ValidationError",
    "ValidationErrorType",
    "check_connection",
    "check_connections",
    "detect_cycles",
    "detect_duplicates",
    "is_valid",
    "types_compatible",
    "validate",
]
