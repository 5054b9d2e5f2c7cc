"""
Workflow errors - exception taxonomy for hosts of the graph runtime.

Validation defects are returned as values by the validator; these
exceptions exist for callers that want to fail loudly (the `run()`
convenience entry, the planner precondition check) and to build
consistent node error messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .validation import ValidationError


class WorkflowError(Exception):
    """Base class for all workflow runtime errors."""

    def __init__(self, message: str, node_id: Optional[str] = None) -> None:
        self.message = message
        self.node_id = node_id
        super().__init__(message)


class GraphValidationFailed(WorkflowError):
    """The graph has definition errors and must not be executed."""

    def __init__(self, errors: List["ValidationError"]) -> None:
        self.errors = list(errors)
        summary = ", ".join(error.message for error in self.errors)
        super().__init__(f"Workflow validation failed: {summary}")


class PlanningError(WorkflowError):
    """A planner precondition was violated by the caller."""


class CyclicGraphError(PlanningError):
    """Raised when an execution order is requested for a cyclic graph."""

    def __init__(
        self,
        message: str = "Unable to derive execution order. The graph contains a cycle.",
        node_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, node_id)


class NodeExecutionError(WorkflowError):
    """A single node failed; sibling branches may still run."""

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(message, node_id)


class NodeTypeNotImplementedError(NodeExecutionError):
    """No implementation is registered for the node's type."""

    def __init__(self, node_id: str, node_type: str) -> None:
        self.node_type = node_type
        super().__init__(node_id, f"Node type not found: {node_type}")


class NodeTimeoutError(NodeExecutionError):
    """The node did not finish inside its time box."""

    def __init__(self, node_id: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(node_id, f"Node timed out after {timeout_seconds:g}s")


__all__ = [
    "CyclicGraphError",
    "GraphValidationFailed",
    "NodeExecutionError",
    "NodeTimeoutError",
    "NodeTypeNotImplementedError",
    "PlanningError",
    "WorkflowError",
]
