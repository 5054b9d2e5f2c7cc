"""
Graph Runtime - Validate, plan and execute workflow graphs.

This package provides:
- Graph models (Node, Parameter, Edge, Graph) and graph loading
- validate(): static graph checks returning ValidationError values
- order() / build_plan(): deterministic topological planning
- WorkflowExecutor: dispatch of planned nodes through a NodeRegistry

Usage:
    from graph_runtime import WorkflowExecutor, load_graph
    from node_registry import NodeRegistry

    registry = NodeRegistry()
    registry.discover_entry_points()

    result = WorkflowExecutor(registry).run(load_graph("workflow.json"))
"""

from .errors import (
    CyclicGraphError,
    GraphValidationFailed,
    NodeExecutionError,
    NodeTimeoutError,
    NodeTypeNotImplementedError,
    PlanningError,
    WorkflowError,
)
from .executor import (
    ContinuationPolicy,
    ExecutionResult,
    NodeStatus,
    SkipReason,
    WorkflowExecutor,
    WorkflowResult,
    WorkflowStatus,
    resolve_inputs,
)
from .models import (
    ANY_TYPE,
    Edge,
    Graph,
    Node,
    Parameter,
    ParameterType,
    Position,
    load_graph,
    parse_graph,
)
from .planner import ExecutionPlan, build_plan, execution_levels, order
from .validation import (
    ValidationDetails,
    ValidationError,
    ValidationErrorType,
    is_valid,
    types_compatible,
    validate,
)

__all__ = [
    # Models
    "ANY_TYPE",
    "Edge",
    "Graph",
    "Node",
    "Parameter",
    "ParameterType",
    "Position",
    "load_graph",
    "parse_graph",
    # Validation
    "ValidationDetails",
    "ValidationError",
    "ValidationErrorType",
    "is_valid",
    "types_compatible",
    "validate",
    # Planning
    "ExecutionPlan",
    "build_plan",
    "execution_levels",
    "order",
    # Execution
    "ContinuationPolicy",
    "ExecutionResult",
    "NodeStatus",
    "SkipReason",
    "WorkflowExecutor",
    "WorkflowResult",
    "WorkflowStatus",
    "resolve_inputs",
    # Errors
    "CyclicGraphError",
    "GraphValidationFailed",
    "NodeExecutionError",
    "NodeTimeoutError",
    "NodeTypeNotImplementedError",
    "PlanningError",
    "WorkflowError",
]
