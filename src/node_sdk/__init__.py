"""
Node SDK - The execution contract every node implementation satisfies.

This package provides:
- BaseNode: Abstract base class with a single execute(context) operation
- NodeContext: Resolved inputs plus run identifiers and capabilities
- NodeResult: Completed outputs or a descriptive failure
- CredentialProvider: Injected secret/integration resolution
- CancellationToken: Cooperative abort for long-running nodes
"""

from .basenode import (
    BaseNode,
    ExecutionEnvironment,
    NodeApiError,
    NodeContext,
    NodeOperationError,
    NodeResult,
    TriggerData,
)
from .cancellation import CancellationToken, NodeCancelledError
from .credentials import CredentialProvider, IntegrationData, StaticCredentialProvider

__all__ = [
    # Contract
    "BaseNode",
    "NodeContext",
    "NodeResult",
    "TriggerData",
    "ExecutionEnvironment",
    # Capabilities
    "CredentialProvider",
    "IntegrationData",
    "StaticCredentialProvider",
    "CancellationToken",
    # Errors
    "NodeOperationError",
    "NodeApiError",
    "NodeCancelledError",
]
