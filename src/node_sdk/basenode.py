"""
BaseNode - Abstract base class for executable node implementations.

Every node type implements one operation, execute(context), which
returns a NodeResult: either a completed payload mapping output names
to values, or a descriptive failure string. Expected failures may also
be raised as NodeOperationError; the executor converts any exception
into a failed result so nothing escapes the node boundary.

Example:

    class AdditionNode(BaseNode):
        node_type = NodeTypeDefinition(
            type="addition",
            name="Addition",
            inputs=[
                ParameterDefinition(name="a", type="number", required=True),
                ParameterDefinition(name="b", type="number", required=True),
            ],
            outputs=[ParameterDefinition(name="result", type="number")],
        )

        def execute(self, context: NodeContext) -> NodeResult:
            a = context.require("a")
            b = context.require("b")
            return NodeResult.completed({"result": a + b})
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .cancellation import CancellationToken, NodeCancelledError
from .credentials import CredentialProvider, IntegrationData, StaticCredentialProvider

if TYPE_CHECKING:
    from graph_runtime.models import Node
    from node_registry.models import NodeTypeDefinition


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


# ==============================================================================
# Environment and trigger data
# ==============================================================================

@dataclass
class ExecutionEnvironment:
    """
    Per-process execution environment shared by every node a registry creates.

    Carries resolution hooks and flags only, never business logic.
    """
    credentials: CredentialProvider = field(default_factory=StaticCredentialProvider)
    feature_flags: Dict[str, bool] = field(default_factory=dict)
    config: Dict[str, Any] = field(default_factory=dict)

    def is_enabled(self, flag: str) -> bool:
        return bool(self.feature_flags.get(flag, False))


class TriggerData(BaseModel):
    """
    What started the run (manual click, HTTP request, webhook, email...).

    `payload` is the raw request body or form data; `metadata` holds
    headers, query string and similar request details.
    """
    model_config = ConfigDict(extra="allow")

    kind: str = Field("manual", description="Trigger kind, e.g. 'manual', 'http_request'")
    payload: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ==============================================================================
# NodeResult - outcome of one execution
# ==============================================================================

@dataclass(frozen=True)
class NodeResult:
    """Success payload or descriptive failure returned by execute()."""
    status: str
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    COMPLETED: ClassVar[str] = "completed"
    FAILED: ClassVar[str] = "failed"

    @classmethod
    def completed(cls, outputs: Optional[Mapping[str, Any]] = None) -> "NodeResult":
        return cls(status=cls.COMPLETED, outputs=dict(outputs or {}))

    @classmethod
    def failed(cls, error: str) -> "NodeResult":
        return cls(status=cls.FAILED, error=error or "Unknown error")

    @property
    def is_success(self) -> bool:
        return self.status == self.COMPLETED


# ==============================================================================
# NodeContext - runtime context for node execution
# ==============================================================================

class NodeContext:
    """
    Runtime context provided to a node for one invocation.

    Provides access to:
    - Resolved input values
    - Trigger data and run identifiers
    - Secret/integration resolution (forwarded to the environment)
    - Progress reporting and cooperative cancellation
    """

    def __init__(
        self,
        node_id: str,
        inputs: Dict[str, Any],
        workflow_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        execution_id: Optional[str] = None,
        trigger: Optional[TriggerData] = None,
        environment: Optional[ExecutionEnvironment] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancellation: Optional[CancellationToken] = None,
    ) -> None:
        self.node_id = node_id
        self.inputs = inputs
        self.workflow_id = workflow_id
        self.organization_id = organization_id
        self.execution_id = execution_id
        self.trigger = trigger or TriggerData()
        self.environment = environment or ExecutionEnvironment()
        self._on_progress = on_progress
        self._cancellation = cancellation or CancellationToken()

    def get(self, name: str, default: Any = None) -> Any:
        """Get an input value, or `default` when it was not resolved."""
        value = self.inputs.get(name)
        return default if value is None else value

    def require(self, name: str) -> Any:
        """Get an input value, failing the node when it is absent."""
        value = self.inputs.get(name)
        if value is None:
            raise NodeOperationError(f"Required input '{name}' missing for node {self.node_id}")
        return value

    def get_secret(self, name: str) -> Optional[str]:
        return self.environment.credentials.get_secret(name)

    def get_integration(self, integration_id: str) -> Optional[IntegrationData]:
        return self.environment.credentials.get_integration(integration_id)

    def report_progress(self, fraction: float) -> None:
        """Report progress in [0, 1]; no-op without a progress callback."""
        if self._on_progress is None:
            return
        self._on_progress(self.node_id, min(max(float(fraction), 0.0), 1.0))

    @property
    def is_cancelled(self) -> bool:
        return self._cancellation.cancelled

    def check_cancelled(self) -> None:
        """Raise NodeCancelledError if the run was cancelled or timed out."""
        self._cancellation.raise_if_cancelled()

    def sleep(self, seconds: float) -> None:
        """Cancellable sleep for polling loops."""
        if self._cancellation.wait(seconds):
            self._cancellation.raise_if_cancelled()


# ==============================================================================
# BaseNode - Abstract base class
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for all node implementations.

    Subclasses declare their static metadata in `node_type` and implement
    execute(). An instance is bound to one Node declaration and to the
    registry's execution environment.
    """

    node_type: ClassVar["NodeTypeDefinition"]

    def __init__(
        self,
        node: "Node",
        environment: Optional[ExecutionEnvironment] = None,
    ) -> None:
        self.node = node
        self.environment = environment or ExecutionEnvironment()
        self.logger = logging.getLogger(f"node.{self.type_id}")

    @property
    def type_id(self) -> str:
        node_type = getattr(type(self), "node_type", None)
        return node_type.type if node_type is not None else type(self).__name__

    @abstractmethod
    def execute(self, context: NodeContext) -> NodeResult:
        """
        Execute the node.

        Returns:
            NodeResult.completed(outputs) or NodeResult.failed(message)

        Raises:
            NodeOperationError: On an expected operation failure
            NodeCancelledError: When the context was cancelled
        """
        raise NotImplementedError


# ==============================================================================
# Errors
# ==============================================================================

class NodeOperationError(Exception):
    """Error during node operation."""

    def __init__(self, message: str, node_id: Optional[str] = None) -> None:
        self.message = message
        self.node_id = node_id
        super().__init__(message)


class NodeApiError(NodeOperationError):
    """Error from an external API call."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message, node_id)
        self.status_code = status_code
        self.response_body = response_body


__all__ = [
    "BaseNode",
    "ExecutionEnvironment",
    "NodeApiError",
    "NodeCancelledError",
    "NodeContext",
    "NodeOperationError",
    "NodeResult",
    "ProgressCallback",
    "TriggerData",
]
