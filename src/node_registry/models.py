"""
Node Registry Models - Static metadata for node types and node packs.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from graph_runtime.models import Node, Parameter, Position


class TriggerKind(str, Enum):
    """Ways a workflow run can be started."""
    MANUAL = "manual"
    HTTP_REQUEST = "http_request"
    HTTP_WEBHOOK = "http_webhook"
    EMAIL_MESSAGE = "email_message"
    CRON = "cron"


class ParameterDefinition(BaseModel):
    """Declared input or output of a node type."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Parameter name")
    type: str = Field(..., description="Parameter type (see ParameterType)")
    value: Any = Field(None, description="Default value")
    required: bool = Field(False)
    repeated: bool = Field(False, description="Accepts multiple connections")
    description: str = Field("")

    def to_parameter(self) -> Parameter:
        return Parameter(
            name=self.name,
            type=self.type,
            value=self.value,
            required=self.required,
            repeated=self.repeated,
            description=self.description or None,
        )


class NodeTypeDefinition(BaseModel):
    """
    Metadata about a node type.

    Contains everything the editor needs to offer the node and the
    runtime needs to time-box it.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Identity
    type: str = Field(..., description="Unique node type identifier")
    name: str = Field("", description="Human-readable name")

    # Display
    description: str = Field("")
    category: str = Field("general")
    icon: str = Field("box")

    # Contract
    inputs: List[ParameterDefinition] = Field(default_factory=list)
    outputs: List[ParameterDefinition] = Field(default_factory=list)

    # Runtime
    compatibility: List[str] = Field(
        default_factory=list,
        description="Trigger kinds this node can run under (empty = all)",
    )
    timeout_seconds: Optional[float] = Field(
        None,
        alias="timeoutSeconds",
        description="Per-node time box; falls back to the runtime default",
    )

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("node type identifier must not be empty")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v < 0:
            raise ValueError("timeout_seconds must not be negative")
        return v

    def is_compatible(self, kind: Optional[str]) -> bool:
        if kind is None or not self.compatibility:
            return True
        return kind in self.compatibility

    def get_input(self, name: str) -> Optional[ParameterDefinition]:
        for parameter in self.inputs:
            if parameter.name == name:
                return parameter
        return None

    def to_node(self, node_id: str, name: Optional[str] = None, x: float = 0, y: float = 0) -> Node:
        """Create a Node declaration of this type, as the editor would."""
        return Node(
            id=node_id,
            name=name or self.name or self.type,
            type=self.type,
            position=Position(x=x, y=y),
            inputs=[parameter.to_parameter() for parameter in self.inputs],
            outputs=[parameter.to_parameter() for parameter in self.outputs],
        )


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of node types).

    Used for discovery and registration of bundled nodes.
    """
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Pack name (e.g., 'core')")
    version: str = Field("1.0.0")
    description: str = Field("")
    nodes: List[str] = Field(default_factory=list, description="Node type ids in this pack")
    entry_point: str = Field("", description="Module path of the pack")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodePackManifest":
        return cls.model_validate(data)


__all__ = [
    "NodePackManifest",
    "NodeTypeDefinition",
    "ParameterDefinition",
    "TriggerKind",
]
