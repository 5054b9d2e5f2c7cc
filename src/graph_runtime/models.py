"""
Graph Models - Declarative structures for workflow graphs.

A graph is a list of typed nodes plus the connections routing a named
output of one node into a named input of another. The models are
deliberately permissive: a partially broken graph still parses so the
validator can report on it.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ParameterType(str, Enum):
    """Closed vocabulary of parameter types."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    ARRAY = "array"
    IMAGE = "image"
    AUDIO = "audio"
    DOCUMENT = "document"
    BLOB = "blob"
    GEOJSON = "geojson"
    DATE = "date"
    SECRET = "secret"
    ANY = "any"


ANY_TYPE = ParameterType.ANY.value


class Position(BaseModel):
    """Node position on the editor canvas."""
    x: float = 0
    y: float = 0


class Parameter(BaseModel):
    """
    A named, typed input or output slot on a node.

    Example: {"name": "prompt", "type": "string", "value": "Hello"}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Parameter name (unique per side of a node)")
    type: str = Field(..., description="Parameter type, see ParameterType")
    value: Any = Field(None, description="Declared default value")
    required: bool = Field(False)
    repeated: bool = Field(False, description="Accepts one value per incoming edge")
    description: Optional[str] = None


class Node(BaseModel):
    """
    A node declaration in a graph.

    `type` selects the implementation in the node registry.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Node id (unique within a graph)")
    name: str = Field("", description="Display name")
    type: str = Field(..., description="Node type identifier")
    description: Optional[str] = None
    position: Position = Field(default_factory=Position)
    inputs: List[Parameter] = Field(default_factory=list)
    outputs: List[Parameter] = Field(default_factory=list)
    error: Optional[str] = None

    def get_input(self, name: str) -> Optional[Parameter]:
        for parameter in self.inputs:
            if parameter.name == name:
                return parameter
        return None

    def get_output(self, name: str) -> Optional[Parameter]:
        for parameter in self.outputs:
            if parameter.name == name:
                return parameter
        return None


class Edge(BaseModel):
    """
    Directed data-flow link between two nodes.

    Example: {"source": "1", "sourceOutput": "out", "target": "2", "targetInput": "in"}
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: str = Field(..., description="Source node id")
    target: str = Field(..., description="Target node id")
    source_output: str = Field(..., alias="sourceOutput")
    target_input: str = Field(..., alias="targetInput")

    @property
    def key(self) -> tuple:
        """Canonical identity: (source, sourceOutput) -> (target, targetInput)."""
        return (self.source, self.source_output, self.target, self.target_input)

    def describe(self) -> str:
        return f"{self.source}.{self.source_output} -> {self.target}.{self.target_input}"


class Graph(BaseModel):
    """
    Complete workflow graph.

    The edge list is accepted under either `connections` or `edges`.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, description="Workflow id")
    name: str = Field("Unnamed Workflow")
    nodes: List[Node] = Field(default_factory=list)
    connections: List[Edge] = Field(
        default_factory=list,
        validation_alias=AliasChoices("connections", "edges"),
    )

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by id (first declaration wins)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming(self, node_id: str) -> List[Edge]:
        """Edges whose target is `node_id`, in declaration order."""
        return [edge for edge in self.connections if edge.target == node_id]

    def outgoing(self, node_id: str) -> List[Edge]:
        """Edges whose source is `node_id`, in declaration order."""
        return [edge for edge in self.connections if edge.source == node_id]

    def upstream_ids(self, node_id: str) -> List[str]:
        seen: List[str] = []
        for edge in self.incoming(node_id):
            if edge.source not in seen:
                seen.append(edge.source)
        return seen

    def downstream_ids(self, node_id: str) -> List[str]:
        seen: List[str] = []
        for edge in self.outgoing(node_id):
            if edge.target not in seen:
                seen.append(edge.target)
        return seen

    def root_nodes(self) -> List[Node]:
        """Nodes with no incoming edge, in declaration order."""
        targets = {edge.target for edge in self.connections}
        return [node for node in self.nodes if node.id not in targets]


def parse_graph(data: Dict[str, Any]) -> Graph:
    """Parse a serialized graph into a Graph."""
    return Graph.model_validate(data)


def load_graph(path: Union[str, Path]) -> Graph:
    """Load a graph from a .json or .yaml/.yml file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    return parse_graph(data)


__all__ = [
    "ANY_TYPE",
    "Edge",
    "Graph",
    "Node",
    "Parameter",
    "ParameterType",
    "Position",
    "load_graph",
    "parse_graph",
]
