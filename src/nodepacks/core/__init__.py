"""
Core Node Pack - Essential nodes.

This pack provides basic nodes for workflow operations:
- NumberInput / TextInput / JsonBody: Workflow entry values
- Addition, Subtraction, Multiplication, Division, Sum: Arithmetic
- ConditionalFork / ConditionalJoin: Branching
- StringTemplate / JsonStringExtractor: Text and JSON handling
- HttpRequest: Outbound HTTP calls
- SecretReader: Secret lookup through the credential provider
"""

from .nodes import (
    AdditionNode,
    ConditionalForkNode,
    ConditionalJoinNode,
    DivisionNode,
    HttpRequestNode,
    JsonBodyNode,
    JsonStringExtractorNode,
    MultiplicationNode,
    NumberInputNode,
    SecretReaderNode,
    StringTemplateNode,
    SubtractionNode,
    SumNode,
    TextInputNode,
)
from .manifest import MANIFEST, NODE_CLASSES, register_nodes

__all__ = [
    "AdditionNode",
    "ConditionalForkNode",
    "ConditionalJoinNode",
    "DivisionNode",
    "HttpRequestNode",
    "JsonBodyNode",
    "JsonStringExtractorNode",
    "MultiplicationNode",
    "NumberInputNode",
    "SecretReaderNode",
    "StringTemplateNode",
    "SubtractionNode",
    "SumNode",
    "TextInputNode",
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
