"""
Core Node Pack Manifest - Registration function for entry-points.
"""

from node_registry.models import NodePackManifest

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


# Node classes by type
NODE_CLASSES = {
    node_class.node_type.type: node_class
    for node_class in (
        NumberInputNode,
        TextInputNode,
        JsonBodyNode,
        AdditionNode,
        SubtractionNode,
        MultiplicationNode,
        DivisionNode,
        SumNode,
        ConditionalForkNode,
        ConditionalJoinNode,
        StringTemplateNode,
        JsonStringExtractorNode,
        HttpRequestNode,
        SecretReaderNode,
    )
}


MANIFEST = NodePackManifest(
    name="core",
    version="1.0.0",
    description="Core nodes: parameters, math, branching, text, JSON, HTTP and secrets",
    nodes=list(NODE_CLASSES),
    entry_point="nodepacks.core",
)


def register_nodes():
    """
    Entry point function for node pack discovery.

    Returns tuple of (manifest, node_classes).
    """
    return MANIFEST, NODE_CLASSES


__all__ = [
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
