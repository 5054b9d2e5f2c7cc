"""
Node Registry - Discovery and registration of node implementations.

This package provides:
- NodeTypeDefinition: Static metadata about a node type
- NodePackManifest: Package metadata for a node pack
- NodeRegistry: Host-owned registry and node factory

Supports entry-points based discovery for plugin node packs.
"""

from .models import NodePackManifest, NodeTypeDefinition, ParameterDefinition, TriggerKind
from .registry import NODE_PACK_ENTRY_POINT, NodeRegistry, RegistryError

__all__ = [
    "NODE_PACK_ENTRY_POINT",
    "NodePackManifest",
    "NodeRegistry",
    "NodeTypeDefinition",
    "ParameterDefinition",
    "RegistryError",
    "TriggerKind",
]
