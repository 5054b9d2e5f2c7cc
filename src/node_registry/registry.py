"""
Node Registry - Catalogue of node types and factory for node instances.

Supports two discovery methods:
1. Manual registration (register / register_pack)
2. Entry-points (for plugin node packs)

A registry is owned by its host process. It holds one shared
ExecutionEnvironment that every created node receives, so nodes never
reach for process-wide globals.
"""

from __future__ import annotations

import logging
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Type

from node_sdk.basenode import ExecutionEnvironment

from .models import NodePackManifest, NodeTypeDefinition

if TYPE_CHECKING:
    from graph_runtime.models import Node
    from node_sdk.basenode import BaseNode


logger = logging.getLogger(__name__)

# Entry point group for node packs
NODE_PACK_ENTRY_POINT = "flowgraph.nodepacks"


class RegistryError(Exception):
    """Invalid registration (duplicate id, missing metadata, frozen registry)."""


class NodeRegistry:
    """
    Central registry mapping node type ids to implementations.

    Usage:
        registry = NodeRegistry(ExecutionEnvironment(credentials=provider))
        registry.discover_entry_points()

        definition = registry.get_type("addition")
        instance = registry.create(graph.get_node("3"))
    """

    def __init__(self, environment: Optional[ExecutionEnvironment] = None) -> None:
        self.environment = environment or ExecutionEnvironment()
        self._types: Dict[str, NodeTypeDefinition] = {}
        self._classes: Dict[str, Type["BaseNode"]] = {}
        self._packs: Dict[str, NodePackManifest] = {}
        self._frozen = False
        self._discovered = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        node_class: Type["BaseNode"],
        type_id: Optional[str] = None,
    ) -> NodeTypeDefinition:
        """
        Register a node class under its type id.

        Args:
            node_class: BaseNode subclass declaring `node_type`
            type_id: Override type id (uses node_type.type if not provided)

        Raises:
            RegistryError: If the class has no metadata, the id is already
                taken, or the registry is frozen
        """
        if self._frozen:
            raise RegistryError("Registry is frozen; no further registrations accepted")

        definition = getattr(node_class, "node_type", None)
        if not isinstance(definition, NodeTypeDefinition):
            raise RegistryError(f"{node_class.__name__} does not declare a node_type definition")

        if type_id is not None and type_id != definition.type:
            definition = definition.model_copy(update={"type": type_id})
        type_id = definition.type

        if type_id in self._types:
            raise RegistryError(f"Node type already registered: {type_id}")

        self._types[type_id] = definition
        self._classes[type_id] = node_class
        logger.debug(f"Registered node type: {type_id}")
        return definition

    def register_pack(
        self,
        manifest: NodePackManifest,
        node_classes: Dict[str, Type["BaseNode"]],
    ) -> None:
        """
        Register a node pack with its node classes.

        Args:
            manifest: Pack manifest
            node_classes: Map of type id -> node class
        """
        for type_id, node_class in node_classes.items():
            self.register(node_class, type_id)
        self._packs[manifest.name] = manifest
        logger.info(f"Registered pack '{manifest.name}' with {len(node_classes)} node types")

    def discover_entry_points(self, force: bool = False) -> int:
        """
        Discover node packs via entry points.

        Entry points are declared in pyproject.toml:

            [project.entry-points."flowgraph.nodepacks"]
            mypack = "mypack:register_nodes"

        The entry point is a function returning (manifest, node_classes)
        or just a node_classes dict.

        Returns:
            Number of packs discovered
        """
        if self._discovered and not force:
            return len(self._packs)

        count = 0
        for ep in entry_points(group=NODE_PACK_ENTRY_POINT):
            if ep.name in self._packs:
                continue
            try:
                result = ep.load()()
                if isinstance(result, tuple):
                    manifest, node_classes = result
                else:
                    node_classes = result
                    manifest = NodePackManifest(name=ep.name, nodes=list(node_classes))
                self.register_pack(manifest, node_classes)
                count += 1
                logger.info(f"Discovered node pack: {ep.name}")
            except (ImportError, RegistryError, TypeError, ValueError) as e:
                logger.error(f"Failed to load node pack '{ep.name}': {e}")

        self._discovered = True
        return count

    def freeze(self) -> None:
        """Reject further registrations; lookups stay available."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Lookup and instantiation
    # ------------------------------------------------------------------

    def get_type(self, type_id: str) -> Optional[NodeTypeDefinition]:
        """Get node type metadata by id."""
        return self._types.get(type_id)

    def get_class(self, type_id: str) -> Optional[Type["BaseNode"]]:
        return self._classes.get(type_id)

    def has_type(self, type_id: str) -> bool:
        return type_id in self._types

    def create(self, node: "Node") -> Optional["BaseNode"]:
        """
        Create an executable instance for a node declaration.

        Returns:
            Node instance bound to the registry environment, or None when
            the node's type has no implementation
        """
        node_class = self._classes.get(node.type)
        if node_class is None:
            return None
        return node_class(node, self.environment)

    def list_types(self, compatibility: Optional[str] = None) -> List[NodeTypeDefinition]:
        """
        List registered node types in registration order.

        Args:
            compatibility: Only types usable under this trigger kind
        """
        return [
            definition
            for definition in self._types.values()
            if definition.is_compatible(compatibility)
        ]

    def list_packs(self) -> List[NodePackManifest]:
        return list(self._packs.values())

    def __len__(self) -> int:
        """Number of registered node types."""
        return len(self._types)

    def __iter__(self) -> Iterator[NodeTypeDefinition]:
        return iter(self._types.values())

    def __contains__(self, type_id: object) -> bool:
        return type_id in self._types


__all__ = [
    "NODE_PACK_ENTRY_POINT",
    "NodeRegistry",
    "RegistryError",
]
