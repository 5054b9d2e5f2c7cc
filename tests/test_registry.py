"""Tests for the node registry."""
from types import SimpleNamespace

import pytest

from node_registry import (
    NODE_PACK_ENTRY_POINT,
    NodePackManifest,
    NodeRegistry,
    NodeTypeDefinition,
    ParameterDefinition,
    RegistryError,
)
from node_registry import registry as registry_module
from node_sdk import BaseNode, ExecutionEnvironment, NodeResult


class EchoNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="echo",
        name="Echo",
        inputs=[ParameterDefinition(name="value", type="any")],
        outputs=[ParameterDefinition(name="value", type="any")],
    )

    def execute(self, context):
        return NodeResult.completed({"value": context.get("value")})


class WebhookOnlyNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="webhook-only",
        compatibility=["http_webhook"],
    )

    def execute(self, context):
        return NodeResult.completed()


class NoMetadataNode(BaseNode):
    def execute(self, context):
        return NodeResult.completed()


class TestRegister:
    """Test registration rules."""

    def test_register_and_lookup(self):
        registry = NodeRegistry()

        definition = registry.register(EchoNode)

        assert definition.type == "echo"
        assert registry.get_type("echo") is definition
        assert registry.get_class("echo") is EchoNode
        assert registry.has_type("echo")
        assert "echo" in registry
        assert len(registry) == 1
        assert list(registry) == [definition]

    def test_duplicate_type_rejected(self):
        registry = NodeRegistry()
        registry.register(EchoNode)

        with pytest.raises(RegistryError, match="already registered: echo"):
            registry.register(EchoNode)

    def test_missing_metadata_rejected(self):
        with pytest.raises(RegistryError, match="does not declare a node_type"):
            NodeRegistry().register(NoMetadataNode)

    def test_empty_type_id_rejected_by_metadata(self):
        with pytest.raises(ValueError):
            NodeTypeDefinition(type="  ")

    def test_type_id_override(self):
        registry = NodeRegistry()

        definition = registry.register(EchoNode, "echo-v2")

        assert definition.type == "echo-v2"
        assert EchoNode.node_type.type == "echo"
        assert registry.has_type("echo-v2")
        assert not registry.has_type("echo")

    def test_frozen_registry_rejects_registration(self):
        registry = NodeRegistry()
        registry.register(EchoNode)
        registry.freeze()

        with pytest.raises(RegistryError, match="frozen"):
            registry.register(WebhookOnlyNode)
        assert registry.frozen
        assert registry.get_type("echo") is not None


class TestCreate:
    """Test node instantiation."""

    def test_create_binds_node_and_environment(self, make_node):
        environment = ExecutionEnvironment(feature_flags={"beta": True})
        registry = NodeRegistry(environment)
        registry.register(EchoNode)
        node = make_node("n1", "echo")

        instance = registry.create(node)

        assert isinstance(instance, EchoNode)
        assert instance.node is node
        assert instance.environment is environment
        assert instance.environment.is_enabled("beta")
        assert instance.type_id == "echo"

    def test_create_unknown_type_returns_none(self, make_node):
        registry = NodeRegistry()

        assert registry.create(make_node("n1", "removed-type")) is None

    def test_instances_are_fresh(self, make_node):
        registry = NodeRegistry()
        registry.register(EchoNode)
        node = make_node("n1", "echo")

        assert registry.create(node) is not registry.create(node)


class TestListTypes:
    """Test catalogue listing."""

    def test_compatibility_filter(self):
        registry = NodeRegistry()
        registry.register(EchoNode)
        registry.register(WebhookOnlyNode)

        assert [d.type for d in registry.list_types()] == ["echo", "webhook-only"]
        assert [d.type for d in registry.list_types("http_webhook")] == ["echo", "webhook-only"]
        assert [d.type for d in registry.list_types("email_message")] == ["echo"]

    def test_core_pack_http_filter(self, registry):
        types = {d.type for d in registry.list_types("http_request")}

        assert "json-body" in types
        assert "http-request" in types
        assert "json-body" not in {d.type for d in registry.list_types("manual")}


class TestPacks:
    """Test pack registration and entry point discovery."""

    def test_register_pack(self):
        registry = NodeRegistry()
        manifest = NodePackManifest(name="demo", nodes=["echo"])

        registry.register_pack(manifest, {"echo": EchoNode})

        assert registry.list_packs() == [manifest]
        assert registry.has_type("echo")

    def test_discover_entry_points(self, monkeypatch):
        manifest = NodePackManifest(name="demo", nodes=["echo"])
        good = SimpleNamespace(name="demo", load=lambda: (lambda: (manifest, {"echo": EchoNode})))
        bare = SimpleNamespace(name="bare", load=lambda: (lambda: {"webhook-only": WebhookOnlyNode}))

        def broken_load():
            raise ImportError("no module named missing_pack")

        broken = SimpleNamespace(name="broken", load=broken_load)
        seen_groups = []

        def fake_entry_points(group):
            seen_groups.append(group)
            return [good, bare, broken]

        monkeypatch.setattr(registry_module, "entry_points", fake_entry_points)
        registry = NodeRegistry()

        count = registry.discover_entry_points()

        assert count == 2
        assert seen_groups == [NODE_PACK_ENTRY_POINT]
        assert [pack.name for pack in registry.list_packs()] == ["demo", "bare"]
        assert registry.has_type("echo")
        assert registry.has_type("webhook-only")

        # Second call is a no-op
        assert registry.discover_entry_points() == 2
        assert seen_groups == [NODE_PACK_ENTRY_POINT]

    def test_registries_are_independent(self):
        first = NodeRegistry()
        second = NodeRegistry()
        first.register(EchoNode)

        assert "echo" in first
        assert "echo" not in second


class TestNodeTypeDefinition:
    """Test node type metadata helpers."""

    def test_to_node(self):
        node = EchoNode.node_type.to_node("e1", x=5)

        assert node.id == "e1"
        assert node.name == "Echo"
        assert node.type == "echo"
        assert node.position.x == 5
        assert [p.name for p in node.inputs] == ["value"]

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            NodeTypeDefinition(type="slow", timeout_seconds=-1)

    def test_timeout_alias(self):
        definition = NodeTypeDefinition.model_validate({"type": "slow", "timeoutSeconds": 2.5})

        assert definition.timeout_seconds == 2.5
