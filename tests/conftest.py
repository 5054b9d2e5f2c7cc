"""Pytest configuration and fixtures."""
import logging
import os

import pytest

# Set test environment variables
os.environ["FLOWGRAPH_ENV"] = "test"
os.environ["FLOWGRAPH_LOG_JSON"] = "false"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test sees settings rebuilt from the environment."""
    from flowgraph.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def restore_root_logging():
    """CLI tests reconfigure the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def credentials():
    """Stub credential provider."""
    from node_sdk import StaticCredentialProvider

    return StaticCredentialProvider(
        secrets={"API_KEY": "s3cret"},
        integrations={
            "gh-1": {
                "name": "GitHub",
                "provider": "github",
                "token": "gho_token",
                "refreshToken": "ghr_refresh",
            }
        },
    )


@pytest.fixture
def environment(credentials):
    from node_sdk import ExecutionEnvironment

    return ExecutionEnvironment(credentials=credentials, config={"http_timeout_s": 5})


@pytest.fixture
def registry(environment):
    """Fresh registry with the core node pack."""
    from node_registry import NodeRegistry
    from nodepacks.core import register_nodes

    registry = NodeRegistry(environment)
    registry.register_pack(*register_nodes())
    return registry


@pytest.fixture
def make_node():
    """Build a Node from (name, type) tuples."""
    from graph_runtime import Node, Parameter

    def factory(node_id, node_type="test", inputs=(), outputs=(), **kwargs):
        def params(entries):
            result = []
            for entry in entries:
                if isinstance(entry, Parameter):
                    result.append(entry)
                else:
                    name, param_type = entry
                    result.append(Parameter(name=name, type=param_type))
            return result

        return Node(
            id=node_id,
            name=kwargs.pop("name", node_id),
            type=node_type,
            inputs=params(inputs),
            outputs=params(outputs),
            **kwargs,
        )

    return factory


@pytest.fixture
def make_edge():
    from graph_runtime import Edge

    def factory(source, source_output, target, target_input):
        return Edge(
            source=source,
            source_output=source_output,
            target=target,
            target_input=target_input,
        )

    return factory


@pytest.fixture
def linear_graph(make_node, make_edge):
    """1.out -> 2.in, both number typed."""
    from graph_runtime import Graph

    return Graph(
        id="linear",
        name="Linear pipeline",
        nodes=[
            make_node("1", outputs=[("out", "number")]),
            make_node("2", inputs=[("in", "number")], outputs=[("out", "number")]),
        ],
        connections=[make_edge("1", "out", "2", "in")],
    )
