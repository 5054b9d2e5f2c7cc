"""Tests for CLI commands."""
import json

import pytest
from click.testing import CliRunner

from flowgraph.cli import build_registry, cli


def _graph(nodes, connections, **extra):
    return {"name": "CLI graph", "nodes": nodes, "connections": connections, **extra}


def _number_input(node_id):
    return {
        "id": node_id,
        "type": "number-input",
        "inputs": [{"name": "value", "type": "number", "value": 0}],
        "outputs": [{"name": "value", "type": "number"}],
    }


def _binary(node_id, node_type):
    return {
        "id": node_id,
        "type": node_type,
        "inputs": [{"name": "a", "type": "number"}, {"name": "b", "type": "number"}],
        "outputs": [{"name": "result", "type": "number"}],
    }


def _edge(source, source_output, target, target_input):
    return {"source": source, "sourceOutput": source_output, "target": target, "targetInput": target_input}


ADDER = _graph(
    [_number_input("x"), _number_input("y"), _binary("add", "addition")],
    [_edge("x", "value", "add", "a"), _edge("y", "value", "add", "b")],
)

BROKEN = _graph(
    [_number_input("x"), {"id": "t", "type": "text-input", "inputs": [{"name": "value", "type": "string"}]}],
    [_edge("x", "value", "t", "value"), _edge("x", "value", "t", "value")],
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write_graph(tmp_path):
    def factory(data, name="graph.json"):
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return str(path)

    return factory


class TestValidateCommand:
    def test_valid_graph(self, runner, write_graph):
        result = runner.invoke(cli, ["validate", write_graph(ADDER)])

        assert result.exit_code == 0
        assert "Graph is valid (3 nodes, 2 connections)" in result.output

    def test_invalid_graph(self, runner, write_graph):
        result = runner.invoke(cli, ["validate", write_graph(BROKEN)])

        assert result.exit_code == 1
        assert "TYPE_MISMATCH: Type mismatch: number -> string" in result.output
        assert "DUPLICATE_CONNECTION" in result.output

    def test_json_output(self, runner, write_graph):
        result = runner.invoke(cli, ["validate", "--json", write_graph(BROKEN)])

        assert result.exit_code == 1
        assert '"type": "TYPE_MISMATCH"' in result.output
        assert '"connectionSource": "x"' in result.output

    def test_unreadable_graph(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")

        result = runner.invoke(cli, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Could not load graph" in result.output


class TestPlanCommand:
    def test_order(self, runner, write_graph):
        result = runner.invoke(cli, ["plan", write_graph(ADDER)])

        assert result.exit_code == 0
        assert "1. x (number-input)" in result.output
        assert "3. add (addition)" in result.output

    def test_levels(self, runner, write_graph):
        result = runner.invoke(cli, ["plan", "--levels", write_graph(ADDER)])

        assert result.exit_code == 0
        assert "Level 0: x, y" in result.output
        assert "Level 1: add" in result.output

    def test_invalid_graph_is_not_planned(self, runner, write_graph):
        result = runner.invoke(cli, ["plan", write_graph(BROKEN)])

        assert result.exit_code == 1
        assert "Graph is invalid" in result.output


class TestRunCommand:
    def test_run_with_inputs(self, runner, write_graph):
        result = runner.invoke(cli, ["run", write_graph(ADDER), "-i", "x.value=2", "-i", "y.value=5"])

        assert result.exit_code == 0, result.output
        assert "Status: completed" in result.output
        assert "✓ add: completed" in result.output
        assert '"result": 7' in result.output

    def test_run_yaml_with_inputs_file_and_output(self, runner, tmp_path):
        import yaml

        graph_path = tmp_path / "graph.yaml"
        graph_path.write_text(yaml.safe_dump(ADDER))
        inputs_path = tmp_path / "inputs.json"
        inputs_path.write_text(json.dumps({"x.value": 1, "y.value": 1}))
        output_path = tmp_path / "result.json"

        result = runner.invoke(
            cli,
            ["run", str(graph_path), "--inputs-json", str(inputs_path), "--workers", "2", "-o", str(output_path)],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(output_path.read_text())
        assert data["status"] == "completed"
        assert data["results"][-1]["outputs"] == {"result": 2}

    def test_run_failure_exit_code(self, runner, write_graph):
        graph = _graph(
            [_number_input("x"), _number_input("y"), _binary("div", "division"), _binary("add", "addition")],
            [_edge("x", "value", "div", "a"), _edge("y", "value", "div", "b"), _edge("div", "result", "add", "a")],
        )

        result = runner.invoke(cli, ["run", write_graph(graph), "--skip-dependents", "-i", "add.b=1"])

        assert result.exit_code == 1
        assert "Status: error" in result.output
        assert "✗ div: error (Division by zero is not allowed)" in result.output
        assert "add: skipped (blocked by div)" in result.output

    def test_run_secret(self, runner, write_graph):
        graph = _graph(
            [{
                "id": "s",
                "type": "secret-reader",
                "inputs": [{"name": "name", "type": "string", "value": "TOKEN"}],
                "outputs": [{"name": "value", "type": "secret"}],
            }],
            [],
        )

        result = runner.invoke(cli, ["run", write_graph(graph), "--secret", "TOKEN=abc"])

        assert result.exit_code == 0, result.output
        assert '"value": "abc"' in result.output

    def test_run_invalid_graph(self, runner, write_graph):
        result = runner.invoke(cli, ["run", write_graph(BROKEN)])

        assert result.exit_code == 1
        assert "Graph is invalid" in result.output

    def test_bad_input_pair(self, runner, write_graph):
        result = runner.invoke(cli, ["run", write_graph(ADDER), "-i", "novalue"])

        assert result.exit_code == 2
        assert "expected NAME=VALUE" in result.output


class TestNodesCommand:
    def test_lists_core_nodes(self, runner):
        result = runner.invoke(cli, ["nodes"])

        assert result.exit_code == 0
        assert "addition" in result.output
        assert "json-body" in result.output

    def test_compatibility_filter(self, runner):
        result = runner.invoke(cli, ["nodes", "--compatibility", "manual"])

        assert result.exit_code == 0
        assert "addition" in result.output
        assert "json-body" not in result.output


class TestBuildRegistry:
    def test_core_pack_registered_and_frozen(self):
        registry = build_registry({"A": "b"})

        assert "addition" in registry
        assert registry.frozen
        assert registry.environment.credentials.get_secret("A") == "b"
