"""
flowgraph CLI - Main entry point.

Provides commands for:
- Validating workflow graphs
- Showing execution plans
- Running workflows with the registered node packs
- Listing available node types
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click
import yaml
from pydantic import ValidationError as ModelValidationError

from flowgraph.config import get_settings
from flowgraph.observability import get_logger, setup_logging, with_run_context
from graph_runtime import (
    ContinuationPolicy,
    Graph,
    GraphValidationFailed,
    WorkflowExecutor,
    build_plan,
    load_graph,
    validate,
)
from node_registry import NodeRegistry
from node_sdk import ExecutionEnvironment, StaticCredentialProvider, TriggerData


logger = get_logger(__name__)


def _load(graph_file: str) -> Graph:
    try:
        return load_graph(graph_file)
    except (ValueError, yaml.YAMLError, ModelValidationError) as e:
        raise click.ClickException(f"Could not load graph {graph_file}: {e}") from e


def _parse_value(raw: str) -> Any:
    """JSON literal if it parses, else the raw string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _parse_pairs(pairs: Tuple[str, ...], option: str) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise click.BadParameter(f"expected NAME=VALUE, got {pair!r}", param_hint=option)
        parsed[name] = value
    return parsed


def build_registry(secrets: Optional[Dict[str, str]] = None) -> NodeRegistry:
    """Registry with every discoverable node pack (the core pack at minimum)."""
    settings = get_settings()
    environment = ExecutionEnvironment(
        credentials=StaticCredentialProvider(secrets=secrets),
        config={"http_timeout_s": settings.http_timeout_s},
    )
    registry = NodeRegistry(environment)
    registry.discover_entry_points()
    if "core" not in {pack.name for pack in registry.list_packs()}:
        from nodepacks.core import register_nodes

        registry.register_pack(*register_nodes())
    registry.freeze()
    logger.debug(
        f"Registry ready: {len(registry)} node types from packs "
        f"{', '.join(pack.name for pack in registry.list_packs())}"
    )
    return registry


def _echo_validation_errors(errors) -> None:
    click.echo(f"Graph is invalid ({len(errors)} errors):")
    for error in errors:
        click.echo(f"  ✗ {error.type.value}: {error.message}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool):
    """flowgraph - Validate, plan and run workflow graphs."""
    ctx.ensure_object(dict)

    level = "DEBUG" if verbose else "ERROR" if quiet else "WARNING"
    setup_logging(level=level)

    ctx.obj["verbose"] = verbose


# ==============================================================================
# Graph Commands
# ==============================================================================

@cli.command("validate")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Print errors as JSON")
def validate_command(graph_file: str, as_json: bool):
    """
    Validate a workflow graph.

    GRAPH_FILE: Path to graph JSON or YAML
    """
    graph = _load(graph_file)
    errors = validate(graph)

    if as_json:
        click.echo(json.dumps([error.to_dict() for error in errors], indent=2))
    elif errors:
        _echo_validation_errors(errors)
    else:
        click.echo(f"Graph is valid ({len(graph.nodes)} nodes, {len(graph.connections)} connections)")

    if errors:
        sys.exit(1)


@cli.command("plan")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--levels", is_flag=True, help="Group nodes that can run in parallel")
def plan_command(graph_file: str, levels: bool):
    """
    Show the execution order of a workflow graph.

    GRAPH_FILE: Path to graph JSON or YAML
    """
    graph = _load(graph_file)
    errors = validate(graph)
    if errors:
        _echo_validation_errors(errors)
        sys.exit(1)

    plan = build_plan(graph)
    if levels:
        for index, level in enumerate(plan.levels):
            click.echo(f"Level {index}: {', '.join(level)}")
        return

    for index, node_id in enumerate(plan.order, start=1):
        node = graph.get_node(node_id)
        click.echo(f"{index}. {node_id} ({node.type if node else '?'})")


@cli.command("run")
@click.argument("graph_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "-i", "inputs", multiple=True, help="Trigger input NAME=VALUE (or NODE.NAME=VALUE)")
@click.option("--inputs-json", type=click.Path(exists=True, dir_okay=False), help="JSON file with trigger inputs")
@click.option("--secret", "secrets", multiple=True, help="Secret NAME=VALUE available to nodes")
@click.option("--workers", type=click.IntRange(min=1), help="Worker threads (default from settings)")
@click.option("--skip-dependents", is_flag=True, help="Skip nodes downstream of a failed node")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the run result as JSON")
def run_command(
    graph_file: str,
    inputs: Tuple[str, ...],
    inputs_json: Optional[str],
    secrets: Tuple[str, ...],
    workers: Optional[int],
    skip_dependents: bool,
    output: Optional[str],
):
    """
    Run a workflow graph.

    GRAPH_FILE: Path to graph JSON or YAML

    Examples:

        # Run with a trigger input
        flowgraph run ./workflow.json -i name=Ada

        # Parallel dispatch, skipping dependents of failed nodes
        flowgraph run ./workflow.json --workers 4 --skip-dependents
    """
    graph = _load(graph_file)

    trigger_inputs: Dict[str, Any] = {}
    if inputs_json:
        try:
            data = json.loads(Path(inputs_json).read_text(encoding="utf-8"))
        except ValueError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--inputs-json") from e
        if not isinstance(data, dict):
            raise click.BadParameter("must contain a JSON object", param_hint="--inputs-json")
        trigger_inputs.update(data)
    for name, raw in _parse_pairs(inputs, "--input").items():
        trigger_inputs[name] = _parse_value(raw)

    registry = build_registry(_parse_pairs(secrets, "--secret"))
    executor = WorkflowExecutor(
        registry,
        policy=ContinuationPolicy.SKIP_DEPENDENTS if skip_dependents else None,
        max_workers=workers,
    )

    click.echo(f"Executing workflow: {graph.name}")
    click.echo(f"Nodes: {len(graph.nodes)}")

    try:
        result = executor.run(
            graph,
            trigger_inputs=trigger_inputs,
            trigger=TriggerData(kind="manual", payload=trigger_inputs),
        )
    except GraphValidationFailed as e:
        _echo_validation_errors(e.errors)
        sys.exit(1)

    logger.info(
        f"Workflow finished with status {result.status.value}",
        extra=with_run_context(workflow_id=result.workflow_id, execution_id=result.execution_id),
    )

    click.echo(f"\nStatus: {result.status.value}")
    click.echo(f"Duration: {result.duration_ms:.2f}ms")

    for node_result in result.results:
        status_icon = {"completed": "✓", "error": "✗"}.get(node_result.status.value, "-")
        line = f"  {status_icon} {node_result.node_id}: {node_result.status.value}"
        if node_result.error:
            line += f" ({node_result.error})"
        elif node_result.blocked_by:
            line += f" (blocked by {node_result.blocked_by})"
        click.echo(line)

    if output:
        Path(output).write_text(json.dumps(result.to_dict(), indent=2, default=str), encoding="utf-8")
        click.echo(f"\nResult saved to: {output}")
    elif result.outputs:
        click.echo("\nOutputs:")
        click.echo(json.dumps(result.outputs, indent=2, default=str))

    if not result.is_success:
        sys.exit(1)


@cli.command("nodes")
@click.option("--compatibility", "-c", help="Only node types usable under this trigger kind")
def nodes_command(compatibility: Optional[str]):
    """List registered node types."""
    registry = build_registry()
    node_types = registry.list_types(compatibility)

    for definition in node_types:
        inputs = ", ".join(f"{p.name}:{p.type}" for p in definition.inputs)
        outputs = ", ".join(f"{p.name}:{p.type}" for p in definition.outputs)
        click.echo(f"{definition.type:<24} [{definition.category}] ({inputs}) -> ({outputs})")

    click.echo(f"\n{len(node_types)} node types")


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
