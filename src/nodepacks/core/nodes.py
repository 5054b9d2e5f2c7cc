"""
Core Nodes - Essential node implementations.

Numbers, branching, text, JSON extraction, request bodies, HTTP calls
and secrets.
Every node reads resolved inputs from its NodeContext and returns a
NodeResult; expected failures are raised as NodeOperationError.
"""

from __future__ import annotations

import logging
import re
from typing import Any, List, Tuple

from node_registry.models import NodeTypeDefinition, ParameterDefinition, TriggerKind
from node_sdk.basenode import BaseNode, NodeContext, NodeOperationError, NodeResult
from node_sdk.http import DEFAULT_TIMEOUT, send_request


logger = logging.getLogger(__name__)

_ALL_TRIGGERS = [kind.value for kind in TriggerKind]
_HTTP_TRIGGERS = [TriggerKind.HTTP_REQUEST.value, TriggerKind.HTTP_WEBHOOK.value]


def _number(context: NodeContext, name: str) -> float:
    """Required numeric input; numeric strings are accepted."""
    value = context.require(name)
    if isinstance(value, bool):
        raise NodeOperationError(f"Input '{name}' must be a number, got boolean")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value) if any(c in value for c in ".eE") else int(value)
        except ValueError:
            pass
    raise NodeOperationError(f"Input '{name}' must be a number, got {value!r}")


def _number_inputs(*names: str) -> List[ParameterDefinition]:
    return [ParameterDefinition(name=name, type="number", required=True) for name in names]


# ==============================================================================
# Parameters
# ==============================================================================

class NumberInputNode(BaseNode):
    """Emit a number, either its declared default or a trigger input."""

    node_type = NodeTypeDefinition(
        type="number-input",
        name="Number Input",
        description="Provides a number to the workflow",
        category="parameter",
        icon="hash",
        inputs=[ParameterDefinition(name="value", type="number", value=0)],
        outputs=[ParameterDefinition(name="value", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        return NodeResult.completed({"value": _number(context, "value")})


class TextInputNode(BaseNode):
    """Emit a string, either its declared default or a trigger input."""

    node_type = NodeTypeDefinition(
        type="text-input",
        name="Text Input",
        description="Provides text to the workflow",
        category="parameter",
        icon="type",
        inputs=[ParameterDefinition(name="value", type="string", value="")],
        outputs=[ParameterDefinition(name="value", type="string")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        return NodeResult.completed({"value": str(context.get("value", ""))})


class JsonBodyNode(BaseNode):
    """
    Expose the JSON body of the request that triggered the run.

    Only meaningful in HTTP-triggered workflows.
    """

    node_type = NodeTypeDefinition(
        type="json-body",
        name="JSON Body",
        description="Reads the JSON body of the triggering HTTP request",
        category="http",
        icon="braces",
        inputs=[ParameterDefinition(name="required", type="boolean", value=True)],
        outputs=[ParameterDefinition(name="value", type="json")],
        compatibility=_HTTP_TRIGGERS,
    )

    def execute(self, context: NodeContext) -> NodeResult:
        payload = context.trigger.payload
        body = payload.get("body") if "body" in payload else (payload or None)
        if body is None and context.get("required", True):
            return NodeResult.failed("JSON body is required")
        return NodeResult.completed({"value": body})


# ==============================================================================
# Math
# ==============================================================================

class AdditionNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="addition",
        name="Addition",
        description="Adds two numbers",
        category="math",
        icon="plus",
        inputs=_number_inputs("a", "b"),
        outputs=[ParameterDefinition(name="result", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        return NodeResult.completed({"result": _number(context, "a") + _number(context, "b")})


class SubtractionNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="subtraction",
        name="Subtraction",
        description="Subtracts b from a",
        category="math",
        icon="minus",
        inputs=_number_inputs("a", "b"),
        outputs=[ParameterDefinition(name="result", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        return NodeResult.completed({"result": _number(context, "a") - _number(context, "b")})


class MultiplicationNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="multiplication",
        name="Multiplication",
        description="Multiplies two numbers",
        category="math",
        icon="x",
        inputs=_number_inputs("a", "b"),
        outputs=[ParameterDefinition(name="result", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        return NodeResult.completed({"result": _number(context, "a") * _number(context, "b")})


class DivisionNode(BaseNode):
    node_type = NodeTypeDefinition(
        type="division",
        name="Division",
        description="Divides a by b",
        category="math",
        icon="divide",
        inputs=_number_inputs("a", "b"),
        outputs=[ParameterDefinition(name="result", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        divisor = _number(context, "b")
        if divisor == 0:
            return NodeResult.failed("Division by zero is not allowed")
        return NodeResult.completed({"result": _number(context, "a") / divisor})


class SumNode(BaseNode):
    """Sum every number routed into the repeated `values` input."""

    node_type = NodeTypeDefinition(
        type="sum",
        name="Sum",
        description="Adds up any number of connected values",
        category="math",
        icon="sigma",
        inputs=[ParameterDefinition(name="values", type="number", required=True, repeated=True)],
        outputs=[ParameterDefinition(name="result", type="number")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        values = context.require("values")
        if not isinstance(values, list):
            values = [values]
        total = 0
        for index, value in enumerate(values):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise NodeOperationError(f"Value #{index} must be a number, got {value!r}")
            total += value
        return NodeResult.completed({"result": total})


# ==============================================================================
# Control flow
# ==============================================================================

class ConditionalForkNode(BaseNode):
    """
    Route `value` to the `true` or `false` output.

    Only the chosen output is produced; nodes that depend solely on the
    other output are skipped by the dispatcher.
    """

    node_type = NodeTypeDefinition(
        type="conditional-fork",
        name="Conditional Fork",
        description="Sends the value down the branch selected by the condition",
        category="logic",
        icon="git-fork",
        inputs=[
            ParameterDefinition(name="condition", type="boolean", required=True),
            ParameterDefinition(name="value", type="any", required=True),
        ],
        outputs=[
            ParameterDefinition(name="true", type="any"),
            ParameterDefinition(name="false", type="any"),
        ],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        condition = context.require("condition")
        if not isinstance(condition, bool):
            raise NodeOperationError(f"Condition must be a boolean, got {condition!r}")
        value = context.require("value")
        return NodeResult.completed({"true" if condition else "false": value})


class ConditionalJoinNode(BaseNode):
    """Merge two exclusive branches; exactly one of `a` and `b` must arrive."""

    node_type = NodeTypeDefinition(
        type="conditional-join",
        name="Conditional Join",
        description="Passes on the value of whichever branch ran",
        category="logic",
        icon="git-merge",
        inputs=[
            ParameterDefinition(name="a", type="any"),
            ParameterDefinition(name="b", type="any"),
        ],
        outputs=[ParameterDefinition(name="result", type="any")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        has_a = context.inputs.get("a") is not None
        has_b = context.inputs.get("b") is not None
        if has_a and has_b:
            return NodeResult.failed("Conditional join received both inputs; exactly one branch may run")
        if not (has_a or has_b):
            return NodeResult.failed("Conditional join received neither input; exactly one branch must run")
        return NodeResult.completed({"result": context.inputs["a" if has_a else "b"]})


# ==============================================================================
# Text and JSON
# ==============================================================================

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")


class StringTemplateNode(BaseNode):
    """
    Substitute ${name} placeholders with values from `variables`.

    Unknown placeholders are left untouched and reported in `missing`.
    """

    node_type = NodeTypeDefinition(
        type="string-template",
        name="String Template",
        description="Fills ${name} placeholders in a template",
        category="text",
        icon="file-text",
        inputs=[
            ParameterDefinition(name="template", type="string", required=True),
            ParameterDefinition(name="variables", type="json", value={}),
        ],
        outputs=[
            ParameterDefinition(name="result", type="string"),
            ParameterDefinition(name="missing", type="array"),
        ],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        template = context.require("template")
        variables = context.get("variables", {})
        if not isinstance(template, str):
            raise NodeOperationError("Template must be a string")
        if not isinstance(variables, dict):
            raise NodeOperationError("Variables must be a JSON object")

        missing: List[str] = []

        def substitute(match: "re.Match[str]") -> str:
            name = match.group(1).strip()
            if name not in variables:
                if name not in missing:
                    missing.append(name)
                return match.group(0)
            return str(variables[name])

        return NodeResult.completed({
            "result": _PLACEHOLDER.sub(substitute, template),
            "missing": missing,
        })


_PATH_TOKEN = re.compile(r"\.?([^.\[\]]+)|\[(\d+)\]")


def parse_json_path(path: str) -> List[Any]:
    """Parse `$.a.b[0].c` (leading `$` optional) into keys and indices."""
    path = path.strip()
    if path.startswith("$"):
        path = path[1:]
    tokens: List[Any] = []
    position = 0
    while position < len(path):
        match = _PATH_TOKEN.match(path, position)
        if match is None:
            raise NodeOperationError(f"Invalid JSON path: {path!r}")
        key, index = match.groups()
        tokens.append(int(index) if index is not None else key)
        position = match.end()
    return tokens


def extract_json_path(data: Any, path: str) -> Tuple[bool, Any]:
    """Returns (found, value)."""
    current = data
    for token in parse_json_path(path):
        if isinstance(token, int):
            if not isinstance(current, list) or token >= len(current):
                return False, None
            current = current[token]
        else:
            if not isinstance(current, dict) or token not in current:
                return False, None
            current = current[token]
    return True, current


class JsonStringExtractorNode(BaseNode):
    """Extract a string from a JSON value by path."""

    node_type = NodeTypeDefinition(
        type="json-string-extractor",
        name="JSON String Extractor",
        description="Extracts a string from JSON using a path like $.user.name",
        category="json",
        icon="search",
        inputs=[
            ParameterDefinition(name="json", type="json", required=True),
            ParameterDefinition(name="path", type="string", required=True),
            ParameterDefinition(name="defaultValue", type="string"),
        ],
        outputs=[
            ParameterDefinition(name="value", type="string"),
            ParameterDefinition(name="found", type="boolean"),
        ],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        data = context.require("json")
        path = context.get("path")
        if not path:
            return NodeResult.failed("Path is required")
        if not isinstance(data, (dict, list)):
            return NodeResult.failed("Input must be a JSON object or array")

        found, value = extract_json_path(data, path)
        if found and isinstance(value, str):
            return NodeResult.completed({"value": value, "found": True})
        return NodeResult.completed({"value": context.get("defaultValue", ""), "found": False})


# ==============================================================================
# Network and secrets
# ==============================================================================

class HttpRequestNode(BaseNode):
    """
    HTTP Request - Make an outbound HTTP call.

    Non-2xx responses are returned as outputs, not failures; transport
    errors and timeouts fail the node.
    """

    node_type = NodeTypeDefinition(
        type="http-request",
        name="HTTP Request",
        description="Makes an HTTP request",
        category="net",
        icon="globe",
        inputs=[
            ParameterDefinition(name="url", type="string", required=True),
            ParameterDefinition(name="method", type="string", value="GET"),
            ParameterDefinition(name="headers", type="json", value={}),
            ParameterDefinition(name="query", type="json", value={}),
            ParameterDefinition(name="body", type="json"),
            ParameterDefinition(name="timeout", type="number", description="Seconds"),
        ],
        outputs=[
            ParameterDefinition(name="status", type="number"),
            ParameterDefinition(name="headers", type="json"),
            ParameterDefinition(name="body", type="any"),
        ],
        compatibility=_ALL_TRIGGERS,
        timeout_seconds=120,
    )

    def execute(self, context: NodeContext) -> NodeResult:
        url = context.require("url")
        method = str(context.get("method", "GET")).upper()
        if method not in ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"):
            raise NodeOperationError(f"Unsupported HTTP method: {method}")

        timeout = float(
            context.get("timeout") or self.environment.config.get("http_timeout_s", DEFAULT_TIMEOUT)
        )
        context.check_cancelled()

        response = send_request(
            method,
            url,
            headers=context.get("headers", {}),
            params=context.get("query", {}),
            body=context.get("body"),
            timeout=timeout,
            raise_for_status=False,
            node_id=context.node_id,
        )
        self.logger.debug(f"{method} {url} -> {response.status_code}")
        return NodeResult.completed({
            "status": response.status_code,
            "headers": response.headers,
            "body": response.body,
        })


class SecretReaderNode(BaseNode):
    """Read a named secret through the injected credential provider."""

    node_type = NodeTypeDefinition(
        type="secret-reader",
        name="Secret Reader",
        description="Reads a secret by name",
        category="secrets",
        icon="key",
        inputs=[ParameterDefinition(name="name", type="string", required=True)],
        outputs=[ParameterDefinition(name="value", type="secret")],
    )

    def execute(self, context: NodeContext) -> NodeResult:
        name = context.require("name")
        value = context.get_secret(name)
        if value is None:
            return NodeResult.failed(f"Secret not found: {name}")
        return NodeResult.completed({"value": value})


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
    "extract_json_path",
    "parse_json_path",
]
