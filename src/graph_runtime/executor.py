"""
Workflow Executor - DAG dispatch engine.

Walks a planned order, resolves each node's inputs from upstream
outputs (or trigger inputs), invokes the node's execution contract and
records one ExecutionResult per node.

Two dispatch modes:
- Sequential (default): strictly one node at a time in plan order
- Concurrent (max_workers > 1): a node launches as soon as every
  upstream node has finished, using a dependency counter per node

Both modes report results in plan order, so deterministic nodes give
identical results either way.

A node that completes without one of its declared outputs leaves that
output inactive; dependents whose required inputs are only wired to
inactive outputs are skipped (conditional branching).
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from flowgraph.config import Settings, get_settings
from flowgraph.observability import with_run_context
from node_sdk.basenode import NodeContext, NodeOperationError, NodeResult, TriggerData
from node_sdk.cancellation import CancellationToken, NodeCancelledError

from .errors import GraphValidationFailed, NodeTimeoutError, NodeTypeNotImplementedError
from .models import Edge, Graph, Node, parse_graph
from .planner import build_plan
from .validation import validate

if TYPE_CHECKING:
    from node_registry.registry import NodeRegistry
    from node_sdk.basenode import BaseNode


logger = logging.getLogger(__name__)

# How often a waiting dispatcher re-checks cancellation and deadlines
POLL_INTERVAL_S = 0.02


class NodeStatus(str, Enum):
    """Outcome of one node dispatch."""
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"


class WorkflowStatus(str, Enum):
    """Overall workflow execution status."""
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class SkipReason(str, Enum):
    """Why a node was skipped."""
    UPSTREAM_FAILURE = "upstream_failure"
    CONDITIONAL_BRANCH = "conditional_branch"


class ContinuationPolicy(str, Enum):
    """
    What the dispatcher does with nodes downstream of a failed node.

    BEST_EFFORT keeps dispatching them with absent inputs and lets each
    node decide; SKIP_DEPENDENTS records them as skipped.
    """
    BEST_EFFORT = "best_effort"
    SKIP_DEPENDENTS = "skip_dependents"


@dataclass
class ExecutionResult:
    """Result of dispatching a single node."""
    node_id: str
    status: NodeStatus
    outputs: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    duration_ms: float = 0
    blocked_by: Optional[str] = None
    skip_reason: Optional[SkipReason] = None

    @property
    def is_success(self) -> bool:
        return self.status == NodeStatus.COMPLETED

    @property
    def is_error(self) -> bool:
        return self.status == NodeStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"nodeId": self.node_id, "status": self.status.value}
        if self.status == NodeStatus.COMPLETED:
            data["outputs"] = dict(self.outputs)
        if self.error is not None:
            data["error"] = self.error
        if self.blocked_by is not None:
            data["blockedBy"] = self.blocked_by
        if self.skip_reason is not None:
            data["skipReason"] = self.skip_reason.value
        data["durationMs"] = round(self.duration_ms, 3)
        return data


@dataclass
class WorkflowResult:
    """
    Result of a complete workflow run.
    """
    workflow_id: Optional[str]
    execution_id: str
    status: WorkflowStatus
    results: List[ExecutionResult] = field(default_factory=list)
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED

    @property
    def outputs(self) -> Dict[str, Dict[str, Any]]:
        """node id -> outputs, for completed nodes."""
        return {r.node_id: r.outputs for r in self.results if r.is_success}

    @property
    def errors(self) -> Dict[str, str]:
        """node id -> error message, for failed nodes."""
        return {r.node_id: r.error or "" for r in self.results if r.is_error}

    def get(self, node_id: str) -> Optional[ExecutionResult]:
        for result in self.results:
            if result.node_id == node_id:
                return result
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "executionId": self.execution_id,
            "status": self.status.value,
            "durationMs": round(self.duration_ms, 3),
            "results": [r.to_dict() for r in self.results],
        }


NodeStartCallback = Callable[[str], None]
NodeResultCallback = Callable[[ExecutionResult], None]
ProgressCallback = Callable[[str, float], None]


def resolve_inputs(
    graph: Graph,
    node: Node,
    results: Dict[str, ExecutionResult],
    trigger_inputs: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Resolve the input values for one node.

    For every declared input: start from the declared default; an input
    without incoming edges may be seeded from trigger inputs (the key
    "<nodeId>.<name>" wins over a bare "<name>"); otherwise the values
    routed over incoming edges apply, the last edge in declaration order
    winning unless the input is repeated, in which case all routed
    values are passed as a list. Unresolved inputs are left out.
    """
    trigger_inputs = trigger_inputs or {}
    incoming = graph.incoming(node.id)
    values: Dict[str, Any] = {}

    for parameter in node.inputs:
        name = parameter.name
        if parameter.value is not None:
            values[name] = parameter.value

        edges = [edge for edge in incoming if edge.target_input == name]
        if not edges:
            scoped = f"{node.id}.{name}"
            if scoped in trigger_inputs:
                values[name] = trigger_inputs[scoped]
            elif name in trigger_inputs:
                values[name] = trigger_inputs[name]
            continue

        routed = []
        for edge in edges:
            source = results.get(edge.source)
            if source is None or not source.is_success:
                continue
            if edge.source_output in source.outputs:
                routed.append(source.outputs[edge.source_output])

        if not routed:
            continue
        values[name] = routed if parameter.repeated else routed[-1]

    return values


def run_with_timeout(
    func: Callable[[], Any],
    timeout_seconds: Optional[float],
    cancellation: CancellationToken,
    name: str = "node",
) -> Tuple[Any, str]:
    """
    Run a function on its own thread, bounded by a timeout and a token.

    Returns: (result, outcome) where outcome is "finished", "timeout"
    or "cancelled". Exceptions raised by func are re-raised here.
    Python threads can't be killed; an abandoned thread keeps running
    until it notices its token.
    """
    holder: Dict[str, Any] = {}
    done = threading.Event()

    def target() -> None:
        try:
            holder["result"] = func()
        except Exception as e:
            holder["error"] = e
        finally:
            done.set()

    thread = threading.Thread(target=target, name=f"flowgraph-{name}", daemon=True)
    thread.start()

    deadline = time.monotonic() + timeout_seconds if timeout_seconds else None
    while not done.wait(POLL_INTERVAL_S):
        if cancellation.cancelled:
            return None, "cancelled"
        if deadline is not None and time.monotonic() >= deadline:
            return None, "timeout"

    # Whatever a node produced after the run was cancelled is partial
    if cancellation.cancelled:
        return None, "cancelled"
    if "error" in holder:
        raise holder["error"]
    return holder.get("result"), "finished"


@dataclass
class _RunState:
    """Mutable state of one execute() call."""
    graph: Graph
    order: List[str]
    trigger_inputs: Dict[str, Any]
    trigger: TriggerData
    cancellation: CancellationToken
    workflow_id: Optional[str]
    organization_id: Optional[str]
    execution_id: Optional[str]
    results: Dict[str, ExecutionResult] = field(default_factory=dict)
    halted: bool = False

    def log_extra(self, node: Optional[Node] = None) -> Dict[str, Any]:
        return with_run_context(
            workflow_id=self.workflow_id,
            execution_id=self.execution_id,
            node_id=node.id if node else None,
            node_type=node.type if node else None,
        )


class WorkflowExecutor:
    """
    Workflow executor.

    Executes a planned workflow against a node registry, respecting:
    - Node dependencies (plan order or dependency counters)
    - Per-node timeouts and run cancellation
    - The continuation policy after node errors
    - Fail-fast on node types without an implementation

    Usage:
        executor = WorkflowExecutor(registry)
        result = executor.run(graph, trigger_inputs={"name": "Ada"})
    """

    def __init__(
        self,
        registry: "NodeRegistry",
        settings: Optional[Settings] = None,
        policy: Optional[Union[ContinuationPolicy, str]] = None,
        max_workers: Optional[int] = None,
        halt_on_missing_implementation: Optional[bool] = None,
        on_node_start: Optional[NodeStartCallback] = None,
        on_node_complete: Optional[NodeResultCallback] = None,
        on_node_error: Optional[NodeResultCallback] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        """
        Initialize executor.

        Args:
            registry: Registry used to instantiate nodes
            settings: Runtime settings (process settings if not provided)
            policy: Continuation policy after a node error
            max_workers: Worker threads; 1 dispatches sequentially
            halt_on_missing_implementation: Abort the run on a missing node type
            on_node_start: Called with the node id before a node runs
            on_node_complete: Called with each completed result
            on_node_error: Called with each error result
            on_progress: Receives (node_id, fraction) progress reports
        """
        self.registry = registry
        self.settings = settings or get_settings()
        self.policy = ContinuationPolicy(policy or self.settings.continuation_policy)
        self.max_workers = max_workers or self.settings.max_workers
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.halt_on_missing_implementation = (
            self.settings.halt_on_missing_implementation
            if halt_on_missing_implementation is None
            else halt_on_missing_implementation
        )
        self._on_node_start = on_node_start
        self._on_node_complete = on_node_complete
        self._on_node_error = on_node_error
        self._on_progress = on_progress

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(
        self,
        graph: Union[Graph, Dict[str, Any]],
        trigger_inputs: Optional[Dict[str, Any]] = None,
        trigger: Optional[TriggerData] = None,
        cancellation: Optional[CancellationToken] = None,
        workflow_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        execution_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Validate, plan and execute a workflow.

        Raises:
            GraphValidationFailed: If the graph has definition errors
        """
        start_time = time.perf_counter()

        if isinstance(graph, dict):
            graph = parse_graph(graph)

        errors = validate(graph)
        if errors:
            raise GraphValidationFailed(errors)

        plan = build_plan(graph)
        cancellation = cancellation or CancellationToken()
        workflow_id = workflow_id or graph.id
        execution_id = execution_id or uuid.uuid4().hex

        results = self.execute(
            graph,
            plan.order,
            trigger_inputs=trigger_inputs,
            trigger=trigger,
            cancellation=cancellation,
            workflow_id=workflow_id,
            organization_id=organization_id,
            execution_id=execution_id,
        )

        if cancellation.cancelled:
            status = WorkflowStatus.CANCELLED
        elif any(r.is_error or r.skip_reason == SkipReason.UPSTREAM_FAILURE for r in results):
            status = WorkflowStatus.ERROR
        else:
            status = WorkflowStatus.COMPLETED

        return WorkflowResult(
            workflow_id=workflow_id,
            execution_id=execution_id,
            status=status,
            results=results,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    def execute(
        self,
        graph: Graph,
        order: Sequence[str],
        trigger_inputs: Optional[Dict[str, Any]] = None,
        trigger: Optional[TriggerData] = None,
        cancellation: Optional[CancellationToken] = None,
        workflow_id: Optional[str] = None,
        organization_id: Optional[str] = None,
        execution_id: Optional[str] = None,
    ) -> List[ExecutionResult]:
        """
        Execute nodes of a validated graph in the given order.

        Returns:
            One ExecutionResult per dispatched node, in plan order. Nodes
            never dispatched (fail-fast halt, cancellation) are absent.
        """
        state = _RunState(
            graph=graph,
            order=list(order),
            trigger_inputs=dict(trigger_inputs or {}),
            trigger=trigger or TriggerData(),
            cancellation=cancellation or CancellationToken(),
            workflow_id=workflow_id or graph.id,
            organization_id=organization_id,
            execution_id=execution_id,
        )

        logger.info(
            f"Executing workflow {state.workflow_id or graph.name} "
            f"({len(state.order)} nodes, workers={self.max_workers}, policy={self.policy.value})",
            extra=state.log_extra(),
        )

        if self.max_workers > 1:
            self._execute_concurrent(state)
        else:
            self._execute_sequential(state)

        if state.cancellation.cancelled:
            logger.warning(
                f"Workflow cancelled after {len(state.results)} of {len(state.order)} nodes",
                extra=state.log_extra(),
            )

        return [state.results[node_id] for node_id in state.order if node_id in state.results]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _execute_sequential(self, state: _RunState) -> None:
        for node_id in state.order:
            if state.cancellation.cancelled or state.halted:
                break
            result = self._dispatch(state, node_id)
            if result is not None:
                state.results[node_id] = result

    def _execute_concurrent(self, state: _RunState) -> None:
        """Launch each node once all of its upstream nodes have finished."""
        planned = set(state.order)
        position = {node_id: index for index, node_id in enumerate(state.order)}
        remaining: Dict[str, int] = {}
        downstream: Dict[str, List[str]] = {node_id: [] for node_id in state.order}
        for node_id in state.order:
            deps = [dep for dep in state.graph.upstream_ids(node_id) if dep in planned]
            remaining[node_id] = len(deps)
            for dep in deps:
                downstream[dep].append(node_id)

        ready = [node_id for node_id in state.order if remaining[node_id] == 0]

        with ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="flowgraph-dispatch",
        ) as pool:
            in_flight: Dict[Future, str] = {}

            while ready or in_flight:
                if not (state.cancellation.cancelled or state.halted):
                    for node_id in ready:
                        in_flight[pool.submit(self._dispatch, state, node_id)] = node_id
                ready = []
                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in sorted(done, key=lambda f: position[in_flight[f]]):
                    node_id = in_flight.pop(future)
                    result = future.result()
                    if result is None:
                        continue
                    # Single writer per node id
                    state.results[node_id] = result
                    for child in downstream[node_id]:
                        remaining[child] -= 1
                        if remaining[child] == 0:
                            ready.append(child)
                ready.sort(key=position.__getitem__)

    # ------------------------------------------------------------------
    # Node dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, state: _RunState, node_id: str) -> Optional[ExecutionResult]:
        """
        Dispatch one node.

        Returns None when the run was cancelled while the node was in
        flight; its partial result is discarded.
        """
        node = state.graph.get_node(node_id)
        if node is None:
            return self._record_error(state, None, ExecutionResult(
                node_id=node_id,
                status=NodeStatus.ERROR,
                error=f"Node not found in graph: {node_id}",
            ))

        if self.policy == ContinuationPolicy.SKIP_DEPENDENTS:
            blocked_by = self._blocking_failure(state, node_id)
            if blocked_by is not None:
                logger.info(
                    f"Skipping node {node_id}: upstream node {blocked_by} failed",
                    extra=state.log_extra(node),
                )
                return ExecutionResult(
                    node_id=node_id,
                    status=NodeStatus.SKIPPED,
                    blocked_by=blocked_by,
                    skip_reason=SkipReason.UPSTREAM_FAILURE,
                )

        inputs = resolve_inputs(state.graph, node, state.results, state.trigger_inputs)

        branch = self._inactive_branch(state, node, inputs)
        if branch is not None:
            logger.info(
                f"Skipping node {node_id}: inactive branch of node {branch}",
                extra=state.log_extra(node),
            )
            return ExecutionResult(
                node_id=node_id,
                status=NodeStatus.SKIPPED,
                blocked_by=branch,
                skip_reason=SkipReason.CONDITIONAL_BRANCH,
            )

        if self._on_node_start:
            self._on_node_start(node_id)

        try:
            instance = self.registry.create(node)
        except Exception as e:
            logger.debug(f"Node {node.id} could not be created", exc_info=True, extra=state.log_extra(node))
            return self._record_error(state, node, ExecutionResult(
                node_id=node_id,
                status=NodeStatus.ERROR,
                error=str(e) or type(e).__name__,
            ))
        if instance is None:
            missing = NodeTypeNotImplementedError(node.id, node.type)
            if self.halt_on_missing_implementation:
                state.halted = True
            logger.error(
                f"{missing.message} (node {node.id}"
                f"{', halting run' if self.halt_on_missing_implementation else ''})",
                extra=state.log_extra(node),
            )
            return self._record_error(state, node, ExecutionResult(
                node_id=node_id,
                status=NodeStatus.ERROR,
                error=missing.message,
            ))

        result = self._invoke(state, node, instance, inputs)
        if result is None:
            return None
        if result.is_error:
            return self._record_error(state, node, result)

        logger.debug(f"Node {node_id} completed in {result.duration_ms:.1f}ms", extra=state.log_extra(node))
        if self._on_node_complete:
            self._on_node_complete(result)
        return result

    def _invoke(
        self,
        state: _RunState,
        node: Node,
        instance: "BaseNode",
        inputs: Dict[str, Any],
    ) -> Optional[ExecutionResult]:
        """Run the node's execute() inside its time box."""
        token = state.cancellation.child()
        context = NodeContext(
            node_id=node.id,
            inputs=inputs,
            workflow_id=state.workflow_id,
            organization_id=state.organization_id,
            execution_id=state.execution_id,
            trigger=state.trigger,
            environment=instance.environment,
            on_progress=self._on_progress,
            cancellation=token,
        )
        timeout = self._timeout_for(node)

        logger.debug(f"Executing node: {node.id} ({node.type})", extra=state.log_extra(node))
        start_time = time.perf_counter()

        try:
            outcome, status = run_with_timeout(
                lambda: instance.execute(context),
                timeout,
                state.cancellation,
                name=node.id,
            )
        except NodeCancelledError:
            if state.cancellation.cancelled:
                return None
            outcome, status = NodeResult.failed("Execution cancelled"), "finished"
        except NodeOperationError as e:
            outcome, status = NodeResult.failed(e.message), "finished"
        except Exception as e:
            logger.debug(f"Node {node.id} raised", exc_info=True, extra=state.log_extra(node))
            outcome, status = NodeResult.failed(str(e) or type(e).__name__), "finished"

        duration = (time.perf_counter() - start_time) * 1000

        if status == "cancelled":
            token.cancel("Run cancelled")
            return None
        if status == "timeout":
            token.cancel("Timed out")
            timed_out = NodeTimeoutError(node.id, timeout or 0)
            return ExecutionResult(
                node_id=node.id,
                status=NodeStatus.ERROR,
                error=timed_out.message,
                duration_ms=duration,
            )

        if not isinstance(outcome, NodeResult):
            return ExecutionResult(
                node_id=node.id,
                status=NodeStatus.ERROR,
                error=f"Node returned {type(outcome).__name__}, expected NodeResult",
                duration_ms=duration,
            )

        if outcome.is_success:
            return ExecutionResult(
                node_id=node.id,
                status=NodeStatus.COMPLETED,
                outputs=dict(outcome.outputs),
                duration_ms=duration,
            )
        return ExecutionResult(
            node_id=node.id,
            status=NodeStatus.ERROR,
            error=outcome.error,
            duration_ms=duration,
        )

    def _record_error(
        self,
        state: _RunState,
        node: Optional[Node],
        result: ExecutionResult,
    ) -> ExecutionResult:
        logger.warning(f"Node {result.node_id} failed: {result.error}", extra=state.log_extra(node))
        if self._on_node_error:
            self._on_node_error(result)
        return result

    def _timeout_for(self, node: Node) -> Optional[float]:
        """Node type timeout, else the settings default; 0/None disables."""
        definition = self.registry.get_type(node.type)
        if definition is not None and definition.timeout_seconds is not None:
            return definition.timeout_seconds or None
        return self.settings.default_node_timeout_s or None

    def _blocking_failure(self, state: _RunState, node_id: str) -> Optional[str]:
        """Id of the failed node this node transitively depends on, if any."""
        for dep in state.graph.upstream_ids(node_id):
            upstream = state.results.get(dep)
            if upstream is None:
                continue
            if upstream.is_error:
                return dep
            if upstream.skip_reason == SkipReason.UPSTREAM_FAILURE:
                return upstream.blocked_by
        return None

    def _inactive_branch(
        self,
        state: _RunState,
        node: Node,
        inputs: Dict[str, Any],
    ) -> Optional[str]:
        """
        Id of the upstream node whose inactive branch starves this node.

        A completed node deactivates every declared output it leaves out
        of its outputs, and a node skipped on an inactive branch
        deactivates all of its outputs. The node is skipped when a
        required input is unresolved and every edge into it comes from
        an inactive output. Optional inputs never cause a skip.
        """
        incoming = state.graph.incoming(node.id)
        for parameter in node.inputs:
            if not parameter.required or parameter.name in inputs:
                continue
            edges = [edge for edge in incoming if edge.target_input == parameter.name]
            if not edges:
                continue
            sources = [self._inactive_source(state, edge) for edge in edges]
            if all(source is not None for source in sources):
                return sources[-1]
        return None

    @staticmethod
    def _inactive_source(state: _RunState, edge: Edge) -> Optional[str]:
        upstream = state.results.get(edge.source)
        if upstream is None:
            return None
        if upstream.is_success and edge.source_output not in upstream.outputs:
            return edge.source
        if upstream.skip_reason == SkipReason.CONDITIONAL_BRANCH:
            return edge.source
        return None


__all__ = [
    "ContinuationPolicy",
    "ExecutionResult",
    "NodeStatus",
    "SkipReason",
    "WorkflowExecutor",
    "WorkflowResult",
    "WorkflowStatus",
    "resolve_inputs",
    "run_with_timeout",
]
