"""Tests for the node execution contract helpers."""
import threading

import pytest

from node_sdk import (
    CancellationToken,
    CredentialProvider,
    ExecutionEnvironment,
    IntegrationData,
    NodeCancelledError,
    NodeContext,
    NodeOperationError,
    NodeResult,
    StaticCredentialProvider,
    TriggerData,
)


class TestNodeResult:
    def test_completed(self):
        result = NodeResult.completed({"a": 1})

        assert result.is_success
        assert result.outputs == {"a": 1}
        assert result.error is None

    def test_failed(self):
        result = NodeResult.failed("boom")

        assert not result.is_success
        assert result.status == NodeResult.FAILED
        assert result.error == "boom"

    def test_failed_without_message(self):
        assert NodeResult.failed("").error == "Unknown error"


class TestNodeContext:
    """Test input access and forwarded capabilities."""

    def test_get_and_require(self):
        context = NodeContext(node_id="n1", inputs={"a": 0, "b": None})

        assert context.get("a") == 0
        assert context.get("b", "fallback") == "fallback"
        assert context.get("missing") is None
        assert context.require("a") == 0
        with pytest.raises(NodeOperationError, match="Required input 'b' missing for node n1"):
            context.require("b")

    def test_credentials_are_forwarded(self, environment):
        context = NodeContext(node_id="n1", inputs={}, environment=environment)

        assert context.get_secret("API_KEY") == "s3cret"
        assert context.get_secret("OTHER") is None
        integration = context.get_integration("gh-1")
        assert integration.provider == "github"
        assert integration.refresh_token == "ghr_refresh"
        assert context.get_integration("missing") is None

    def test_defaults(self):
        context = NodeContext(node_id="n1", inputs={})

        assert isinstance(context.trigger, TriggerData)
        assert context.trigger.kind == "manual"
        assert isinstance(context.environment, ExecutionEnvironment)
        assert not context.is_cancelled

    def test_progress_is_clamped(self):
        reports = []
        context = NodeContext(
            node_id="n1",
            inputs={},
            on_progress=lambda node_id, fraction: reports.append((node_id, fraction)),
        )

        context.report_progress(0.5)
        context.report_progress(7)
        context.report_progress(-1)

        assert reports == [("n1", 0.5), ("n1", 1.0), ("n1", 0.0)]

    def test_progress_without_callback(self):
        NodeContext(node_id="n1", inputs={}).report_progress(0.3)

    def test_sleep_raises_when_cancelled(self):
        token = CancellationToken()
        context = NodeContext(node_id="n1", inputs={}, cancellation=token)
        timer = threading.Timer(0.05, token.cancel, args=("stop",))
        timer.start()

        with pytest.raises(NodeCancelledError, match="stop"):
            context.sleep(5)
        timer.join()

    def test_sleep_returns_when_not_cancelled(self):
        context = NodeContext(node_id="n1", inputs={})

        context.sleep(0.01)
        context.check_cancelled()


class TestCancellationToken:
    def test_cancel_propagates_to_children(self):
        parent = CancellationToken()
        child = parent.child()
        grandchild = child.child()

        parent.cancel("run cancelled")

        assert child.cancelled
        assert grandchild.cancelled
        assert grandchild.reason == "run cancelled"

    def test_child_of_cancelled_parent_starts_cancelled(self):
        parent = CancellationToken()
        parent.cancel()

        assert parent.child().cancelled

    def test_child_cancel_does_not_reach_parent(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel("timeout")

        assert child.cancelled
        assert not parent.cancelled

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel()

        with pytest.raises(NodeCancelledError, match="Execution cancelled"):
            token.raise_if_cancelled()


class TestCredentials:
    def test_static_provider_satisfies_protocol(self, credentials):
        assert isinstance(credentials, CredentialProvider)

    def test_integration_objects_pass_through(self):
        integration = IntegrationData(id="x", name="X", provider="p", token="t")
        provider = StaticCredentialProvider(integrations={"x": integration})

        assert provider.get_integration("x") is integration

    def test_integration_is_immutable(self, credentials):
        integration = credentials.get_integration("gh-1")

        with pytest.raises(ValueError):
            integration.token = "other"
