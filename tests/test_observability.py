"""Tests for structured logging."""
import io
import json
import logging

from flowgraph.observability import get_logger, setup_logging, with_run_context
from flowgraph.observability.logging import CustomJsonFormatter, RunContextFilter


def _capture(record_logger, json_output=True):
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    if json_output:
        handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    handler.addFilter(RunContextFilter())
    record_logger.addHandler(handler)
    return stream, handler


class TestJsonLogging:
    def test_run_context_fields(self):
        logger = logging.getLogger("tests.observability.context")
        logger.setLevel(logging.INFO)
        stream, handler = _capture(logger)
        try:
            logger.info(
                "Node finished",
                extra=with_run_context(workflow_id="wf-1", execution_id="ex-1", node_id="n1"),
            )
        finally:
            logger.removeHandler(handler)

        record = json.loads(stream.getvalue())
        assert record["message"] == "Node finished"
        assert record["level"] == "INFO"
        assert record["logger"] == "tests.observability.context"
        assert record["workflow_id"] == "wf-1"
        assert record["execution_id"] == "ex-1"
        assert record["node_id"] == "n1"
        assert "node_type" not in record

    def test_missing_context_is_omitted(self):
        logger = logging.getLogger("tests.observability.plain")
        logger.setLevel(logging.INFO)
        stream, handler = _capture(logger)
        try:
            logger.info("plain")
        finally:
            logger.removeHandler(handler)

        record = json.loads(stream.getvalue())
        assert "workflow_id" not in record
        assert "node_id" not in record


class TestHelpers:
    def test_with_run_context_skips_empty_values(self):
        assert with_run_context(workflow_id="wf", node_id=None, attempt=2) == {
            "workflow_id": "wf",
            "attempt": 2,
        }

    def test_get_logger_returns_adapter(self):
        adapter = get_logger("tests.observability")

        assert isinstance(adapter, logging.LoggerAdapter)
        assert adapter.logger.name == "tests.observability"

    def test_adapter_merges_call_context(self):
        adapter = get_logger("tests.observability.adapter", workflow_id="wf-2")
        adapter.logger.setLevel(logging.INFO)
        stream, handler = _capture(adapter.logger)
        try:
            adapter.info("step", extra=with_run_context(node_id="n7"))
        finally:
            adapter.logger.removeHandler(handler)

        record = json.loads(stream.getvalue())
        assert record["workflow_id"] == "wf-2"
        assert record["node_id"] == "n7"

    def test_setup_logging_configures_root(self):
        setup_logging(level="debug", json_output=False)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert any(isinstance(f, RunContextFilter) for f in root.handlers[0].filters)

    def test_setup_logging_json_formatter(self):
        setup_logging(level="INFO", json_output=True)

        assert isinstance(logging.getLogger().handlers[0].formatter, CustomJsonFormatter)
