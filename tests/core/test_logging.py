"""Tests for agentflow.core.logging module."""

from __future__ import annotations

import io
import json
import logging

import pytest
import structlog

from agentflow.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture
def stream():
    """Capture log output and restore default logging afterwards."""
    buffer = io.StringIO()
    yield buffer
    clear_context()
    structlog.reset_defaults()
    logging.basicConfig(force=True)


def _lines(buffer: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buffer.getvalue().splitlines() if line.strip()]


class TestConfigureLogging:
    def test_json_output_has_ecs_keys(self, stream):
        configure_logging(level="INFO", json_format=True, service="agentflow-test", stream=stream)
        get_logger("agentflow.tests").info("workflow.created", workflow="daily", steps=3)

        [record] = _lines(stream)
        assert record["event"] == "workflow.created"
        assert record["workflow"] == "daily"
        assert record["steps"] == 3
        assert record["log.level"] == "info"
        assert record["service.name"] == "agentflow-test"
        assert record["logger"] == "agentflow.tests"
        assert "@timestamp" in record

    def test_level_filters_lower_events(self, stream):
        configure_logging(level="WARNING", json_format=True, stream=stream)
        logger = get_logger("agentflow.tests.level")
        logger.info("step.started")
        logger.warning("step.retry", attempt=1)

        events = [r["event"] for r in _lines(stream)]
        assert events == ["step.retry"]

    def test_console_format_is_not_json(self, stream):
        configure_logging(level="INFO", json_format=False, stream=stream)
        get_logger("agentflow.tests.console").info("wave.settled", wave=0)

        output = stream.getvalue()
        assert "wave.settled" in output
        with pytest.raises(json.JSONDecodeError):
            json.loads(output.splitlines()[0])


class TestLogContext:
    def test_binds_and_unbinds(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("agentflow.tests.context")

        with LogContext(execution_id="ex-1", workflow_id="wf-1"):
            logger.info("wave.dispatched")
        logger.info("execution.done")

        inside, outside = _lines(stream)
        assert inside["execution_id"] == "ex-1"
        assert inside["workflow_id"] == "wf-1"
        assert "execution_id" not in outside

    @pytest.mark.asyncio
    async def test_async_context_manager(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("agentflow.tests.async_context")

        async with LogContext(execution_id="ex-2"):
            logger.info("execution.started")

        [record] = _lines(stream)
        assert record["execution_id"] == "ex-2"

    def test_bind_context_persists_until_cleared(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("agentflow.tests.bind")

        bind_context(request="r-1")
        logger.info("first")
        clear_context()
        logger.info("second")

        first, second = _lines(stream)
        assert first["request"] == "r-1"
        assert "request" not in second

    def test_unbind_context_removes_only_named_keys(self, stream):
        configure_logging(level="INFO", json_format=True, stream=stream)
        logger = get_logger("agentflow.tests.unbind")

        bind_context(request="r-2", tenant="acme")
        unbind_context("request")
        logger.info("after")

        [record] = _lines(stream)
        assert "request" not in record
        assert record["tenant"] == "acme"
