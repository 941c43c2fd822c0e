"""Tests for agentflow.core.errors module."""

import pytest

from agentflow.core.errors import (
    AgentflowError,
    AgentUnavailableError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    OrchestrationError,
    TransientError,
    ValidationError,
    WorkflowError,
    categorize_error,
    is_retryable,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.workflow is None
        assert ctx.execution_id is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_skips_unset_fields(self):
        ctx = ErrorContext(workflow="daily", step="fetch", metadata={"attempt": 2})
        result = ctx.to_dict()
        assert result["workflow"] == "daily"
        assert result["step"] == "fetch"
        assert result["attempt"] == 2
        assert "execution_id" not in result


class TestAgentflowError:
    """Test the base error."""

    def test_defaults(self):
        error = AgentflowError("boom")
        assert str(error) == "boom"
        assert error.message == "boom"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_explicit_category_and_retryable(self):
        error = AgentflowError("x", category=ErrorCategory.NETWORK, retryable=True)
        assert error.category == ErrorCategory.NETWORK
        assert error.retryable is True

    def test_cause_is_chained(self):
        cause = ValueError("bad value")
        error = AgentflowError("wrapped", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_with_context_is_fluent(self):
        error = AgentflowError("boom").with_context(workflow="wf", step="a")
        assert error.context.workflow == "wf"
        assert error.context.step == "a"

    def test_to_dict(self):
        error = AgentflowError("boom", cause=RuntimeError("inner")).with_context(workflow="wf")
        result = error.to_dict()
        assert result["error_type"] == "AgentflowError"
        assert result["message"] == "boom"
        assert result["category"] == "INTERNAL"
        assert result["retryable"] is False
        assert result["context"] == {"workflow": "wf"}
        assert result["cause"] == "inner"


class TestSubclasses:
    """Default categories and retryability of the hierarchy."""

    def test_transient_is_retryable(self):
        error = TransientError("flaky network")
        assert error.retryable is True
        assert error.category == ErrorCategory.NETWORK

    def test_agent_unavailable(self):
        error = AgentUnavailableError("agent down")
        assert isinstance(error, TransientError)
        assert error.retryable is True
        assert error.category == ErrorCategory.DEPENDENCY

    def test_validation_error_fields(self):
        error = ValidationError("bad input", field="input", value=[1])
        assert error.retryable is False
        assert error.category == ErrorCategory.VALIDATION
        result = error.to_dict()
        assert result["field"] == "input"
        assert result["value"] == "[1]"

    def test_config_error(self):
        assert ConfigError("missing").category == ErrorCategory.CONFIG

    def test_workflow_error_is_orchestration_error(self):
        error = WorkflowError("nope")
        assert isinstance(error, OrchestrationError)
        assert isinstance(error, AgentflowError)
        assert error.category == ErrorCategory.ORCHESTRATION


class TestIsRetryable:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (TransientError("t"), True),
            (ValidationError("v"), False),
            (AgentflowError("x", retryable=True), True),
            (RuntimeError("plain"), True),
            (ValueError("plain"), True),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected


class TestCategorizeError:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (TransientError("t"), ErrorCategory.NETWORK),
            (TimeoutError(), ErrorCategory.TIMEOUT),
            (ConnectionError(), ErrorCategory.NETWORK),
            (KeyError("k"), ErrorCategory.EXECUTION),
            (Exception("?"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_categorize(self, error, expected):
        assert categorize_error(error) == expected
