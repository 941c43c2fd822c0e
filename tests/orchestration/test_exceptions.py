"""Tests for the orchestration exception hierarchy."""

import pytest

from agentflow.core.errors import ErrorCategory, WorkflowError, is_retryable
from agentflow.orchestration.exceptions import (
    CycleDetectedError,
    DefinitionInvalidError,
    ExecutionCancelledError,
    ExpressionError,
    InvalidTransitionError,
    StepExecutionFailedError,
    StepTimeoutError,
    UnknownDependencyError,
    UnknownStepTypeError,
    WorkflowNotExecutableError,
    WorkflowNotFoundError,
    WorkflowTimeoutError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "error",
        [
            DefinitionInvalidError("bad"),
            CycleDetectedError(["a", "b", "a"]),
            UnknownDependencyError("b", ["x"]),
            WorkflowNotFoundError("wf-1"),
            WorkflowNotExecutableError("wf-1", "DRAFT"),
            UnknownStepTypeError("mystery"),
            StepExecutionFailedError("a", 1),
            StepTimeoutError("a", 1.0),
            WorkflowTimeoutError("wf", 5.0),
            ExecutionCancelledError("ex-1"),
            ExpressionError("bad"),
            InvalidTransitionError("COMPLETED", "RUNNING"),
        ],
    )
    def test_all_are_workflow_errors(self, error):
        assert isinstance(error, WorkflowError)

    def test_definition_family(self):
        assert issubclass(CycleDetectedError, DefinitionInvalidError)
        assert issubclass(UnknownDependencyError, DefinitionInvalidError)
        assert DefinitionInvalidError("x").category == ErrorCategory.VALIDATION

    def test_invalid_transition_is_value_error(self):
        assert isinstance(InvalidTransitionError("A", "B"), ValueError)


class TestMessages:
    def test_cycle(self):
        assert str(CycleDetectedError(["a", "b", "a"])) == "Cycle detected in dependency graph: a -> b -> a"

    def test_self_dependency(self):
        error = UnknownDependencyError("a", ["a"])
        assert str(error) == "Step 'a' depends on itself"
        assert error.field == "dependencies"

    def test_unknown_dependencies(self):
        assert str(UnknownDependencyError("b", ["x", "y"])) == "Step 'b' depends on unknown steps: x, y"

    def test_not_executable(self):
        error = WorkflowNotExecutableError("wf-1", "DRAFT")
        assert str(error) == "Workflow wf-1 is not executable (status=DRAFT)"
        assert error.status == "DRAFT"

    def test_unknown_step_type_lists_available(self):
        error = UnknownStepTypeError("mystery", ["noop", "script"])
        assert str(error) == "Unknown step type: 'mystery'. Available: noop, script"
        assert str(UnknownStepTypeError("mystery")) == "Unknown step type: 'mystery'"

    def test_step_failed_wraps_cause(self):
        cause = RuntimeError("exploded")
        error = StepExecutionFailedError("fetch", 3, cause)
        assert str(error) == "Step 'fetch' failed after 3 attempt(s): RuntimeError: exploded"
        assert error.cause is cause
        assert error.attempts == 3

    def test_timeouts(self):
        assert str(StepTimeoutError("a", 0.5)) == "Step 'a' timed out after 0.5s"
        assert str(WorkflowTimeoutError("wf", 2.0)) == "Workflow 'wf' timed out after 2.0s"

    def test_expression_error_includes_expression(self):
        error = ExpressionError("Unknown name 'x'", expression="x > 1")
        assert str(error) == "Unknown name 'x' in expression 'x > 1'"
        assert error.expression == "x > 1"

    def test_invalid_transition(self):
        error = InvalidTransitionError("COMPLETED", "RUNNING", "ExecutionStatus")
        assert str(error) == "Invalid ExecutionStatus transition: COMPLETED → RUNNING"


class TestRetryability:
    def test_unknown_step_type_never_retried(self):
        assert is_retryable(UnknownStepTypeError("mystery")) is False

    def test_step_timeout_is_retried(self):
        assert is_retryable(StepTimeoutError("a", 1.0)) is True

    def test_expression_error_not_retried(self):
        assert is_retryable(ExpressionError("bad")) is False

    def test_step_failed_raised_by_executor_is_retried(self):
        assert is_retryable(StepExecutionFailedError("fetch", 1)) is True
