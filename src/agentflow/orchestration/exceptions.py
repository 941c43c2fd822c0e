"""Orchestration exceptions: structured error hierarchy.

All orchestration exceptions inherit from ``agentflow.core.errors.WorkflowError``
so that callers can catch the entire family with a single ``except`` clause.

Hierarchy::

    OrchestrationError  (from agentflow.core.errors)
      └── WorkflowError
            ├── DefinitionInvalidError      ── definition rejected at creation
            │     ├── CycleDetectedError    ── dependency graph has a cycle
            │     └── UnknownDependencyError── step depends on unknown/self
            ├── WorkflowNotFoundError       ── no workflow with that id
            ├── WorkflowNotExecutableError  ── workflow not ACTIVE/PAUSED
            ├── UnknownStepTypeError        ── no executor for step type
            ├── StepExecutionFailedError    ── step exhausted its retries
            ├── StepTimeoutError            ── step attempt exceeded timeout
            ├── WorkflowTimeoutError        ── whole-workflow deadline hit
            ├── ExecutionCancelledError     ── execution was cancelled
            ├── ExpressionError             ── bad condition/script expression
            └── InvalidTransitionError      ── illegal status transition
"""

from agentflow.core.errors import ErrorCategory, WorkflowError


class DefinitionInvalidError(WorkflowError):
    """Raised when a workflow definition is malformed or inconsistent."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, field: str | None = None, **kwargs):
        self.field = field
        super().__init__(message, **kwargs)


class CycleDetectedError(DefinitionInvalidError):
    """Raised when the dependency graph contains a cycle."""

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        cycle_str = " -> ".join(cycle)
        super().__init__(f"Cycle detected in dependency graph: {cycle_str}")


class UnknownDependencyError(DefinitionInvalidError):
    """Raised when a step depends on an unknown step or on itself."""

    def __init__(self, step_name: str, missing_deps: list[str]):
        self.step_name = step_name
        self.missing_deps = missing_deps
        deps_str = ", ".join(missing_deps)
        if missing_deps == [step_name]:
            message = f"Step '{step_name}' depends on itself"
        else:
            message = f"Step '{step_name}' depends on unknown steps: {deps_str}"
        super().__init__(message, field="dependencies")


class WorkflowNotFoundError(WorkflowError):
    """Raised when no workflow exists with the requested id."""

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class WorkflowNotExecutableError(WorkflowError):
    """Raised when a workflow exists but its status does not allow execution."""

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow {workflow_id} is not executable (status={status})")


class UnknownStepTypeError(WorkflowError):
    """Raised when no executor is registered for a step type. Never retried."""

    default_category = ErrorCategory.EXECUTION
    default_retryable = False

    def __init__(self, step_type: str, available: list[str] | None = None):
        self.step_type = step_type
        self.available = available or []
        message = f"Unknown step type: {step_type!r}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class StepExecutionFailedError(WorkflowError):
    """Raised when a step fails. Executors may raise it too; it stays retryable."""

    default_category = ErrorCategory.EXECUTION
    default_retryable = True

    def __init__(self, step_name: str, attempts: int, cause: BaseException | None = None):
        self.step_name = step_name
        self.attempts = attempts
        reason = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(
            f"Step '{step_name}' failed after {attempts} attempt(s): {reason}",
            cause=cause if isinstance(cause, Exception) else None,
        )


class StepTimeoutError(WorkflowError):
    """Raised when a single step attempt exceeds its timeout."""

    default_category = ErrorCategory.TIMEOUT
    default_retryable = True

    def __init__(self, step_name: str, timeout_seconds: float):
        self.step_name = step_name
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Step '{step_name}' timed out after {timeout_seconds}s")


class WorkflowTimeoutError(WorkflowError):
    """Raised when the whole-workflow deadline elapses."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, workflow_name: str, timeout_seconds: float):
        self.workflow_name = workflow_name
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Workflow '{workflow_name}' timed out after {timeout_seconds}s")


class ExecutionCancelledError(WorkflowError):
    """Raised when an operation observes that its execution was cancelled."""

    def __init__(self, execution_id: str):
        self.execution_id = execution_id
        super().__init__(f"Execution cancelled: {execution_id}")


class ExpressionError(WorkflowError):
    """Raised when a condition or script expression cannot be evaluated."""

    default_category = ErrorCategory.EXECUTION

    def __init__(self, message: str, expression: str | None = None):
        self.expression = expression
        if expression is not None:
            message = f"{message} in expression {expression!r}"
        super().__init__(message)


class InvalidTransitionError(WorkflowError, ValueError):
    """Raised when an illegal status transition is attempted.

    Transition validation is strict. A legitimate transition that is blocked
    belongs in the transition table, never in a bypass.
    """

    default_category = ErrorCategory.INTERNAL

    def __init__(self, current: str, target: str, enum_name: str = "Status") -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid {enum_name} transition: {current} → {target}")


__all__ = [
    "DefinitionInvalidError",
    "CycleDetectedError",
    "UnknownDependencyError",
    "WorkflowNotFoundError",
    "WorkflowNotExecutableError",
    "UnknownStepTypeError",
    "StepExecutionFailedError",
    "StepTimeoutError",
    "WorkflowTimeoutError",
    "ExecutionCancelledError",
    "ExpressionError",
    "InvalidTransitionError",
]
