"""
Structured error types for agentflow.

Provides a typed error hierarchy with metadata for retry decisions, error
categorisation, execution diagnostics, and root cause analysis through error
chaining.

Every error raised by the engine extends :class:`AgentflowError`, which carries:

- **Category:** What kind of error (validation, orchestration, timeout, ...)
- **Retryable:** Whether the failed work can be attempted again
- **Context:** Structured metadata (workflow, step, execution id, ...)
- **Cause:** Chained underlying exception

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       AgentflowError                            │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                 │
        │  TransientError    ValidationError      ConfigError             │
        │  (retryable=True)  (VALIDATION)         (CONFIG)                │
        │       │                                                         │
        │  AgentUnavailableError                                          │
        │                                                                 │
        │  OrchestrationError (ORCHESTRATION)                             │
        │       │                                                         │
        │  WorkflowError ── see agentflow.orchestration.exceptions        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = TransientError("agent busy")
    >>> error.retryable
    True
    >>> error.with_context(workflow="daily.report", step="fetch").context.step
    'fetch'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (usually transient):** NETWORK, DEPENDENCY, TIMEOUT
    - **Definition errors (never retryable):** VALIDATION, CONFIG
    - **Engine errors:** ORCHESTRATION, EXECUTION
    - **Internal errors:** INTERNAL, UNKNOWN
    """

    NETWORK = "NETWORK"            # Connection problems reaching a collaborator
    DEPENDENCY = "DEPENDENCY"      # External agent/service failure
    TIMEOUT = "TIMEOUT"            # Step or workflow deadline exceeded

    VALIDATION = "VALIDATION"      # Malformed or inconsistent definitions
    CONFIG = "CONFIG"              # Missing config, invalid settings

    ORCHESTRATION = "ORCHESTRATION"  # Workflow lookup/lifecycle errors
    EXECUTION = "EXECUTION"          # Step executor failures

    INTERNAL = "INTERNAL"          # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"            # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        workflow: Workflow name
        workflow_id: Catalog id of the workflow
        execution_id: Id of the execution record
        step: Step name
        step_type: Step executor type
        metadata: Additional key-value pairs
    """

    workflow: str | None = None
    workflow_id: str | None = None
    execution_id: str | None = None
    step: str | None = None
    step_type: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["workflow", "workflow_id", "execution_id", "step", "step_type"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AgentflowError(Exception):
    """
    Base exception for all agentflow errors.

    Subclasses set ``default_category`` and ``default_retryable`` class
    attributes to provide sensible defaults for their domain.

    Examples:
        >>> error = AgentflowError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AgentflowError:
        """
        Add context to this error (fluent API).

        Usage:
            raise AgentflowError("agent refused").with_context(step="fetch")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(AgentflowError):
    """
    Temporary error that may succeed on retry.

    Use for collaborator failures where calling again after a delay has a
    reasonable chance of succeeding.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class AgentUnavailableError(TransientError):
    """The agent collaborator could not be reached or refused the command."""

    default_category = ErrorCategory.DEPENDENCY


# =============================================================================
# VALIDATION / CONFIGURATION ERRORS
# =============================================================================


class ValidationError(AgentflowError):
    """
    Data validation error.

    Never retryable - the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class ConfigError(AgentflowError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(AgentflowError):
    """Workflow engine error."""

    default_category = ErrorCategory.ORCHESTRATION
    default_retryable = False


class WorkflowError(OrchestrationError):
    """Workflow definition or execution error."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable.

    Engine errors answer for themselves; any other exception raised by a step
    executor is treated as retryable so the step's retry budget applies.
    """
    if isinstance(error, AgentflowError):
        return error.retryable
    return isinstance(error, Exception)


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, AgentflowError):
        return error.category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.NETWORK
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return ErrorCategory.EXECUTION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "AgentflowError",
    "TransientError",
    "AgentUnavailableError",
    "ValidationError",
    "ConfigError",
    "OrchestrationError",
    "WorkflowError",
    "is_retryable",
    "categorize_error",
]
