"""Shared primitives for agentflow: errors, structured logging and settings."""

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
from agentflow.core.logging import LogContext, configure_logging, get_logger

__all__ = [
    "AgentflowError",
    "AgentUnavailableError",
    "ConfigError",
    "ErrorCategory",
    "ErrorContext",
    "OrchestrationError",
    "TransientError",
    "ValidationError",
    "WorkflowError",
    "categorize_error",
    "is_retryable",
    "LogContext",
    "configure_logging",
    "get_logger",
]
