"""Orchestration domain models.

Defines the records the engine keeps about workflows and their runs:

- ``Workflow``: catalog entry wrapping a definition with lifecycle status
  and execution counters
- ``WorkflowExecution``: one run of a workflow, its progress and outcome
- ``StepExecution``: per-step diagnostics inside an execution

Status changes go through explicit transition tables. Workflow lifecycle
methods are forgiving (an invalid request returns ``False``), execution
transitions are strict (an invalid request raises
:class:`InvalidTransitionError`).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from agentflow.orchestration.definition import WorkflowDefinition
from agentflow.orchestration.exceptions import InvalidTransitionError


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# =============================================================================
# Workflow (catalog aggregate)
# =============================================================================


class WorkflowStatus(str, Enum):
    """Lifecycle status of a catalog workflow.

    Valid transition graph::

        DRAFT    → ACTIVE | ARCHIVED
        ACTIVE   → PAUSED | INACTIVE | ARCHIVED
        PAUSED   → ACTIVE | INACTIVE | ARCHIVED
        INACTIVE → ACTIVE | ARCHIVED
        ARCHIVED → (terminal)
    """

    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    INACTIVE = "INACTIVE"
    ARCHIVED = "ARCHIVED"


WORKFLOW_VALID_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.DRAFT: frozenset({WorkflowStatus.ACTIVE, WorkflowStatus.ARCHIVED}),
    WorkflowStatus.ACTIVE: frozenset({
        WorkflowStatus.PAUSED,
        WorkflowStatus.INACTIVE,
        WorkflowStatus.ARCHIVED,
    }),
    WorkflowStatus.PAUSED: frozenset({
        WorkflowStatus.ACTIVE,
        WorkflowStatus.INACTIVE,
        WorkflowStatus.ARCHIVED,
    }),
    WorkflowStatus.INACTIVE: frozenset({WorkflowStatus.ACTIVE, WorkflowStatus.ARCHIVED}),
    WorkflowStatus.ARCHIVED: frozenset(),
}


@dataclass
class Workflow:
    """A named workflow definition in the catalog.

    Counters are owned by the orchestrator and updated exactly once per
    execution terminal transition through :meth:`record_execution_outcome`.

    Example:
        >>> wf = Workflow.create("daily.report", definition)
        >>> wf.status
        <WorkflowStatus.DRAFT: 'DRAFT'>
        >>> wf.activate()
        True
    """

    id: str
    name: str
    definition: WorkflowDefinition
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.DRAFT
    version: int = 1
    execution_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    last_executed_at: datetime | None = None
    last_execution_duration_ms: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        name: str,
        definition: WorkflowDefinition,
        description: str = "",
        status: WorkflowStatus = WorkflowStatus.DRAFT,
        version: int = 1,
    ) -> Workflow:
        """Create a new catalog entry with a fresh id."""
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            definition=definition,
            description=description,
            status=status,
            version=version,
        )

    # ── Lifecycle ────────────────────────────────────────────────

    def _transition(self, target: WorkflowStatus, allowed_from: set[WorkflowStatus]) -> bool:
        if self.status not in allowed_from or target not in WORKFLOW_VALID_TRANSITIONS[self.status]:
            return False
        self.status = target
        self.updated_at = utcnow()
        return True

    def activate(self) -> bool:
        """DRAFT/INACTIVE → ACTIVE."""
        return self._transition(WorkflowStatus.ACTIVE, {WorkflowStatus.DRAFT, WorkflowStatus.INACTIVE})

    def deactivate(self) -> bool:
        """ACTIVE/PAUSED → INACTIVE."""
        return self._transition(WorkflowStatus.INACTIVE, {WorkflowStatus.ACTIVE, WorkflowStatus.PAUSED})

    def pause(self) -> bool:
        """ACTIVE → PAUSED."""
        return self._transition(WorkflowStatus.PAUSED, {WorkflowStatus.ACTIVE})

    def resume(self) -> bool:
        """PAUSED → ACTIVE."""
        return self._transition(WorkflowStatus.ACTIVE, {WorkflowStatus.PAUSED})

    def archive(self) -> bool:
        """Any non-archived status → ARCHIVED."""
        return self._transition(WorkflowStatus.ARCHIVED, set(WorkflowStatus) - {WorkflowStatus.ARCHIVED})

    def is_executable(self) -> bool:
        return self.status in (WorkflowStatus.ACTIVE, WorkflowStatus.PAUSED)

    # ── Statistics ───────────────────────────────────────────────

    def record_execution_outcome(
        self,
        succeeded: bool,
        duration_ms: int | None,
        executed_at: datetime | None = None,
    ) -> None:
        """Fold one terminal execution into the counters."""
        self.execution_count += 1
        if succeeded:
            self.success_count += 1
        else:
            self.failure_count += 1
        self.last_executed_at = executed_at or utcnow()
        self.last_execution_duration_ms = duration_ms
        self.updated_at = utcnow()

    @property
    def success_rate(self) -> float:
        """Percentage of executions that completed successfully."""
        if self.execution_count == 0:
            return 0.0
        return self.success_count / self.execution_count * 100.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "version": self.version,
            "definition": self.definition.to_dict(),
            "execution_count": self.execution_count,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "success_rate": self.success_rate,
            "last_executed_at": _iso(self.last_executed_at),
            "last_execution_duration_ms": self.last_execution_duration_ms,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


# =============================================================================
# Execution records
# =============================================================================


class WorkflowExecutionStatus(str, Enum):
    """Status of a workflow execution.

    Valid transition graph::

        PENDING  → RUNNING | CANCELLED | FAILED
        RUNNING  → COMPLETED | FAILED | CANCELLED | TIMEOUT
        COMPLETED / FAILED / CANCELLED / TIMEOUT → (terminal)
    """

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"

    @property
    def is_terminal(self) -> bool:
        return self not in (WorkflowExecutionStatus.PENDING, WorkflowExecutionStatus.RUNNING)


EXECUTION_VALID_TRANSITIONS: dict[WorkflowExecutionStatus, frozenset[WorkflowExecutionStatus]] = {
    WorkflowExecutionStatus.PENDING: frozenset({
        WorkflowExecutionStatus.RUNNING,
        WorkflowExecutionStatus.CANCELLED,
        WorkflowExecutionStatus.FAILED,
    }),
    WorkflowExecutionStatus.RUNNING: frozenset({
        WorkflowExecutionStatus.COMPLETED,
        WorkflowExecutionStatus.FAILED,
        WorkflowExecutionStatus.CANCELLED,
        WorkflowExecutionStatus.TIMEOUT,
    }),
    WorkflowExecutionStatus.COMPLETED: frozenset(),  # terminal
    WorkflowExecutionStatus.FAILED: frozenset(),  # terminal
    WorkflowExecutionStatus.CANCELLED: frozenset(),  # terminal
    WorkflowExecutionStatus.TIMEOUT: frozenset(),  # terminal
}


def validate_execution_transition(
    current: WorkflowExecutionStatus,
    target: WorkflowExecutionStatus,
) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_execution_transition(WorkflowExecutionStatus.RUNNING, WorkflowExecutionStatus.COMPLETED)
        >>> validate_execution_transition(WorkflowExecutionStatus.COMPLETED, WorkflowExecutionStatus.RUNNING)
        InvalidTransitionError: Invalid WorkflowExecutionStatus transition: COMPLETED → RUNNING
    """
    allowed = EXECUTION_VALID_TRANSITIONS.get(current, frozenset())
    if target not in allowed:
        raise InvalidTransitionError(current.value, target.value, "WorkflowExecutionStatus")


class StepStatus(str, Enum):
    """Outcome of a single step inside an execution."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class StepExecution:
    """Result of executing a single step."""

    step_name: str
    step_type: str
    status: StepStatus
    attempts: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Calculate step duration."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging/storage."""
        return {
            "step_name": self.step_name,
            "step_type": self.step_type,
            "status": self.status.value,
            "attempts": self.attempts,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class WorkflowExecution:
    """One run of a workflow.

    Owned by the orchestrator while non-terminal; read-only history after.

    Example:
        >>> execution = WorkflowExecution.create(workflow_id="wf-1", input={"x": 1}, total_steps=3)
        >>> execution.start()
        >>> execution.update_progress("a", 1)
        >>> execution.progress_percentage
        33.33...
    """

    id: str
    workflow_id: str
    status: WorkflowExecutionStatus = WorkflowExecutionStatus.PENDING
    input: dict[str, Any] = field(default_factory=dict)
    output: dict[str, Any] | None = None
    context: dict[str, Any] = field(default_factory=dict)
    current_step: str | None = None
    total_steps: int = 0
    completed_steps: int = 0
    error_message: str | None = None
    error_details: dict[str, Any] | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    step_executions: list[StepExecution] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        workflow_id: str,
        input: dict[str, Any] | None = None,
        total_steps: int = 0,
    ) -> WorkflowExecution:
        """Create a new execution in PENDING status."""
        return cls(
            id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            input=dict(input or {}),
            total_steps=total_steps,
        )

    # ── Transitions ──────────────────────────────────────────────

    def _move_to(self, target: WorkflowExecutionStatus) -> None:
        validate_execution_transition(self.status, target)
        self.status = target

    def _finish(self) -> None:
        self.completed_at = utcnow()
        reference = self.started_at or self.created_at
        self.duration_ms = max(0, int((self.completed_at - reference).total_seconds() * 1000))

    def start(self) -> None:
        """PENDING → RUNNING."""
        self._move_to(WorkflowExecutionStatus.RUNNING)
        self.started_at = utcnow()

    def complete(self, output: dict[str, Any]) -> None:
        """RUNNING → COMPLETED with the final context as output."""
        self._move_to(WorkflowExecutionStatus.COMPLETED)
        self.output = output
        self.current_step = None
        self._finish()

    def fail(self, message: str, details: dict[str, Any] | None = None) -> None:
        """PENDING/RUNNING → FAILED."""
        self._move_to(WorkflowExecutionStatus.FAILED)
        self.error_message = message
        self.error_details = details
        self._finish()

    def time_out(self, message: str, details: dict[str, Any] | None = None) -> None:
        """RUNNING → TIMEOUT."""
        self._move_to(WorkflowExecutionStatus.TIMEOUT)
        self.error_message = message
        self.error_details = details
        self._finish()

    def cancel(self, settled_steps: int | None = None) -> None:
        """PENDING/RUNNING → CANCELLED.

        ``settled_steps`` freezes progress at the last fully settled wave.
        """
        self._move_to(WorkflowExecutionStatus.CANCELLED)
        if settled_steps is not None:
            self.completed_steps = min(self.completed_steps, max(0, settled_steps))
        self._finish()

    # ── Progress ─────────────────────────────────────────────────

    def update_progress(self, step: str | None, completed: int) -> None:
        """Record the latest settled step and the settled-step count."""
        if completed < 0 or completed > self.total_steps:
            raise ValueError(
                f"completed_steps must be within 0..{self.total_steps}, got {completed}"
            )
        self.current_step = step
        self.completed_steps = completed

    @property
    def progress_percentage(self) -> float:
        if not self.total_steps:
            return 0.0
        return self.completed_steps / self.total_steps * 100.0

    @property
    def is_finished(self) -> bool:
        return self.status.is_terminal

    @property
    def is_successful(self) -> bool:
        return self.status == WorkflowExecutionStatus.COMPLETED

    def get_step_execution(self, step_name: str) -> StepExecution | None:
        for record in self.step_executions:
            if record.step_name == step_name:
                return record
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "input": self.input,
            "output": self.output,
            "context": self.context,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "progress_percentage": self.progress_percentage,
            "error_message": self.error_message,
            "error_details": self.error_details,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "created_at": _iso(self.created_at),
            "step_executions": [s.to_dict() for s in self.step_executions],
        }


__all__ = [
    "utcnow",
    "WorkflowStatus",
    "WORKFLOW_VALID_TRANSITIONS",
    "Workflow",
    "WorkflowExecutionStatus",
    "EXECUTION_VALID_TRANSITIONS",
    "validate_execution_transition",
    "StepStatus",
    "StepExecution",
    "WorkflowExecution",
]
