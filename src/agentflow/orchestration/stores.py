"""
Persistence collaborators for workflows and executions.

The orchestrator depends only on two narrow protocols; any database can sit
behind them. The in-memory implementations are the default and the ones
tests use.

Manifesto:
    Readers must never observe a half-updated record. Stores therefore
    keep and hand out deep copies: a caller mutating what it got back
    cannot change what another caller sees, and a save replaces the
    stored record in one step.

Architecture:
    ::

        WorkflowStore (Protocol)
        │   save(workflow) / find_by_id(id) / find_by_name(name) / find_all()
        └── InMemoryWorkflowStore

        ExecutionStore (Protocol)
        │   save(execution) / find_by_id(id) / find_by_workflow_id(id) / find_all()
        └── InMemoryExecutionStore

Examples:
    >>> store = InMemoryWorkflowStore()
    >>> store.save(workflow)
    >>> store.find_by_name("daily.report").version
    2

Guardrails:
    ❌ DON'T: Mutate a record returned by a store and expect it to persist
    ✅ DO: Mutate, then ``save()`` again

Tags:
    persistence, store, repository, in-memory, protocol
"""

from __future__ import annotations

import copy
import threading
from typing import Protocol

from agentflow.orchestration.models import Workflow, WorkflowExecution


class WorkflowStore(Protocol):
    """Protocol for workflow catalog storage."""

    def save(self, workflow: Workflow) -> None:
        """Insert or replace ``workflow`` (keyed by ``workflow.id``)."""
        ...

    def find_by_id(self, workflow_id: str) -> Workflow | None:
        ...

    def find_by_name(self, name: str) -> Workflow | None:
        """Return the highest catalog version carrying ``name``."""
        ...

    def find_all(self) -> list[Workflow]:
        ...


class ExecutionStore(Protocol):
    """Protocol for execution record storage."""

    def save(self, execution: WorkflowExecution) -> None:
        """Insert or replace ``execution`` (keyed by ``execution.id``)."""
        ...

    def find_by_id(self, execution_id: str) -> WorkflowExecution | None:
        ...

    def find_by_workflow_id(self, workflow_id: str) -> list[WorkflowExecution]:
        """Executions of one workflow, most recently started first."""
        ...

    def find_all(self) -> list[WorkflowExecution]:
        ...


# ------------------------------------------------------------------ #
# In-memory implementations
# ------------------------------------------------------------------ #


class InMemoryWorkflowStore:
    """Thread-safe dict-backed workflow store."""

    def __init__(self):
        self._workflows: dict[str, Workflow] = {}
        self._lock = threading.Lock()

    def save(self, workflow: Workflow) -> None:
        snapshot = copy.deepcopy(workflow)
        with self._lock:
            self._workflows[workflow.id] = snapshot

    def find_by_id(self, workflow_id: str) -> Workflow | None:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return copy.deepcopy(workflow) if workflow is not None else None

    def find_by_name(self, name: str) -> Workflow | None:
        with self._lock:
            matches = [w for w in self._workflows.values() if w.name == name]
            if not matches:
                return None
            latest = max(matches, key=lambda w: (w.version, w.created_at))
            return copy.deepcopy(latest)

    def find_all(self) -> list[Workflow]:
        with self._lock:
            workflows = sorted(self._workflows.values(), key=lambda w: (w.created_at, w.name))
            return copy.deepcopy(workflows)

    def __len__(self) -> int:
        with self._lock:
            return len(self._workflows)


class InMemoryExecutionStore:
    """Thread-safe dict-backed execution store."""

    def __init__(self):
        self._executions: dict[str, WorkflowExecution] = {}
        self._lock = threading.Lock()

    def save(self, execution: WorkflowExecution) -> None:
        snapshot = copy.deepcopy(execution)
        with self._lock:
            self._executions[execution.id] = snapshot

    def find_by_id(self, execution_id: str) -> WorkflowExecution | None:
        with self._lock:
            execution = self._executions.get(execution_id)
            return copy.deepcopy(execution) if execution is not None else None

    def find_by_workflow_id(self, workflow_id: str) -> list[WorkflowExecution]:
        with self._lock:
            matches = [e for e in self._executions.values() if e.workflow_id == workflow_id]
            return copy.deepcopy(_newest_first(matches))

    def find_all(self) -> list[WorkflowExecution]:
        with self._lock:
            return copy.deepcopy(_newest_first(list(self._executions.values())))

    def __len__(self) -> int:
        with self._lock:
            return len(self._executions)


def _newest_first(executions: list[WorkflowExecution]) -> list[WorkflowExecution]:
    """Started executions by ``started_at`` desc, then unstarted by ``created_at`` desc."""
    started = sorted(
        (e for e in executions if e.started_at is not None),
        key=lambda e: (e.started_at, e.created_at),
        reverse=True,
    )
    unstarted = sorted(
        (e for e in executions if e.started_at is None),
        key=lambda e: e.created_at,
        reverse=True,
    )
    return started + unstarted


__all__ = [
    "WorkflowStore",
    "ExecutionStore",
    "InMemoryWorkflowStore",
    "InMemoryExecutionStore",
]
