"""Tests for the in-memory workflow and execution stores."""

from datetime import timedelta

import pytest

from agentflow.orchestration.definition import WorkflowDefinition
from agentflow.orchestration.models import Workflow, WorkflowExecution, utcnow
from agentflow.orchestration.stores import InMemoryExecutionStore, InMemoryWorkflowStore


def make_workflow(name: str = "wf", version: int = 1) -> Workflow:
    return Workflow.create(name, WorkflowDefinition(name=name), version=version)


class TestInMemoryWorkflowStore:
    def test_save_and_find(self):
        store = InMemoryWorkflowStore()
        workflow = make_workflow()
        store.save(workflow)

        found = store.find_by_id(workflow.id)
        assert found.id == workflow.id
        assert found is not workflow
        assert store.find_by_id("missing") is None
        assert len(store) == 1

    def test_returned_copies_are_isolated(self):
        store = InMemoryWorkflowStore()
        workflow = make_workflow()
        store.save(workflow)

        found = store.find_by_id(workflow.id)
        found.activate()
        workflow.execution_count = 99

        stored = store.find_by_id(workflow.id)
        assert stored.status.value == "DRAFT"
        assert stored.execution_count == 0

    def test_save_replaces(self):
        store = InMemoryWorkflowStore()
        workflow = make_workflow()
        store.save(workflow)
        workflow.activate()
        store.save(workflow)
        assert store.find_by_id(workflow.id).status.value == "ACTIVE"
        assert len(store) == 1

    def test_find_by_name_returns_latest_version(self):
        store = InMemoryWorkflowStore()
        store.save(make_workflow("daily", 1))
        latest = make_workflow("daily", 2)
        store.save(latest)
        store.save(make_workflow("other", 5))

        assert store.find_by_name("daily").id == latest.id
        assert store.find_by_name("nope") is None

    def test_find_all_in_creation_order(self):
        store = InMemoryWorkflowStore()
        first = make_workflow("b")
        second = make_workflow("a")
        second.created_at = first.created_at + timedelta(seconds=1)
        store.save(second)
        store.save(first)
        assert [w.id for w in store.find_all()] == [first.id, second.id]


class TestInMemoryExecutionStore:
    def test_save_and_find(self):
        store = InMemoryExecutionStore()
        execution = WorkflowExecution.create("wf-1", {"x": 1})
        store.save(execution)

        found = store.find_by_id(execution.id)
        assert found.input == {"x": 1}
        found.input["x"] = 2
        assert store.find_by_id(execution.id).input == {"x": 1}
        assert store.find_by_id("missing") is None

    def test_find_by_workflow_newest_first(self):
        store = InMemoryExecutionStore()
        now = utcnow()

        older = WorkflowExecution.create("wf-1")
        older.started_at = now - timedelta(minutes=5)
        newer = WorkflowExecution.create("wf-1")
        newer.started_at = now
        pending = WorkflowExecution.create("wf-1")
        other = WorkflowExecution.create("wf-2")

        for execution in (older, pending, other, newer):
            store.save(execution)

        ids = [e.id for e in store.find_by_workflow_id("wf-1")]
        assert ids == [newer.id, older.id, pending.id]
        assert store.find_by_workflow_id("none") == []
        assert len(store.find_all()) == 4

    @pytest.mark.parametrize("count", [0, 3])
    def test_len(self, count):
        store = InMemoryExecutionStore()
        for _ in range(count):
            store.save(WorkflowExecution.create("wf"))
        assert len(store) == count
