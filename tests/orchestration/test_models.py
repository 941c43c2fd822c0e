"""Tests for workflow catalog and execution records."""

from datetime import timedelta

import pytest

from agentflow.orchestration.definition import WorkflowDefinition, WorkflowStep
from agentflow.orchestration.exceptions import InvalidTransitionError
from agentflow.orchestration.models import (
    EXECUTION_VALID_TRANSITIONS,
    StepExecution,
    StepStatus,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowStatus,
    utcnow,
    validate_execution_transition,
)


@pytest.fixture
def workflow() -> Workflow:
    definition = WorkflowDefinition(name="daily", steps=(WorkflowStep(name="a", type="noop"),))
    return Workflow.create("daily", definition, description="Daily run")


class TestWorkflowLifecycle:
    def test_create_defaults(self, workflow):
        assert workflow.status == WorkflowStatus.DRAFT
        assert workflow.version == 1
        assert workflow.execution_count == 0
        assert workflow.is_executable() is False
        assert workflow.id

    def test_activate_pause_resume(self, workflow):
        assert workflow.activate() is True
        assert workflow.is_executable() is True
        assert workflow.pause() is True
        assert workflow.status == WorkflowStatus.PAUSED
        assert workflow.is_executable() is True
        assert workflow.resume() is True
        assert workflow.status == WorkflowStatus.ACTIVE

    def test_deactivate_and_reactivate(self, workflow):
        workflow.activate()
        assert workflow.deactivate() is True
        assert workflow.is_executable() is False
        assert workflow.activate() is True

    def test_invalid_requests_return_false(self, workflow):
        assert workflow.pause() is False
        assert workflow.resume() is False
        assert workflow.deactivate() is False
        assert workflow.status == WorkflowStatus.DRAFT

    def test_archive_is_terminal(self, workflow):
        workflow.activate()
        assert workflow.archive() is True
        assert workflow.activate() is False
        assert workflow.archive() is False
        assert workflow.status == WorkflowStatus.ARCHIVED

    def test_transition_touches_updated_at(self, workflow):
        before = workflow.updated_at
        workflow.activate()
        assert workflow.updated_at >= before


class TestWorkflowCounters:
    def test_record_outcomes(self, workflow):
        workflow.record_execution_outcome(True, 120)
        workflow.record_execution_outcome(False, 80)
        workflow.record_execution_outcome(True, 40)

        assert workflow.execution_count == 3
        assert workflow.success_count == 2
        assert workflow.failure_count == 1
        assert workflow.last_execution_duration_ms == 40
        assert workflow.last_executed_at is not None
        assert workflow.success_rate == pytest.approx(200 / 3)

    def test_success_rate_without_executions(self, workflow):
        assert workflow.success_rate == 0.0

    def test_to_dict(self, workflow):
        data = workflow.to_dict()
        assert data["name"] == "daily"
        assert data["status"] == "DRAFT"
        assert data["definition"]["steps"] == [{"name": "a", "type": "noop"}]
        assert data["last_executed_at"] is None


class TestExecutionTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (WorkflowExecutionStatus.PENDING, WorkflowExecutionStatus.RUNNING),
            (WorkflowExecutionStatus.PENDING, WorkflowExecutionStatus.CANCELLED),
            (WorkflowExecutionStatus.RUNNING, WorkflowExecutionStatus.COMPLETED),
            (WorkflowExecutionStatus.RUNNING, WorkflowExecutionStatus.TIMEOUT),
        ],
    )
    def test_valid(self, current, target):
        validate_execution_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (WorkflowExecutionStatus.PENDING, WorkflowExecutionStatus.COMPLETED),
            (WorkflowExecutionStatus.COMPLETED, WorkflowExecutionStatus.RUNNING),
            (WorkflowExecutionStatus.CANCELLED, WorkflowExecutionStatus.FAILED),
            (WorkflowExecutionStatus.TIMEOUT, WorkflowExecutionStatus.CANCELLED),
        ],
    )
    def test_invalid(self, current, target):
        with pytest.raises(InvalidTransitionError):
            validate_execution_transition(current, target)

    def test_terminal_states_have_no_exits(self):
        for status in WorkflowExecutionStatus:
            if status.is_terminal:
                assert EXECUTION_VALID_TRANSITIONS[status] == frozenset()


class TestWorkflowExecution:
    def test_create(self):
        execution = WorkflowExecution.create("wf-1", {"x": 1}, total_steps=3)
        assert execution.status == WorkflowExecutionStatus.PENDING
        assert execution.input == {"x": 1}
        assert execution.total_steps == 3
        assert execution.completed_steps == 0
        assert execution.is_finished is False

    def test_happy_path(self):
        execution = WorkflowExecution.create("wf-1", total_steps=2)
        execution.start()
        execution.update_progress("a", 1)
        assert execution.progress_percentage == 50.0
        execution.update_progress("b", 2)
        execution.complete({"result": 42})

        assert execution.is_successful is True
        assert execution.output == {"result": 42}
        assert execution.current_step is None
        assert execution.duration_ms is not None and execution.duration_ms >= 0
        assert execution.completed_at >= execution.started_at

    def test_cannot_complete_from_pending(self):
        execution = WorkflowExecution.create("wf-1")
        with pytest.raises(InvalidTransitionError):
            execution.complete({})

    def test_terminal_state_cannot_change(self):
        execution = WorkflowExecution.create("wf-1")
        execution.start()
        execution.fail("boom")
        with pytest.raises(InvalidTransitionError):
            execution.cancel()
        assert execution.status == WorkflowExecutionStatus.FAILED

    def test_pending_can_fail(self):
        execution = WorkflowExecution.create("wf-1")
        execution.fail("could not start", {"error_type": "RuntimeError"})
        assert execution.status == WorkflowExecutionStatus.FAILED
        assert execution.error_details == {"error_type": "RuntimeError"}

    def test_time_out(self):
        execution = WorkflowExecution.create("wf-1")
        execution.start()
        execution.time_out("too slow")
        assert execution.status == WorkflowExecutionStatus.TIMEOUT
        assert execution.error_message == "too slow"

    def test_cancel_rolls_progress_back_to_settled(self):
        execution = WorkflowExecution.create("wf-1", total_steps=4)
        execution.start()
        execution.update_progress("c", 3)
        execution.cancel(settled_steps=2)
        assert execution.status == WorkflowExecutionStatus.CANCELLED
        assert execution.completed_steps == 2

    def test_progress_bounds(self):
        execution = WorkflowExecution.create("wf-1", total_steps=1)
        with pytest.raises(ValueError):
            execution.update_progress("a", 2)
        with pytest.raises(ValueError):
            execution.update_progress("a", -1)

    def test_progress_of_empty_workflow(self):
        assert WorkflowExecution.create("wf-1").progress_percentage == 0.0

    def test_step_lookup_and_serialization(self):
        execution = WorkflowExecution.create("wf-1", total_steps=1)
        started = utcnow()
        execution.step_executions.append(
            StepExecution(
                step_name="a",
                step_type="noop",
                status=StepStatus.COMPLETED,
                attempts=1,
                started_at=started,
                completed_at=started + timedelta(seconds=2),
            )
        )
        record = execution.get_step_execution("a")
        assert record.duration_seconds == 2.0
        assert execution.get_step_execution("b") is None

        data = execution.to_dict()
        assert data["status"] == "PENDING"
        assert data["step_executions"][0]["status"] == "completed"
        assert data["step_executions"][0]["duration_seconds"] == 2.0
