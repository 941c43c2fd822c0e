"""Tests for WorkflowOrchestrator catalog management, lifecycle and statistics."""

import json

import pytest

from agentflow.core.config import OrchestratorSettings
from agentflow.orchestration import (
    CycleDetectedError,
    DefinitionInvalidError,
    UnknownDependencyError,
    WorkflowDefinition,
    WorkflowExecutionStatus,
    WorkflowNotExecutableError,
    WorkflowNotFoundError,
    WorkflowOrchestrator,
    WorkflowStatus,
)
from tests._support.builders import definition, step


class TestCreateWorkflow:
    def test_creates_draft(self, orchestrator, abc_definition):
        workflow = orchestrator.create_workflow("abc", "Three steps", abc_definition)

        assert workflow.status is WorkflowStatus.DRAFT
        assert workflow.version == 1
        assert workflow.description == "Three steps"
        assert workflow.definition.step_names() == ["A", "B", "C"]
        assert orchestrator.get_workflow(workflow.id).name == "abc"

    def test_accepts_json_and_yaml(self, orchestrator, abc_definition):
        from_json = orchestrator.create_workflow("json", "", json.dumps(abc_definition))
        from_yaml = orchestrator.create_workflow(
            "yaml", "", "name: yaml\nsteps:\n  - name: only\n    type: noop\n"
        )
        assert from_json.definition.step_names() == ["A", "B", "C"]
        assert from_yaml.definition.step_names() == ["only"]

    def test_accepts_definition_object(self, orchestrator):
        parsed = WorkflowDefinition(name="obj")
        assert orchestrator.create_workflow("obj", "", parsed).definition is not None

    def test_description_falls_back_to_definition(self, orchestrator):
        workflow = orchestrator.create_workflow("described", "", definition("d", description="From document"))
        assert workflow.description == "From document"

    def test_same_name_bumps_version(self, orchestrator, abc_definition):
        first = orchestrator.create_workflow("abc", "", abc_definition)
        second = orchestrator.create_workflow("abc", "", abc_definition)
        assert (first.version, second.version) == (1, 2)
        assert first.id != second.id

    def test_auto_activate(self, registry, abc_definition):
        settings = OrchestratorSettings(_env_file=None, auto_activate=True)
        orchestrator = WorkflowOrchestrator(registry=registry, settings=settings)
        assert orchestrator.create_workflow("abc", "", abc_definition).status is WorkflowStatus.ACTIVE

    def test_missing_definition(self, orchestrator):
        with pytest.raises(DefinitionInvalidError, match="definition is required"):
            orchestrator.create_workflow("empty", "", None)

    def test_rejects_cycle_without_storing(self, orchestrator):
        cyclic = definition("cyclic", step("a", dependencies=["b"]), step("b", dependencies=["a"]))
        with pytest.raises(CycleDetectedError):
            orchestrator.create_workflow("cyclic", "", cyclic)
        assert orchestrator.get_all_workflows() == []
        assert orchestrator.get_stats()["executions"]["total"] == 0

    def test_rejects_unknown_dependency(self, orchestrator):
        with pytest.raises(UnknownDependencyError, match="unknown steps: ghost"):
            orchestrator.create_workflow("ghost", "", definition("ghost", step("a", dependencies=["ghost"])))
        assert orchestrator.get_all_workflows() == []

    def test_rejects_self_dependency(self, orchestrator):
        with pytest.raises(UnknownDependencyError, match="depends on itself"):
            orchestrator.create_workflow("self", "", definition("self", step("a", dependencies=["a"])))

    def test_rejects_bad_builtin_parameters(self, orchestrator):
        bad = definition("bad", step("cmd", "agent-command", params={"agent": "web"}))
        with pytest.raises(DefinitionInvalidError, match="requires a 'command'"):
            orchestrator.create_workflow("bad", "", bad)

    def test_rejects_garbage(self, orchestrator):
        with pytest.raises(DefinitionInvalidError):
            orchestrator.create_workflow("garbage", "", "- just\n- a list\n")


class TestLifecycle:
    def test_transitions(self, orchestrator, abc_definition):
        workflow = orchestrator.create_workflow("abc", "", abc_definition)

        assert orchestrator.pause_workflow(workflow.id) is False
        assert orchestrator.activate_workflow(workflow.id) is True
        assert orchestrator.activate_workflow(workflow.id) is False
        assert orchestrator.pause_workflow(workflow.id) is True
        assert orchestrator.resume_workflow(workflow.id) is True
        assert orchestrator.deactivate_workflow(workflow.id) is True
        assert orchestrator.get_workflow(workflow.id).status is WorkflowStatus.INACTIVE
        assert orchestrator.archive_workflow(workflow.id) is True
        assert orchestrator.activate_workflow(workflow.id) is False
        assert orchestrator.get_workflow(workflow.id).status is WorkflowStatus.ARCHIVED

    def test_unknown_workflow(self, orchestrator):
        with pytest.raises(WorkflowNotFoundError):
            orchestrator.activate_workflow("missing")

    @pytest.mark.asyncio
    async def test_inactive_and_archived_are_not_executable(self, orchestrator, activate, abc_definition):
        workflow = activate(abc_definition)
        orchestrator.deactivate_workflow(workflow.id)
        with pytest.raises(WorkflowNotExecutableError, match="status=INACTIVE"):
            await orchestrator.execute_workflow(workflow.id)

        orchestrator.archive_workflow(workflow.id)
        with pytest.raises(WorkflowNotExecutableError, match="status=ARCHIVED"):
            await orchestrator.execute_workflow(workflow.id)


class TestUpdateDefinition:
    def test_updates_in_place_without_executions(self, orchestrator, abc_definition):
        workflow = orchestrator.create_workflow("abc", "", abc_definition)
        updated = orchestrator.update_definition(workflow.id, definition("abc", step("only")))

        assert updated.id == workflow.id
        assert updated.version == 1
        assert orchestrator.get_workflow(workflow.id).definition.step_names() == ["only"]

    @pytest.mark.asyncio
    async def test_creates_new_version_after_executions(self, orchestrator, activate, abc_definition):
        workflow = activate(abc_definition)
        _, task = await orchestrator.execute_workflow(workflow.id)
        await task

        successor = orchestrator.update_definition(workflow.id, definition("abc", step("only")))

        assert successor.id != workflow.id
        assert successor.version == 2
        assert successor.status is WorkflowStatus.DRAFT
        assert orchestrator.get_workflow(workflow.id).definition.step_names() == ["A", "B", "C"]
        assert len(orchestrator.get_all_workflows()) == 2

    def test_rejects_invalid_definition(self, orchestrator, abc_definition):
        workflow = orchestrator.create_workflow("abc", "", abc_definition)
        with pytest.raises(CycleDetectedError):
            orchestrator.update_definition(
                workflow.id, definition("abc", step("a", dependencies=["b"]), step("b", dependencies=["a"]))
            )
        assert orchestrator.get_workflow(workflow.id).definition.step_names() == ["A", "B", "C"]


class TestCountersAndStats:
    @pytest.mark.asyncio
    async def test_counters_follow_outcomes(self, orchestrator, activate):
        workflow = activate(definition("mixed", step("maybe", "boom", condition="explode")))

        for explode in (False, True, False):
            _, task = await orchestrator.execute_workflow(workflow.id, {"explode": explode})
            await task

        stored = orchestrator.get_workflow(workflow.id)
        assert stored.execution_count == 3
        assert stored.success_count == 2
        assert stored.failure_count == 1
        assert stored.success_rate == pytest.approx(200 / 3)
        assert stored.last_executed_at is not None
        assert stored.last_execution_duration_ms is not None

    @pytest.mark.asyncio
    async def test_executions_newest_first(self, orchestrator, activate, abc_definition):
        workflow = activate(abc_definition)
        ids = []
        for _ in range(3):
            execution_id, task = await orchestrator.execute_workflow(workflow.id)
            await task
            ids.append(execution_id)

        listed = [e.id for e in orchestrator.get_workflow_executions(workflow.id)]
        assert listed == list(reversed(ids))

    @pytest.mark.asyncio
    async def test_get_stats(self, orchestrator, activate, abc_definition):
        workflow = activate(abc_definition)
        orchestrator.create_workflow("draft", "", abc_definition)
        _, task = await orchestrator.execute_workflow(workflow.id)
        await task

        stats = orchestrator.get_stats()
        assert stats["workflows"]["total"] == 2
        assert stats["workflows"]["by_status"]["ACTIVE"] == 1
        assert stats["workflows"]["by_status"]["DRAFT"] == 1
        assert stats["executions"]["total"] == 1
        assert stats["executions"]["running"] == 0
        assert stats["executions"]["by_status"][WorkflowExecutionStatus.COMPLETED.value] == 1
        assert stats["executions"]["by_status"]["FAILED"] == 0
        assert "noop" in stats["step_types"]
        assert "agent-command" in stats["step_types"]

    def test_default_collaborators(self):
        orchestrator = WorkflowOrchestrator(settings=OrchestratorSettings(_env_file=None))
        assert orchestrator.registry.types() == ["agent-command", "condition", "loop", "parallel", "script"]
        assert orchestrator.get_all_workflows() == []
