"""
Shared pytest fixtures and configuration for agentflow tests.

This module provides:
- Settings with fast, deterministic retry backoff
- A step executor registry with test step types (noop, sleep, flaky, ...)
- An orchestrator wired to both
- Definition document builders

Usage:
    Fixtures are auto-discovered by pytest.

    @pytest.mark.asyncio
    async def test_something(orchestrator, activate):
        workflow = activate({"name": "wf", "steps": [...]})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from agentflow.core.config import OrchestratorSettings, clear_settings_cache
from agentflow.orchestration import (
    RecordingAgentInvoker,
    StepExecutorRegistry,
    Workflow,
    WorkflowOrchestrator,
    WorkflowStep,
)
from tests._support.builders import StepRecorder, definition, step


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    """Settings are cached per process; isolate every test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> OrchestratorSettings:
    """Fast backoff without jitter so retry timing is predictable."""
    return OrchestratorSettings(
        _env_file=None,  # type: ignore[call-arg]
        retry_base_delay_seconds=0.01,
        retry_max_delay_seconds=0.05,
        retry_jitter=False,
        cancel_grace_seconds=1.0,
    )


# =============================================================================
# Executors
# =============================================================================


@pytest.fixture
def recorder() -> StepRecorder:
    return StepRecorder()


@pytest.fixture
def registry(recorder: StepRecorder) -> StepExecutorRegistry:
    """Built-ins plus test step types driven by ``parameters``.

    - ``noop``: returns ``parameters.patch`` (default empty)
    - ``sleep``: sleeps ``parameters.seconds`` then returns ``parameters.patch``
    - ``flaky``: fails ``parameters.failures`` times, then returns ``parameters.patch``
    - ``boom``: always raises RuntimeError
    - ``copy``: writes ``parameters.to`` = context[``parameters.from``]
    """
    registry = StepExecutorRegistry.with_builtins(RecordingAgentInvoker())

    @registry.executor("noop")
    async def noop(step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        recorder.calls.append(step.name)
        return dict(step.parameters.get("patch", {}))

    @registry.executor("sleep")
    async def sleep(step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        recorder.calls.append(step.name)
        recorder.event(step.name).set()
        recorder.active += 1
        recorder.max_active = max(recorder.max_active, recorder.active)
        try:
            await asyncio.sleep(step.parameters.get("seconds", 0.05))
        except asyncio.CancelledError:
            recorder.cancelled.append(step.name)
            raise
        finally:
            recorder.active -= 1
        return dict(step.parameters.get("patch", {}))

    @registry.executor("flaky")
    async def flaky(step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        attempt = recorder.attempts.get(step.name, 0) + 1
        recorder.attempts[step.name] = attempt
        if attempt <= step.parameters.get("failures", 1):
            raise RuntimeError(f"{step.name} attempt {attempt} failed")
        return dict(step.parameters.get("patch", {}))

    @registry.executor("boom")
    async def boom(step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        recorder.attempts[step.name] = recorder.attempts.get(step.name, 0) + 1
        raise RuntimeError(f"{step.name} exploded")

    @registry.executor("copy")
    async def copy_value(step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        return {step.parameters["to"]: context.get(step.parameters["from"])}

    return registry


# =============================================================================
# Orchestrator
# =============================================================================


@pytest.fixture
def orchestrator(registry: StepExecutorRegistry, settings: OrchestratorSettings) -> WorkflowOrchestrator:
    return WorkflowOrchestrator(registry=registry, settings=settings)


@pytest.fixture
def activate(orchestrator: WorkflowOrchestrator) -> Callable[[dict[str, Any]], Workflow]:
    """Create and activate a workflow from a definition document."""

    def _activate(document: dict[str, Any]) -> Workflow:
        workflow = orchestrator.create_workflow(document["name"], "", document)
        assert orchestrator.activate_workflow(workflow.id)
        return workflow

    return _activate


@pytest.fixture
def abc_definition() -> dict[str, Any]:
    """A and C are independent; B depends on A.

    Waves: [A, C], [B]
    """
    return definition(
        "abc",
        step("A", patch={"a": 1}),
        step("B", dependencies=["A"], patch={"b": 2}),
        step("C", patch={"c": 3}),
    )


@pytest.fixture
def definition_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write a definition document to a temporary file."""

    def _write(content: str, filename: str = "workflow.yaml") -> Path:
        path = tmp_path / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write
