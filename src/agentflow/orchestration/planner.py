"""
Dependency Scheduler - turns a step list into dispatch waves.

This is the core scheduling logic:
1. Validate every dependency names a known step (and not the step itself)
2. Validate the dependency graph is a DAG (no cycles)
3. Group steps into waves level by level
4. Return an ExecutionPlan ready for the orchestrator

Design Principles:
- Pure functions where possible (testable, deterministic)
- No execution (that's for WorkflowOrchestrator)
- Stable: within a wave, steps keep their definition order
- Clear error messages for all failure modes
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from agentflow.core.logging import get_logger
from agentflow.orchestration.definition import WorkflowStep
from agentflow.orchestration.exceptions import CycleDetectedError, UnknownDependencyError

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Waves of mutually independent steps.

    Every step's dependencies lie in strictly earlier waves, so a whole
    wave can be dispatched concurrently once the previous one settles.
    """

    waves: tuple[tuple[WorkflowStep, ...], ...]

    @property
    def total_steps(self) -> int:
        return sum(len(wave) for wave in self.waves)

    def wave_names(self) -> list[list[str]]:
        """Step names per wave, e.g. ``[["A", "C"], ["B"]]``."""
        return [[step.name for step in wave] for wave in self.waves]

    def wave_of(self, step_name: str) -> int:
        """Index of the wave containing ``step_name``.

        Raises:
            KeyError: If the step is not part of the plan.
        """
        for index, wave in enumerate(self.waves):
            if any(step.name == step_name for step in wave):
                return index
        raise KeyError(step_name)

    def steps(self) -> list[WorkflowStep]:
        """All steps in dispatch order."""
        return [step for wave in self.waves for step in wave]

    def __len__(self) -> int:
        return len(self.waves)


class DependencyScheduler:
    """
    Builds an ExecutionPlan from a step list.

    Thread-safe: No mutable state, each plan() call is independent.

    Example:
        scheduler = DependencyScheduler()
        plan = scheduler.plan(definition.steps)
        plan.wave_names()   # [["A", "C"], ["B"]]
    """

    def plan(self, steps: Sequence[WorkflowStep]) -> ExecutionPlan:
        """
        Compute dispatch waves for ``steps``.

        Raises:
            UnknownDependencyError: If a step depends on an unknown step or itself
            CycleDetectedError: If dependencies contain a cycle
        """
        steps = list(steps)
        self._validate_dependencies(steps)
        self._validate_no_cycles(steps)
        waves = self._build_waves(steps)

        plan = ExecutionPlan(waves=waves)
        logger.debug(
            "scheduler.planned",
            step_count=plan.total_steps,
            wave_count=len(waves),
        )
        return plan

    def _validate_dependencies(self, steps: list[WorkflowStep]) -> None:
        """Validate all dependencies reference existing, other steps."""
        step_names = {s.name for s in steps}

        for step in steps:
            if step.name in step.dependencies:
                raise UnknownDependencyError(step.name, [step.name])
            missing = [dep for dep in step.dependencies if dep not in step_names]
            if missing:
                raise UnknownDependencyError(step.name, missing)

    def _validate_no_cycles(self, steps: list[WorkflowStep]) -> None:
        """
        Validate the dependency graph is a DAG (no cycles).

        Uses depth-first search with three-color marking:
        - WHITE (0): Unvisited
        - GRAY (1): Currently visiting (on current path)
        - BLACK (2): Finished visiting

        If we encounter a GRAY node, we've found a cycle.
        """
        WHITE, GRAY, BLACK = 0, 1, 2

        graph = {s.name: list(s.dependencies) for s in steps}
        color = {s.name: WHITE for s in steps}
        path: list[str] = []

        def dfs(node: str) -> list[str] | None:
            """DFS visit. Returns cycle if found, None otherwise."""
            color[node] = GRAY
            path.append(node)

            for neighbor in graph.get(node, []):
                if color[neighbor] == GRAY:
                    cycle_start = path.index(neighbor)
                    return path[cycle_start:] + [neighbor]
                elif color[neighbor] == WHITE:
                    result = dfs(neighbor)
                    if result:
                        return result

            color[node] = BLACK
            path.pop()
            return None

        for step in steps:
            if color[step.name] == WHITE:
                cycle = dfs(step.name)
                if cycle:
                    raise CycleDetectedError(cycle)

    def _build_waves(self, steps: list[WorkflowStep]) -> tuple[tuple[WorkflowStep, ...], ...]:
        """
        Level-by-level topological grouping.

        Wave 0 holds steps without dependencies; wave k holds steps whose
        dependencies all lie in waves < k. Each wave keeps definition order.
        """
        level: dict[str, int] = {}
        remaining = list(steps)
        waves: list[tuple[WorkflowStep, ...]] = []

        while remaining:
            current = len(waves)
            ready = [s for s in remaining if all(level.get(dep, current) < current for dep in s.dependencies)]
            # Cycles are rejected before this point
            if not ready:
                raise CycleDetectedError([s.name for s in remaining])
            for step in ready:
                level[step.name] = current
            ready_names = {s.name for s in ready}
            remaining = [s for s in remaining if s.name not in ready_names]
            waves.append(tuple(ready))

        return tuple(waves)


# =============================================================================
# Utility Functions
# =============================================================================


def validate_steps(steps: Iterable[WorkflowStep]) -> list[str]:
    """
    Validate a step list without raising.

    Returns list of error messages (empty if valid).
    Useful for CLI validation before registration.
    """
    steps = list(steps)
    errors = []

    step_names = [s.name for s in steps]
    if len(step_names) != len(set(step_names)):
        duplicates = sorted({n for n in step_names if step_names.count(n) > 1})
        errors.append(f"Duplicate step names: {', '.join(duplicates)}")

    known = set(step_names)
    for step in steps:
        if step.name in step.dependencies:
            errors.append(f"Step '{step.name}' depends on itself")
        missing = [dep for dep in step.dependencies if dep not in known]
        if missing:
            errors.append(f"Step '{step.name}' depends on unknown steps: {', '.join(missing)}")

    # Cycle check only makes sense on a graph with resolvable edges
    if not errors:
        try:
            DependencyScheduler()._validate_no_cycles(steps)
        except CycleDetectedError as e:
            errors.append(str(e))

    return errors


__all__ = [
    "ExecutionPlan",
    "DependencyScheduler",
    "validate_steps",
]
