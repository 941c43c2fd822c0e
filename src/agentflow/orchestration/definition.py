"""Workflow definition: immutable blueprint of steps and dependencies.

Manifesto:
    A definition declares **what** to run and which steps must finish first,
    never **how** to run it (that is the orchestrator's job). Once a
    definition has been accepted it never changes: a running execution can
    rely on the exact step graph it was started with.

ARCHITECTURE
────────────
::

    WorkflowDefinition      ── name, version, variables, defaults
      └── steps[]           ── ordered WorkflowStep objects
            ├── type          ── executor name (agent-command, script, ...)
            ├── parameters    ── executor-specific settings
            ├── dependencies  ── names of steps that must settle first
            ├── condition     ── optional guard expression
            └── on_error      ── fail-workflow | continue | fail-fast

    definition_schema.parse_definition(doc)  → WorkflowDefinition
    DependencyScheduler().plan(def.steps)    → ExecutionPlan

Example::

    from agentflow.orchestration import WorkflowDefinition, WorkflowStep

    definition = WorkflowDefinition(
        name="daily.report",
        steps=(
            WorkflowStep("fetch", "agent-command", parameters={"agent": "web", "command": "get"}),
            WorkflowStep("summarize", "script", parameters={"script": "len(fetch)"},
                         dependencies=("fetch",)),
        ),
    )

Tags:
    agentflow, orchestration, workflow, DAG, steps, definition

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentflow.orchestration.exceptions import DefinitionInvalidError


class StepType(str, Enum):
    """Built-in step executor types.

    Steps may name any registered executor; these are the ones the
    default registry ships with.
    """

    AGENT_COMMAND = "agent-command"
    CONDITION = "condition"
    LOOP = "loop"
    PARALLEL = "parallel"
    SCRIPT = "script"


class OnErrorPolicy(str, Enum):
    """What to do when a step exhausts its retries."""

    FAIL_WORKFLOW = "fail-workflow"  # Let the wave finish, then fail
    CONTINUE = "continue"  # Record the failure, keep going
    FAIL_FAST = "fail-fast"  # Cancel in-flight siblings, fail now

    @classmethod
    def parse(cls, value: str | OnErrorPolicy | None) -> OnErrorPolicy:
        """Accept ``fail-fast``, ``FAIL_FAST``, ``failFast`` style spellings."""
        if value is None:
            return cls.FAIL_WORKFLOW
        if isinstance(value, cls):
            return value
        normalized = str(value).strip()
        kebab = "".join(f"-{c.lower()}" if c.isupper() and i else c for i, c in enumerate(normalized))
        for candidate in (normalized.lower().replace("_", "-"), kebab.lower().replace("_", "-")):
            try:
                return cls(candidate)
            except ValueError:
                continue
        valid = ", ".join(p.value for p in cls)
        raise DefinitionInvalidError(f"Invalid onError policy {value!r} (expected one of: {valid})", field="onError")


@dataclass(frozen=True)
class WorkflowStep:
    """
    One node of the workflow graph.

    Attributes:
        name: Unique step name within the definition
        type: Executor type used to run the step
        description: Human-readable description
        parameters: Executor-specific parameters
        dependencies: Names of steps that must settle before this one starts
        condition: Guard expression; false means the step is skipped
        timeout_seconds: Per-attempt timeout (None falls back to defaults)
        retry_count: Extra attempts after a failure (None falls back to defaults)
        on_error: Failure policy once retries are exhausted
    """

    name: str
    type: str
    description: str = ""
    parameters: dict[str, Any] = field(default_factory=dict)
    dependencies: tuple[str, ...] = ()
    condition: str | None = None
    timeout_seconds: float | None = None
    retry_count: int | None = None
    on_error: OnErrorPolicy = OnErrorPolicy.FAIL_WORKFLOW

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise DefinitionInvalidError("Step name must not be empty", field="name")
        if not self.type or not str(self.type).strip():
            raise DefinitionInvalidError(f"Step '{self.name}' has no type", field="type")
        # Frozen: normalise through object.__setattr__
        if not isinstance(self.dependencies, tuple):
            object.__setattr__(self, "dependencies", tuple(self.dependencies))
        if not isinstance(self.on_error, OnErrorPolicy):
            object.__setattr__(self, "on_error", OnErrorPolicy.parse(self.on_error))
        if self.retry_count is not None and self.retry_count < 0:
            raise DefinitionInvalidError(f"Step '{self.name}' has negative retry count", field="retryCount")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise DefinitionInvalidError(f"Step '{self.name}' timeout must be positive", field="timeoutSeconds")

    def effective_retry_count(self, definition: WorkflowDefinition | None = None, default: int = 0) -> int:
        """Retry budget: step value, then workflow value, then ``default``."""
        if self.retry_count is not None:
            return self.retry_count
        if definition is not None and definition.retry_count is not None:
            return definition.retry_count
        return default

    def effective_timeout(
        self, definition: WorkflowDefinition | None = None, default: float | None = None
    ) -> float | None:
        """Per-attempt timeout: step value, then ``default``, then the workflow deadline."""
        if self.timeout_seconds is not None:
            return self.timeout_seconds
        if default is not None:
            return default
        if definition is not None:
            return definition.timeout_seconds
        return None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase document form."""
        result: dict[str, Any] = {"name": self.name, "type": self.type}
        if self.description:
            result["description"] = self.description
        if self.parameters:
            result["parameters"] = dict(self.parameters)
        if self.dependencies:
            result["dependencies"] = list(self.dependencies)
        if self.condition:
            result["condition"] = self.condition
        if self.timeout_seconds is not None:
            result["timeoutSeconds"] = self.timeout_seconds
        if self.retry_count is not None:
            result["retryCount"] = self.retry_count
        if self.on_error != OnErrorPolicy.FAIL_WORKFLOW:
            result["onError"] = self.on_error.value
        return result


@dataclass(frozen=True)
class WorkflowDefinition:
    """
    A named, versioned, immutable set of steps.

    Attributes:
        name: Workflow name
        steps: Ordered steps; declaration order breaks ties inside a wave
        description: Human-readable description
        version: Definition version string (e.g. "1.0")
        variables: Initial execution context before input is overlaid
        timeout_seconds: Whole-workflow deadline
        retry_count: Default retry budget for steps that declare none
    """

    name: str
    steps: tuple[WorkflowStep, ...] = ()
    description: str = ""
    version: str = "1.0"
    variables: dict[str, Any] = field(default_factory=dict)
    timeout_seconds: float | None = None
    retry_count: int | None = None

    def __post_init__(self):
        if not self.name or not str(self.name).strip():
            raise DefinitionInvalidError("Workflow name must not be empty", field="name")
        if not isinstance(self.steps, tuple):
            object.__setattr__(self, "steps", tuple(self.steps))

        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise DefinitionInvalidError(f"Duplicate step name: {step.name}", field="steps")
            seen.add(step.name)

        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise DefinitionInvalidError("Workflow timeout must be positive", field="timeoutSeconds")
        if self.retry_count is not None and self.retry_count < 0:
            raise DefinitionInvalidError("Workflow retry count must not be negative", field="retryCount")

    # =========================================================================
    # Accessors
    # =========================================================================

    def step_names(self) -> list[str]:
        """Get ordered list of step names."""
        return [s.name for s in self.steps]

    def get_step(self, name: str) -> WorkflowStep | None:
        """Get step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def has_dependencies(self) -> bool:
        """Check if any steps have dependency edges."""
        return any(step.dependencies for step in self.steps)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase document form accepted by ``parse_definition``."""
        result: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "steps": [s.to_dict() for s in self.steps],
        }
        if self.description:
            result["description"] = self.description
        if self.variables:
            result["variables"] = dict(self.variables)
        if self.timeout_seconds is not None:
            result["timeoutSeconds"] = self.timeout_seconds
        if self.retry_count is not None:
            result["retryCount"] = self.retry_count
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowDefinition:
        """Deserialize from a definition document (camelCase or snake_case)."""
        from agentflow.orchestration.definition_schema import parse_definition

        return parse_definition(data)

    def to_yaml(self) -> str:
        """Serialize this definition to a YAML string."""
        import yaml

        return yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def __repr__(self) -> str:
        return f"WorkflowDefinition({self.name!r}, version={self.version!r}, steps={len(self.steps)})"


__all__ = [
    "StepType",
    "OnErrorPolicy",
    "WorkflowStep",
    "WorkflowDefinition",
]
