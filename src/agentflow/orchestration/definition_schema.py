"""Pydantic models for workflow definition documents.

Definitions arrive as JSON (the REST-facing format), YAML (files on disk)
or plain dicts built in code. All three are validated by the same models
and converted into the immutable :class:`WorkflowDefinition`.

Usage::

    from agentflow.orchestration.definition_schema import parse_definition

    definition = parse_definition('{"name": "wf", "steps": [{"name": "a", "type": "script"}]}')
    definition = load_definition_file("workflows/report.yaml")

Example YAML::

    name: daily.report
    version: "1.2"
    timeoutSeconds: 300
    retryCount: 1
    variables:
      region: us-east
    steps:
      - name: fetch
        type: agent-command
        parameters:
          agent: web
          command: "fetch ${region}"
      - name: summarize
        type: script
        dependencies: [fetch]
        onError: continue
        parameters:
          script: "len(fetch['result'])"

Field spellings: camelCase (``timeoutSeconds``), snake_case
(``timeout_seconds``) and the short forms ``timeout`` / ``retry`` are all
accepted. Unknown fields are ignored.

Manifesto:
    Workflow authors should not have to care which spelling a client used.
    Validation happens once, here, and everything downstream works with
    the frozen dataclasses.

Tags:
    agentflow, orchestration, yaml, json, declarative, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from agentflow.orchestration.definition import OnErrorPolicy, StepType, WorkflowDefinition, WorkflowStep
from agentflow.orchestration.exceptions import DefinitionInvalidError


class WorkflowStepSpec(BaseModel):
    """Step document (``name`` and ``type`` are required)."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, description="Unique step name within workflow")
    type: str = Field(..., min_length=1, description="Executor type")
    description: str = Field(default="")
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("parameters", "params"),
    )
    dependencies: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dependencies", "dependsOn", "depends_on"),
    )
    condition: str | None = Field(default=None, description="Guard expression")
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("timeoutSeconds", "timeout_seconds", "timeout"),
    )
    retry_count: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("retryCount", "retry_count", "retry"),
    )
    on_error: str | None = Field(
        default=None,
        validation_alias=AliasChoices("onError", "on_error"),
    )

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("parameters", mode="before")
    @classmethod
    def _none_to_dict(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("dependencies", mode="before")
    @classmethod
    def _normalize_dependencies(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("dependencies")
    @classmethod
    def _dedupe(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(v))

    @field_validator("condition", mode="before")
    @classmethod
    def _blank_condition(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def to_step(self) -> WorkflowStep:
        """Convert to WorkflowStep dataclass."""
        return WorkflowStep(
            name=self.name,
            type=self.type,
            description=self.description,
            parameters=dict(self.parameters),
            dependencies=tuple(self.dependencies),
            condition=self.condition,
            timeout_seconds=self.timeout_seconds,
            retry_count=self.retry_count,
            on_error=OnErrorPolicy.parse(self.on_error),
        )


class WorkflowDefinitionSpec(BaseModel):
    """Root definition document."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    description: str = Field(default="")
    version: str = Field(default="1.0")
    steps: list[WorkflowStepSpec] = Field(default_factory=list)
    variables: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("timeoutSeconds", "timeout_seconds", "timeout"),
    )
    retry_count: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("retryCount", "retry_count", "retry"),
    )

    @field_validator("description", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("version", mode="before")
    @classmethod
    def _version_to_str(cls, v: Any) -> Any:
        if v is None:
            return "1.0"
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("steps", "variables", mode="before")
    @classmethod
    def _none_to_container(cls, v: Any, info) -> Any:
        if v is None:
            return [] if info.field_name == "steps" else {}
        return v

    @field_validator("steps")
    @classmethod
    def validate_unique_names(cls, v: list[WorkflowStepSpec]) -> list[WorkflowStepSpec]:
        """Ensure step names are unique."""
        names = [step.name for step in v]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")
        return v

    def to_definition(self) -> WorkflowDefinition:
        """Convert validated document to WorkflowDefinition dataclass."""
        return WorkflowDefinition(
            name=self.name,
            description=self.description,
            version=self.version,
            steps=tuple(step.to_step() for step in self.steps),
            variables=dict(self.variables),
            timeout_seconds=self.timeout_seconds,
            retry_count=self.retry_count,
        )


# =============================================================================
# Parsing entry points
# =============================================================================


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _load_text(text: str) -> Any:
    """JSON first (the wire format), YAML as the fallback."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DefinitionInvalidError(f"Definition is neither valid JSON nor YAML: {e}") from e


def parse_definition(source: str | Mapping[str, Any] | WorkflowDefinition) -> WorkflowDefinition:
    """Parse a definition from a JSON/YAML string, a mapping, or pass one through.

    Raises:
        DefinitionInvalidError: If the document is malformed or misses
            required fields.
    """
    if isinstance(source, WorkflowDefinition):
        return source

    data: Any = _load_text(source) if isinstance(source, str) else source
    if not isinstance(data, Mapping):
        raise DefinitionInvalidError(
            f"Definition must be an object, got {type(data).__name__}"
        )

    try:
        spec = WorkflowDefinitionSpec.model_validate(dict(data))
    except ValidationError as e:
        raise DefinitionInvalidError(f"Invalid workflow definition: {_format_validation_error(e)}") from e
    return spec.to_definition()


def load_definition_file(path: str | Path) -> WorkflowDefinition:
    """Load and validate a definition from a JSON or YAML file."""
    content = Path(path).read_text(encoding="utf-8")
    return parse_definition(content)


def parse_step(document: Any, default_name: str | None = None) -> WorkflowStep:
    """Parse a nested step document (``loop.step`` / ``parallel.steps[i]``).

    Nested documents may omit ``name``; ``default_name`` is used then.
    """
    if not isinstance(document, Mapping):
        raise DefinitionInvalidError(
            f"Nested step must be an object, got {type(document).__name__}"
        )
    data = dict(document)
    if not data.get("name") and default_name:
        data["name"] = default_name
    try:
        return WorkflowStepSpec.model_validate(data).to_step()
    except ValidationError as e:
        raise DefinitionInvalidError(f"Invalid nested step: {_format_validation_error(e)}") from e


def validate_nested_steps(definition: WorkflowDefinition) -> None:
    """Check the nested step documents of built-in ``loop`` / ``parallel`` steps.

    Raises:
        DefinitionInvalidError: On the first malformed nested document.
    """
    for step in definition.steps:
        _validate_step_parameters(step)


def _validate_step_parameters(step: WorkflowStep) -> None:
    if step.type == StepType.LOOP.value:
        params = step.parameters
        if "step" not in params:
            raise DefinitionInvalidError(f"Loop step '{step.name}' requires a 'step' parameter", field="parameters")
        has_iterations = "iterations" in params
        has_items = "items" in params
        if has_iterations == has_items:
            raise DefinitionInvalidError(
                f"Loop step '{step.name}' requires exactly one of 'iterations' or 'items'",
                field="parameters",
            )
        if has_iterations:
            iterations = params["iterations"]
            if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 0:
                raise DefinitionInvalidError(
                    f"Loop step '{step.name}' iterations must be a non-negative integer",
                    field="parameters",
                )
        elif not isinstance(params["items"], (list, tuple, str)):
            raise DefinitionInvalidError(
                f"Loop step '{step.name}' items must be a list or an expression string",
                field="parameters",
            )
        _validate_step_parameters(parse_step(params["step"], default_name=f"{step.name}.body"))

    elif step.type == StepType.PARALLEL.value:
        documents = step.parameters.get("steps")
        if not isinstance(documents, (list, tuple)) or not documents:
            raise DefinitionInvalidError(
                f"Parallel step '{step.name}' requires a non-empty 'steps' list", field="parameters"
            )
        seen: set[str] = set()
        for index, document in enumerate(documents):
            branch = parse_step(document, default_name=f"{step.name}.{index}")
            if branch.dependencies:
                raise DefinitionInvalidError(
                    f"Parallel step '{step.name}' branch '{branch.name}' must not declare dependencies",
                    field="parameters",
                )
            if branch.name in seen:
                raise DefinitionInvalidError(
                    f"Parallel step '{step.name}' has duplicate branch name: {branch.name}",
                    field="parameters",
                )
            seen.add(branch.name)
            _validate_step_parameters(branch)

    elif step.type == StepType.AGENT_COMMAND.value:
        for key in ("agent", "command"):
            if not step.parameters.get(key):
                raise DefinitionInvalidError(
                    f"Agent-command step '{step.name}' requires a '{key}' parameter", field="parameters"
                )

    elif step.type == StepType.CONDITION.value:
        if not step.parameters.get("condition"):
            raise DefinitionInvalidError(
                f"Condition step '{step.name}' requires a 'condition' parameter", field="parameters"
            )

    elif step.type == StepType.SCRIPT.value:
        if not isinstance(step.parameters.get("script"), str):
            raise DefinitionInvalidError(
                f"Script step '{step.name}' requires a 'script' string parameter", field="parameters"
            )


__all__ = [
    "WorkflowStepSpec",
    "WorkflowDefinitionSpec",
    "parse_definition",
    "load_definition_file",
    "parse_step",
    "validate_nested_steps",
]
