"""
Root Typer application for the agentflow CLI.

Commands work on definition files (JSON or YAML) and run against the
built-in step executors with in-memory stores.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import typer
from typer import Typer

from agentflow import __version__
from agentflow.cli.utils import console, fail, print_execution, print_json, print_plan, print_problems
from agentflow.core.config import get_settings
from agentflow.core.logging import configure_logging
from agentflow.orchestration.definition import WorkflowDefinition
from agentflow.orchestration.definition_schema import load_definition_file, validate_nested_steps
from agentflow.orchestration.exceptions import DefinitionInvalidError
from agentflow.orchestration.executors import StepExecutorRegistry
from agentflow.orchestration.models import WorkflowExecution, WorkflowExecutionStatus
from agentflow.orchestration.orchestrator import WorkflowOrchestrator
from agentflow.orchestration.planner import DependencyScheduler, validate_steps

app = Typer(
    name="agentflow",
    help="agentflow: validate, plan and run agent workflows.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _file_argument() -> Any:
    return typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Workflow definition (JSON or YAML).",
    )


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"agentflow {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Override AGENTFLOW_LOG_LEVEL.",
    ),
) -> None:
    """agentflow CLI: workflow definitions and executions."""
    settings = get_settings()
    configure_logging(
        level=(log_level or settings.log_level).upper(),
        json_format=settings.json_logs,
        stream=sys.stderr,
    )


# ── Helpers ──────────────────────────────────────────────────────────────


def _load(file: Path) -> WorkflowDefinition:
    try:
        return load_definition_file(file)
    except DefinitionInvalidError as e:
        fail(str(e))


def _parse_input(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        fail(f"--input is not valid JSON: {e}")
    if not isinstance(payload, dict):
        fail("--input must be a JSON object")
    return payload


async def _execute(definition: WorkflowDefinition, payload: dict[str, Any]) -> WorkflowExecution:
    orchestrator = WorkflowOrchestrator(settings=get_settings())
    workflow = orchestrator.create_workflow(definition.name, definition.description, definition)
    orchestrator.activate_workflow(workflow.id)
    _, task = await orchestrator.execute_workflow(workflow.id, payload)
    return await task


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("validate")
def validate(file: Path = _file_argument()) -> None:
    """Check a definition file and report every problem found."""
    try:
        definition = load_definition_file(file)
    except DefinitionInvalidError as e:
        print_problems([str(e)], title=f"Invalid: {file.name}")
        raise typer.Exit(code=1) from e

    problems = validate_steps(definition.steps)
    try:
        validate_nested_steps(definition)
    except DefinitionInvalidError as e:
        problems.append(str(e))

    if problems:
        print_problems(problems, title=f"Invalid: {file.name}")
        raise typer.Exit(code=1)

    known = set(StepExecutorRegistry.with_builtins().types())
    unknown = sorted({s.type for s in definition.steps} - known)
    if unknown:
        console.print(f"[yellow]Warning[/yellow]: step types without a built-in executor: {', '.join(unknown)}")
    console.print(f"[green]✓[/green] {definition.name}: {len(definition.steps)} step(s) valid")


@app.command("plan")
def plan(file: Path = _file_argument()) -> None:
    """Print the execution waves of a definition."""
    definition = _load(file)
    try:
        execution_plan = DependencyScheduler().plan(definition.steps)
    except DefinitionInvalidError as e:
        fail(str(e))
    print_plan(definition.name, execution_plan)


@app.command("run")
def run(
    file: Path = _file_argument(),
    input: str | None = typer.Option(None, "--input", "-i", help="Execution input as a JSON object."),
    json_out: bool = typer.Option(False, "--json", help="Print the execution record as JSON."),
) -> None:
    """Run a definition with the built-in executors and print the result."""
    definition = _load(file)
    payload = _parse_input(input)
    try:
        execution = asyncio.run(_execute(definition, payload))
    except DefinitionInvalidError as e:
        fail(str(e))

    if json_out:
        print_json(execution.to_dict())
    else:
        print_execution(execution)

    if execution.status is not WorkflowExecutionStatus.COMPLETED:
        raise typer.Exit(code=1)
