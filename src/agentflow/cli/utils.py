"""
CLI utility helpers: consoles and rich rendering of plans and executions.
"""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from agentflow.orchestration.models import WorkflowExecution, WorkflowExecutionStatus
from agentflow.orchestration.planner import ExecutionPlan

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLES = {
    WorkflowExecutionStatus.COMPLETED: "green",
    WorkflowExecutionStatus.FAILED: "red",
    WorkflowExecutionStatus.TIMEOUT: "yellow",
    WorkflowExecutionStatus.CANCELLED: "dim",
}


def fail(message: str, code: int = 1) -> NoReturn:
    """Print an error to stderr and exit."""
    err_console.print(f"[bold red]Error[/bold red]: {message}")
    raise typer.Exit(code=code)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_problems(problems: list[str], *, title: str = "Problems") -> None:
    table = Table(title=title, show_header=False)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Problem", style="red")
    for index, problem in enumerate(problems, 1):
        table.add_row(str(index), problem)
    console.print(table)


def print_plan(name: str, plan: ExecutionPlan) -> None:
    """Render execution waves as a table (one row per step)."""
    table = Table(title=f"Execution plan: {name}")
    table.add_column("Wave", justify="right", style="cyan")
    table.add_column("Step", style="bold")
    table.add_column("Type")
    table.add_column("Depends on", style="dim")
    table.add_column("Guard", style="dim")
    for index, wave in enumerate(plan.waves):
        for step in wave:
            table.add_row(
                str(index),
                step.name,
                step.type,
                ", ".join(step.dependencies) or "-",
                step.condition or "-",
            )
    console.print(table)
    console.print(f"[dim]{plan.total_steps} step(s) in {len(plan)} wave(s)[/dim]")


def print_execution(execution: WorkflowExecution) -> None:
    """Render the final execution record."""
    style = _STATUS_STYLES.get(execution.status, "white")
    console.print(
        f"Execution [bold]{execution.id}[/bold]: [{style}]{execution.status.value}[/{style}] "
        f"({execution.completed_steps}/{execution.total_steps} steps, {execution.duration_ms} ms)"
    )

    if execution.step_executions:
        table = Table(title="Steps")
        table.add_column("Step", style="bold")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Error", style="red")
        for record in execution.step_executions:
            table.add_row(
                record.step_name,
                record.step_type,
                record.status.value,
                str(record.attempts),
                record.error or "",
            )
        console.print(table)

    if execution.error_message:
        err_console.print(f"[red]{execution.error_message}[/red]")
    if execution.output is not None:
        console.print_json(json.dumps(execution.output, default=str))
