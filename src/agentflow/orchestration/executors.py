"""Step executors: injectable step type → executor lookup.

Manifesto:
    The orchestrator needs to turn ``step.type == "script"`` into running
    code without reflection or hidden global tables. The registry is an
    ordinary object built at startup and passed to the orchestrator, so
    tests can use an isolated registry with fake executors.

ARCHITECTURE
────────────
::

    StepExecutor (Protocol)
      └── await .execute(step, context) → patch (dict merged into context)

    StepExecutorRegistry
      ├── .register(step_type, executor)  ─ object or plain async function
      ├── .executor(step_type)            ─ decorator form of register
      ├── .get(step_type)                 ─ raises UnknownStepTypeError
      ├── .has(step_type) / .types() / .unregister(step_type)
      └── .with_builtins(agent_invoker)   ─ registry with the five built-ins

    Built-ins:
      agent-command  AgentCommandExecutor  → {output_key|name: {agent, command, status, result}}
      condition      ConditionExecutor     → {name: {condition, result}}
      loop           LoopExecutor          → {name: {iterations, results}}
      parallel       ParallelExecutor      → branch patches + {name: {branches}}
      script         ScriptExecutor        → assignments + {output_key|name: value}

Executors receive a private copy of the context and must not rely on
mutating it; everything they want to publish goes into the returned patch.

Tags:
    agentflow, orchestration, executors, registry, plugins

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from agentflow.core.logging import get_logger
from agentflow.orchestration.agents import AgentInvoker, EchoAgentInvoker
from agentflow.orchestration.definition import StepType, WorkflowStep
from agentflow.orchestration.definition_schema import parse_step
from agentflow.orchestration.exceptions import (
    ExpressionError,
    StepTimeoutError,
    UnknownStepTypeError,
)
from agentflow.orchestration.expressions import (
    evaluate,
    evaluate_condition,
    resolve_placeholders,
    run_script,
)

logger = get_logger(__name__)

StepFunction = Callable[[WorkflowStep, dict[str, Any]], Awaitable[Mapping[str, Any] | None]]


@runtime_checkable
class StepExecutor(Protocol):
    """Protocol for step executors.

    Executors can be:
    - Objects with ``async def execute(self, step, context) -> dict``
    - Plain async functions ``async def run(step, context) -> dict``
      (wrapped by :meth:`StepExecutorRegistry.register`)
    """

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        """Run the step and return the patch to merge into the context."""
        ...


class FunctionStepExecutor:
    """Adapts a plain async function to the :class:`StepExecutor` protocol."""

    def __init__(self, func: StepFunction):
        self._func = func

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        return normalize_patch(step, await self._func(step, context))

    def __repr__(self) -> str:
        return f"FunctionStepExecutor({getattr(self._func, '__qualname__', self._func)!r})"


def normalize_patch(step: WorkflowStep, patch: Any) -> dict[str, Any]:
    """Validate an executor's return value; ``None`` means an empty patch."""
    if patch is None:
        return {}
    if not isinstance(patch, Mapping):
        raise TypeError(
            f"Executor for step '{step.name}' returned {type(patch).__name__}, expected a mapping"
        )
    return dict(patch)


class StepExecutorRegistry:
    """Injectable step executor registry.

    Example:
        >>> registry = StepExecutorRegistry.with_builtins()
        >>>
        >>> @registry.executor("noop")
        ... async def noop(step, context):
        ...     return {}
        >>>
        >>> registry.types()
        ['agent-command', 'condition', 'loop', 'noop', 'parallel', 'script']
    """

    def __init__(self):
        self._executors: dict[str, StepExecutor] = {}
        self._metadata: dict[str, dict[str, Any]] = {}

    def register(
        self,
        step_type: str,
        executor: StepExecutor | StepFunction,
        description: str | None = None,
    ) -> None:
        """Register an executor (replacing any previous one for ``step_type``).

        Args:
            step_type: Value of ``WorkflowStep.type`` this executor handles
            executor: Executor object, or an async ``(step, context) -> dict`` function
            description: Optional description for documentation
        """
        if not step_type:
            raise ValueError("step_type must not be empty")
        if not hasattr(executor, "execute"):
            if not inspect.iscoroutinefunction(executor):
                raise TypeError(
                    f"Executor for {step_type!r} must have an async execute() or be an async function"
                )
            executor = FunctionStepExecutor(executor)
        self._executors[step_type] = executor  # type: ignore[assignment]
        self._metadata[step_type] = {
            "type": step_type,
            "executor": type(executor).__name__,
            "description": description,
        }

    def executor(self, step_type: str, description: str | None = None) -> Callable[[StepFunction], StepFunction]:
        """Decorator form of :meth:`register` for async functions."""

        def decorator(func: StepFunction) -> StepFunction:
            self.register(step_type, func, description=description)
            return func

        return decorator

    def get(self, step_type: str) -> StepExecutor:
        """Get the executor for ``step_type``.

        Raises:
            UnknownStepTypeError: If nothing is registered for that type
        """
        if step_type not in self._executors:
            raise UnknownStepTypeError(step_type, self.types())
        return self._executors[step_type]

    def has(self, step_type: str) -> bool:
        """Check if an executor exists."""
        return step_type in self._executors

    def types(self) -> list[str]:
        """Registered step types, sorted."""
        return sorted(self._executors)

    def get_metadata(self, step_type: str) -> dict[str, Any] | None:
        return self._metadata.get(step_type)

    def unregister(self, step_type: str) -> bool:
        """Unregister an executor.

        Returns:
            True if the executor was removed, False if not found
        """
        if step_type in self._executors:
            del self._executors[step_type]
            del self._metadata[step_type]
            return True
        return False

    def clear(self) -> None:
        """Clear all executors (for testing)."""
        self._executors.clear()
        self._metadata.clear()

    def __contains__(self, step_type: object) -> bool:
        return step_type in self._executors

    def __len__(self) -> int:
        return len(self._executors)

    @classmethod
    def with_builtins(cls, agent_invoker: AgentInvoker | None = None) -> StepExecutorRegistry:
        """Registry preloaded with agent-command, condition, loop, parallel and script."""
        registry = cls()
        registry.register(
            StepType.AGENT_COMMAND.value,
            AgentCommandExecutor(agent_invoker or EchoAgentInvoker()),
            description="Invoke an agent command",
        )
        registry.register(StepType.CONDITION.value, ConditionExecutor(), description="Evaluate a boolean expression")
        registry.register(StepType.LOOP.value, LoopExecutor(registry), description="Repeat a nested step")
        registry.register(StepType.PARALLEL.value, ParallelExecutor(registry), description="Fan out nested steps")
        registry.register(StepType.SCRIPT.value, ScriptExecutor(), description="Run an inline script")
        return registry


# =============================================================================
# Nested dispatch (loop / parallel)
# =============================================================================


async def run_nested_step(
    registry: StepExecutorRegistry,
    step: WorkflowStep,
    context: dict[str, Any],
) -> dict[str, Any]:
    """Run a nested step: guard, executor lookup and its own timeout.

    Nested steps have no retry budget of their own; the enclosing step's
    retries cover them.
    """
    if step.condition and not evaluate_condition(step.condition, context):
        logger.debug("step.nested_skipped", step=step.name)
        return {}

    executor = registry.get(step.type)
    if step.timeout_seconds is None:
        return normalize_patch(step, await executor.execute(step, context))
    try:
        async with asyncio.timeout(step.timeout_seconds):
            patch = await executor.execute(step, context)
    except TimeoutError as e:
        raise StepTimeoutError(step.name, step.timeout_seconds) from e
    return normalize_patch(step, patch)


# =============================================================================
# Built-in executors
# =============================================================================


class AgentCommandExecutor:
    """``agent-command``: resolve ``${key}`` placeholders and call the agent."""

    def __init__(self, invoker: AgentInvoker):
        self.invoker = invoker

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        params = step.parameters
        agent = params.get("agent")
        command = params.get("command")
        if not agent or not command:
            raise ValueError(f"Agent-command step '{step.name}' requires 'agent' and 'command'")

        resolved = resolve_placeholders(str(command), context)
        result = await self.invoker.invoke_agent(str(agent), resolved, context)

        logger.debug("agent.command_executed", step=step.name, agent=agent, command=resolved)
        key = params.get("output_key") or step.name
        return {
            key: {
                "agent": agent,
                "command": resolved,
                "status": "completed",
                "result": result,
            }
        }


class ConditionExecutor:
    """``condition``: evaluate ``parameters.condition`` and publish the boolean."""

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        expression = step.parameters.get("condition")
        if not expression:
            raise ExpressionError(f"Condition step '{step.name}' has no condition")
        result = evaluate_condition(expression, context)
        return {step.name: {"condition": expression, "result": result}}


class LoopExecutor:
    """``loop``: run ``parameters.step`` once per iteration or per item.

    Each iteration sees a copy of the context with ``loop_index`` (and
    ``loop_item`` in items mode) added. Iterations run sequentially.
    """

    def __init__(self, registry: StepExecutorRegistry):
        self.registry = registry

    def _items(self, step: WorkflowStep, context: dict[str, Any]) -> list[Any] | None:
        params = step.parameters
        if "items" not in params:
            return None
        items = params["items"]
        if isinstance(items, str):
            items = evaluate(items, context)
        if not isinstance(items, (list, tuple)):
            raise ExpressionError(
                f"Loop step '{step.name}' items must be a list, got {type(items).__name__}"
            )
        return list(items)

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        body = parse_step(step.parameters.get("step"), default_name=f"{step.name}.body")
        items = self._items(step, context)
        count = len(items) if items is not None else int(step.parameters.get("iterations", 1))

        results: list[Any] = []
        for index in range(count):
            iteration_context = dict(context)
            iteration_context["loop_index"] = index
            if items is not None:
                iteration_context["loop_item"] = items[index]
            patch = await run_nested_step(self.registry, body, iteration_context)
            results.append(patch.get(body.name, patch))

        return {step.name: {"iterations": count, "results": results}}


class ParallelExecutor:
    """``parallel``: run ``parameters.steps`` concurrently.

    Branch patches are merged in declaration order. If one branch fails the
    remaining branches are cancelled and the first error propagates.
    """

    def __init__(self, registry: StepExecutorRegistry):
        self.registry = registry

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        documents = step.parameters.get("steps") or []
        branches = [parse_step(doc, default_name=f"{step.name}.{i}") for i, doc in enumerate(documents)]

        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(run_nested_step(self.registry, branch, dict(context)))
                    for branch in branches
                ]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from eg

        merged: dict[str, Any] = {}
        for task in tasks:
            merged.update(task.result())
        merged[step.name] = {"branches": len(branches)}
        return merged


class ScriptExecutor:
    """``script``: ``name = expr`` lines plus an optional final expression."""

    async def execute(self, step: WorkflowStep, context: dict[str, Any]) -> dict[str, Any]:
        script = step.parameters.get("script")
        if not isinstance(script, str):
            raise ExpressionError(f"Script step '{step.name}' has no script")
        result = run_script(script, context)

        patch = dict(result.assignments)
        if result.has_value:
            patch[step.parameters.get("output_key") or step.name] = result.value
        return patch


__all__ = [
    "StepExecutor",
    "StepFunction",
    "FunctionStepExecutor",
    "StepExecutorRegistry",
    "normalize_patch",
    "run_nested_step",
    "AgentCommandExecutor",
    "ConditionExecutor",
    "LoopExecutor",
    "ParallelExecutor",
    "ScriptExecutor",
]
