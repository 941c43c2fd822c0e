"""
Workflow Orchestrator: catalog management and asynchronous execution.

Manifesto:
    One asyncio task drives one execution. The driver owns the execution
    record while it is live; every other caller sees persisted deep
    copies. Steps run wave by wave: each wave is a set of steps whose
    dependencies are already satisfied, dispatched concurrently, and its
    patches are merged into the private context in declaration order
    once the wave settles. The same definition and input therefore always
    produce the same output, however the steps interleave.

ARCHITECTURE
────────────
::

    WorkflowOrchestrator
      ├── create_workflow(name, description, definition)  → Workflow (DRAFT)
      ├── await execute_workflow(workflow_id, input)      → (execution_id, Task)
      │     └── _drive(handle)                            ─ one task per execution
      │           └── _run_wave(...)                      ─ one task per step
      │                 └── _run_step(...)                ─ retry + per-attempt timeout
      ├── cancel_execution(execution_id)                  → bool
      └── accessors / lifecycle / get_stats()

    Execution handle registry: execution_id → (task, settled-step count, lock)
    Cleared when the driver returns.

Failure policy per step (``onError``):
    fail-workflow  let the wave finish, then fail without starting later waves
    fail-fast      cancel in-flight siblings and fail at once
    continue       record the failure, write nothing, let dependents run

Example::

    orchestrator = WorkflowOrchestrator()
    workflow = orchestrator.create_workflow("greet", "", definition_json)
    orchestrator.activate_workflow(workflow.id)

    execution_id, task = await orchestrator.execute_workflow(workflow.id, {"user": "ada"})
    execution = await task
    assert execution.status is WorkflowExecutionStatus.COMPLETED

Tags:
    agentflow, orchestration, orchestrator, asyncio, waves, retry, cancellation

Doc-Types:
    api-reference, architecture
"""

from __future__ import annotations

import asyncio
import copy
import threading
import traceback
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from agentflow.core.config import OrchestratorSettings, get_settings
from agentflow.core.errors import ValidationError
from agentflow.core.logging import LogContext, get_logger
from agentflow.orchestration.agents import AgentInvoker
from agentflow.orchestration.definition import OnErrorPolicy, WorkflowDefinition, WorkflowStep
from agentflow.orchestration.definition_schema import parse_definition, validate_nested_steps
from agentflow.orchestration.exceptions import (
    DefinitionInvalidError,
    ExecutionCancelledError,
    StepExecutionFailedError,
    StepTimeoutError,
    WorkflowNotExecutableError,
    WorkflowNotFoundError,
    WorkflowTimeoutError,
)
from agentflow.orchestration.executors import StepExecutorRegistry, normalize_patch
from agentflow.orchestration.expressions import evaluate_condition
from agentflow.orchestration.models import (
    StepExecution,
    StepStatus,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowStatus,
    utcnow,
)
from agentflow.orchestration.planner import DependencyScheduler, ExecutionPlan
from agentflow.orchestration.retry import ExponentialBackoff, NoRetry, RetryContext
from agentflow.orchestration.stores import (
    ExecutionStore,
    InMemoryExecutionStore,
    InMemoryWorkflowStore,
    WorkflowStore,
)

logger = get_logger(__name__)


@dataclass
class _ExecutionHandle:
    """Live state of one execution, owned by the orchestrator."""

    execution: WorkflowExecution
    workflow: Workflow
    plan: ExecutionPlan
    task: asyncio.Task[WorkflowExecution] | None = None
    settled_steps: int = 0
    completed: int = 0
    in_flight: dict[str, WorkflowStep] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)


@dataclass
class _StepOutcome:
    step: WorkflowStep
    record: StepExecution
    patch: dict[str, Any] | None = None
    error: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class WorkflowOrchestrator:
    """Creates workflows and runs their executions on the current event loop.

    Args:
        workflow_store: Catalog storage (default: in-memory)
        execution_store: Execution record storage (default: in-memory)
        registry: Step executors by type (default: the built-ins)
        settings: Engine settings (default: ``get_settings()``)
        agent_invoker: Backend for ``agent-command`` steps when ``registry``
            is not given
    """

    def __init__(
        self,
        workflow_store: WorkflowStore | None = None,
        execution_store: ExecutionStore | None = None,
        registry: StepExecutorRegistry | None = None,
        settings: OrchestratorSettings | None = None,
        agent_invoker: AgentInvoker | None = None,
    ):
        self._workflow_store = workflow_store if workflow_store is not None else InMemoryWorkflowStore()
        self._execution_store = execution_store if execution_store is not None else InMemoryExecutionStore()
        self._registry = registry if registry is not None else StepExecutorRegistry.with_builtins(agent_invoker)
        self._settings = settings if settings is not None else get_settings()
        self._scheduler = DependencyScheduler()
        self._handles: dict[str, _ExecutionHandle] = {}
        self._workflow_locks: dict[str, threading.Lock] = {}
        self._workflow_locks_guard = threading.Lock()

    @property
    def registry(self) -> StepExecutorRegistry:
        return self._registry

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    # =========================================================================
    # Catalog
    # =========================================================================

    def _prepare_definition(self, definition: Any) -> tuple[WorkflowDefinition, ExecutionPlan]:
        parsed = parse_definition(definition)
        validate_nested_steps(parsed)
        return parsed, self._scheduler.plan(parsed.steps)

    def create_workflow(self, name: str, description: str = "", definition: Any = None) -> Workflow:
        """Parse, validate and store a new workflow.

        ``definition`` may be a JSON or YAML document, a mapping or a
        :class:`WorkflowDefinition`. A name already in the catalog gets the
        next catalog version.

        Raises:
            DefinitionInvalidError: Unparseable document, unknown or cyclic
                dependencies, duplicate step names, bad built-in parameters
        """
        if definition is None:
            raise DefinitionInvalidError("Workflow definition is required", field="definition")
        parsed, plan = self._prepare_definition(definition)

        existing = self._workflow_store.find_by_name(name)
        status = WorkflowStatus.ACTIVE if self._settings.auto_activate else WorkflowStatus.DRAFT
        workflow = Workflow.create(
            name=name,
            definition=parsed,
            description=description or parsed.description,
            status=status,
            version=existing.version + 1 if existing else 1,
        )
        self._workflow_store.save(workflow)

        logger.info(
            "workflow.created",
            workflow_id=workflow.id,
            workflow=workflow.name,
            version=workflow.version,
            steps=plan.total_steps,
            waves=len(plan),
            status=workflow.status.value,
        )
        return workflow

    def update_definition(self, workflow_id: str, definition: Any) -> Workflow:
        """Replace a workflow's definition.

        Executions keep pointing at the definition they ran: if any exist,
        a new catalog version is created (same name, status DRAFT or ACTIVE
        per ``auto_activate``) and returned; otherwise the workflow is
        updated in place.
        """
        workflow = self._require_workflow(workflow_id)
        parsed, _ = self._prepare_definition(definition)

        if self._execution_store.find_by_workflow_id(workflow_id):
            latest = self._workflow_store.find_by_name(workflow.name)
            status = WorkflowStatus.ACTIVE if self._settings.auto_activate else WorkflowStatus.DRAFT
            successor = Workflow.create(
                name=workflow.name,
                definition=parsed,
                description=workflow.description,
                status=status,
                version=(latest.version if latest else workflow.version) + 1,
            )
            self._workflow_store.save(successor)
            logger.info(
                "workflow.versioned",
                workflow_id=successor.id,
                previous_id=workflow.id,
                workflow=successor.name,
                version=successor.version,
            )
            return successor

        workflow.definition = parsed
        workflow.updated_at = utcnow()
        self._workflow_store.save(workflow)
        logger.info("workflow.definition_updated", workflow_id=workflow.id, workflow=workflow.name)
        return workflow

    def _require_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._workflow_store.find_by_id(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def _change_status(self, workflow_id: str, action: str) -> bool:
        with self._workflow_lock(workflow_id):
            workflow = self._require_workflow(workflow_id)
            previous = workflow.status
            changed = getattr(workflow, action)()
            if changed:
                self._workflow_store.save(workflow)
        if changed:
            logger.info(
                f"workflow.{action}d",
                workflow_id=workflow_id,
                previous=previous.value,
                status=workflow.status.value,
            )
        else:
            logger.debug("workflow.transition_ignored", workflow_id=workflow_id, action=action, status=previous.value)
        return changed

    def activate_workflow(self, workflow_id: str) -> bool:
        return self._change_status(workflow_id, "activate")

    def deactivate_workflow(self, workflow_id: str) -> bool:
        return self._change_status(workflow_id, "deactivate")

    def pause_workflow(self, workflow_id: str) -> bool:
        return self._change_status(workflow_id, "pause")

    def resume_workflow(self, workflow_id: str) -> bool:
        return self._change_status(workflow_id, "resume")

    def archive_workflow(self, workflow_id: str) -> bool:
        return self._change_status(workflow_id, "archive")

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_workflow(
        self,
        workflow_id: str,
        input: Mapping[str, Any] | None = None,
    ) -> tuple[str, asyncio.Task[WorkflowExecution]]:
        """Start an execution and return its id and driver task.

        The task's result is the final :class:`WorkflowExecution`; it never
        raises into the caller.

        Raises:
            WorkflowNotFoundError: Unknown ``workflow_id``
            WorkflowNotExecutableError: Workflow is not ACTIVE or PAUSED
            ValidationError: ``input`` is not a mapping
        """
        if input is not None and not isinstance(input, Mapping):
            raise ValidationError("Execution input must be a mapping", field="input", value=input)

        workflow = self._require_workflow(workflow_id)
        if not workflow.is_executable():
            raise WorkflowNotExecutableError(workflow_id, workflow.status.value)
        plan = self._scheduler.plan(workflow.definition.steps)

        execution = WorkflowExecution.create(
            workflow_id=workflow.id,
            input=copy.deepcopy(dict(input or {})),
            total_steps=plan.total_steps,
        )
        self._execution_store.save(execution)

        handle = _ExecutionHandle(execution=execution, workflow=workflow, plan=plan)
        self._handles[execution.id] = handle
        handle.task = asyncio.create_task(self._drive(handle), name=f"agentflow-execution-{execution.id}")

        logger.info(
            "execution.submitted",
            execution_id=execution.id,
            workflow_id=workflow.id,
            workflow=workflow.name,
            total_steps=plan.total_steps,
        )
        return execution.id, handle.task

    def cancel_execution(self, execution_id: str) -> bool:
        """Cancel a PENDING or RUNNING execution.

        Returns:
            True if the execution was cancelled, False if it is unknown or
            already terminal.
        """
        handle = self._handles.get(execution_id)
        if handle is None:
            return False

        with handle.lock:
            execution = handle.execution
            if execution.is_finished:
                return False
            was_running = execution.status is WorkflowExecutionStatus.RUNNING
            execution.step_executions.extend(self._cancelled_records(handle, sorted(handle.in_flight)))
            execution.cancel(handle.settled_steps)
            self._execution_store.save(execution)

        self._record_outcome(execution)
        if was_running and handle.task is not None and not handle.task.done():
            handle.task.cancel()

        logger.info(
            "execution.cancelled",
            execution_id=execution_id,
            workflow_id=execution.workflow_id,
            completed_steps=execution.completed_steps,
            was_running=was_running,
        )
        return True

    async def wait_for(self, execution_id: str) -> WorkflowExecution | None:
        """Wait until an execution is terminal and return its record."""
        handle = self._handles.get(execution_id)
        if handle is not None and handle.task is not None:
            await asyncio.shield(handle.task)
        return self.get_execution(execution_id)

    async def shutdown(self) -> None:
        """Cancel every live execution and wait for the drivers to return."""
        handles = list(self._handles.values())
        for handle in handles:
            self.cancel_execution(handle.execution.id)
        tasks = [h.task for h in handles if h.task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("orchestrator.shutdown", cancelled=len(handles))

    # =========================================================================
    # Driver
    # =========================================================================

    async def _drive(self, handle: _ExecutionHandle) -> WorkflowExecution:
        execution = handle.execution
        workflow = handle.workflow
        definition = workflow.definition

        async with LogContext(execution_id=execution.id, workflow_id=workflow.id):
            try:
                if not self._begin(handle):
                    return copy.deepcopy(execution)

                context: dict[str, Any] = copy.deepcopy(dict(definition.variables))
                context.update(copy.deepcopy(execution.input))

                try:
                    async with asyncio.timeout(definition.timeout_seconds):
                        for index, wave in enumerate(handle.plan.waves):
                            await self._run_wave(handle, index, wave, context)
                except TimeoutError as e:
                    error = WorkflowTimeoutError(workflow.name, definition.timeout_seconds or 0)
                    error.__cause__ = e
                    self._finish_timeout(handle, error, step=execution.current_step, attempts=None)
                    return copy.deepcopy(execution)

                self._settle(handle, lambda ex: ex.complete(copy.deepcopy(context)))
                logger.info(
                    "execution.completed",
                    duration_ms=execution.duration_ms,
                    completed_steps=execution.completed_steps,
                )

            except asyncio.CancelledError:
                if self._settle(handle, lambda ex: ex.cancel(handle.settled_steps)):
                    logger.info("execution.cancelled", completed_steps=execution.completed_steps)

            except StepExecutionFailedError as e:
                cause = e.__cause__
                if isinstance(cause, StepTimeoutError):
                    self._finish_timeout(handle, cause, step=e.step_name, attempts=e.attempts)
                else:
                    details = self._error_details(cause or e, step=e.step_name, attempts=e.attempts)
                    if self._settle(handle, lambda ex: ex.fail(str(e), details)):
                        logger.error("execution.failed", step=e.step_name, attempts=e.attempts, error=str(e))

            except Exception as e:
                details = self._error_details(e, step=execution.current_step, attempts=None)
                if self._settle(handle, lambda ex: ex.fail(f"{type(e).__name__}: {e}", details)):
                    logger.exception("execution.internal_error", error=str(e))

            finally:
                self._handles.pop(execution.id, None)

        return copy.deepcopy(execution)

    def _begin(self, handle: _ExecutionHandle) -> bool:
        """PENDING → RUNNING, unless the execution was cancelled before it started."""
        with handle.lock:
            execution = handle.execution
            if execution.is_finished:
                logger.info("execution.skipped", status=execution.status.value)
                return False
            execution.start()
            self._execution_store.save(execution)
        logger.info(
            "execution.started",
            workflow=handle.workflow.name,
            total_steps=execution.total_steps,
            waves=len(handle.plan),
        )
        return True

    def _settle(self, handle: _ExecutionHandle, transition) -> bool:
        """Apply a terminal transition once; counters follow only if it applied."""
        with handle.lock:
            execution = handle.execution
            if execution.is_finished:
                return False
            transition(execution)
            self._execution_store.save(execution)
        self._record_outcome(execution)
        return True

    def _finish_timeout(
        self,
        handle: _ExecutionHandle,
        error: Exception,
        step: str | None,
        attempts: int | None,
    ) -> None:
        details = self._error_details(error, step=step, attempts=attempts)
        if self._settle(handle, lambda ex: ex.time_out(str(error), details)):
            logger.error("execution.timeout", step=step, error=str(error))

    @staticmethod
    def _error_details(error: BaseException, step: str | None, attempts: int | None) -> dict[str, Any]:
        return {
            "error_type": type(error).__name__,
            "step": step,
            "attempts": attempts,
            "traceback": "".join(traceback.format_exception(error)),
        }

    # ── Waves ────────────────────────────────────────────────────

    async def _run_wave(
        self,
        handle: _ExecutionHandle,
        index: int,
        wave: tuple[WorkflowStep, ...],
        context: dict[str, Any],
    ) -> None:
        """Run one wave and merge its patches into ``context``.

        Conditions see the context as of the wave start; the context is not
        touched until every dispatched step has settled.
        """
        definition = handle.workflow.definition
        order = {step.name: position for position, step in enumerate(wave)}
        outcomes: dict[str, _StepOutcome] = {}
        tasks: dict[asyncio.Task[_StepOutcome], WorkflowStep] = {}

        logger.debug("wave.dispatched", wave=index, steps=[s.name for s in wave])

        for step in wave:
            guard = self._check_condition(step, context)
            if guard is None:
                tasks[asyncio.create_task(self._run_step(step, definition, context))] = step
                handle.in_flight[step.name] = step
            elif guard.failed:
                outcomes[step.name] = guard
                self._record_step(handle, guard)
            else:
                self._record_step(handle, guard)

        guard_failure = next((o for o in outcomes.values() if o.step.on_error is OnErrorPolicy.FAIL_FAST), None)
        if guard_failure is not None:
            await self._cancel_steps(handle, set(tasks), tasks)
            raise self._escalate(guard_failure)

        pending = set(tasks)
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=lambda t: order[tasks[t].name]):
                    outcome = task.result()
                    outcomes[outcome.step.name] = outcome
                    self._record_step(handle, outcome)
                    if outcome.failed and outcome.step.on_error is OnErrorPolicy.FAIL_FAST:
                        await self._cancel_steps(handle, pending, tasks)
                        pending = set()
                        raise self._escalate(outcome)
        except asyncio.CancelledError:
            await self._cancel_steps(handle, pending, tasks)
            raise

        failures = [outcomes[s.name] for s in wave if s.name in outcomes and outcomes[s.name].failed]
        for outcome in failures:
            if outcome.step.on_error is not OnErrorPolicy.CONTINUE:
                raise self._escalate(outcome)
        for outcome in failures:
            logger.warning(
                "step.failure_ignored",
                step=outcome.step.name,
                error=str(outcome.error),
                attempts=outcome.record.attempts,
            )

        for step in wave:
            outcome = outcomes.get(step.name)
            if outcome is not None and outcome.patch:
                context.update(outcome.patch)

        with handle.lock:
            handle.settled_steps = handle.completed
            if not handle.execution.is_finished:
                handle.execution.context = copy.deepcopy(context)
                self._execution_store.save(handle.execution)

        logger.info(
            "wave.settled",
            wave=index,
            steps=len(wave),
            failed=len(failures),
            settled_steps=handle.settled_steps,
        )

    @staticmethod
    def _escalate(outcome: _StepOutcome) -> StepExecutionFailedError:
        return StepExecutionFailedError(outcome.step.name, outcome.record.attempts, outcome.error)

    def _check_condition(self, step: WorkflowStep, context: dict[str, Any]) -> _StepOutcome | None:
        """None if the step should run, else a skipped or failed outcome."""
        if not step.condition:
            return None
        now = utcnow()
        try:
            if evaluate_condition(step.condition, context):
                return None
        except Exception as e:
            logger.warning("step.condition_failed", step=step.name, condition=step.condition, error=str(e))
            record = StepExecution(
                step_name=step.name,
                step_type=step.type,
                status=StepStatus.FAILED,
                attempts=1,
                started_at=now,
                completed_at=utcnow(),
                error=str(e),
                error_type=type(e).__name__,
            )
            return _StepOutcome(step=step, record=record, error=e)

        logger.info("step.skipped", step=step.name, condition=step.condition)
        record = StepExecution(
            step_name=step.name,
            step_type=step.type,
            status=StepStatus.SKIPPED,
            started_at=now,
            completed_at=now,
        )
        return _StepOutcome(step=step, record=record)

    def _record_step(self, handle: _ExecutionHandle, outcome: _StepOutcome) -> None:
        """Append the step record and advance progress for settled steps."""
        settles = not outcome.failed or outcome.step.on_error is OnErrorPolicy.CONTINUE
        with handle.lock:
            handle.in_flight.pop(outcome.step.name, None)
            execution = handle.execution
            if execution.is_finished:
                return
            execution.step_executions.append(outcome.record)
            if settles:
                handle.completed += 1
                execution.update_progress(outcome.step.name, handle.completed)
            self._execution_store.save(execution)

    async def _cancel_steps(
        self,
        handle: _ExecutionHandle,
        pending: set[asyncio.Task[_StepOutcome]],
        tasks: dict[asyncio.Task[_StepOutcome], WorkflowStep],
    ) -> None:
        """Cancel in-flight step tasks and give them the grace period to unwind."""
        if not pending:
            return
        for task in pending:
            task.cancel()
        _, stragglers = await asyncio.wait(pending, timeout=self._settings.cancel_grace_seconds)
        if stragglers:
            logger.warning("step.cancel_grace_exceeded", steps=sorted(tasks[t].name for t in stragglers))

        names = sorted(tasks[t].name for t in pending)
        with handle.lock:
            # a finished record already holds its cancelled steps
            if handle.execution.is_finished:
                handle.in_flight.clear()
                return
            handle.execution.step_executions.extend(self._cancelled_records(handle, names))

    @staticmethod
    def _cancelled_records(handle: _ExecutionHandle, names: list[str]) -> list[StepExecution]:
        """Build CANCELLED records for in-flight steps; caller holds ``handle.lock``."""
        reason = ExecutionCancelledError(handle.execution.id)
        now = utcnow()
        records = []
        for name in names:
            step = handle.in_flight.pop(name, None)
            if step is None:
                continue
            records.append(
                StepExecution(
                    step_name=step.name,
                    step_type=step.type,
                    status=StepStatus.CANCELLED,
                    completed_at=now,
                    error=str(reason),
                    error_type=type(reason).__name__,
                )
            )
        return records

    # ── Steps ────────────────────────────────────────────────────

    async def _run_step(
        self,
        step: WorkflowStep,
        definition: WorkflowDefinition,
        context: dict[str, Any],
    ) -> _StepOutcome:
        """Run one step with its retry budget; never raises except on cancellation."""
        timeout = step.effective_timeout(definition, self._settings.default_step_timeout_seconds)
        retries = step.effective_retry_count(definition, self._settings.default_retry_count)
        strategy = ExponentialBackoff.from_settings(self._settings, retries) if retries else NoRetry()

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.warning(
                "step.retry",
                step=step.name,
                attempt=attempt,
                max_retries=retries,
                delay_seconds=round(delay, 3),
                error=str(error),
            )

        retry = RetryContext(strategy, on_retry=on_retry)
        record = StepExecution(
            step_name=step.name,
            step_type=step.type,
            status=StepStatus.COMPLETED,
            started_at=utcnow(),
        )

        async def attempt() -> dict[str, Any]:
            executor = self._registry.get(step.type)
            step_context = copy.deepcopy(context)
            if timeout is None:
                return normalize_patch(step, await executor.execute(step, step_context))
            scope = asyncio.timeout(timeout)
            try:
                async with scope:
                    patch = await executor.execute(step, step_context)
            except TimeoutError as e:
                if scope.expired():
                    raise StepTimeoutError(step.name, timeout) from e
                raise
            return normalize_patch(step, patch)

        logger.debug("step.started", step=step.name, type=step.type, timeout=timeout, retries=retries)
        try:
            patch = await retry.run_async(attempt)
        except Exception as e:
            record.status = StepStatus.TIMEOUT if isinstance(e, StepTimeoutError) else StepStatus.FAILED
            record.attempts = retry.attempts
            record.completed_at = utcnow()
            record.error = str(e)
            record.error_type = type(e).__name__
            logger.error(
                "step.failed",
                step=step.name,
                attempts=retry.attempts,
                elapsed_seconds=round(retry.elapsed_seconds, 3),
                error_type=type(e).__name__,
                error=str(e),
                on_error=step.on_error.value,
            )
            return _StepOutcome(step=step, record=record, error=e)

        record.attempts = retry.attempts
        record.completed_at = utcnow()
        logger.info(
            "step.completed",
            step=step.name,
            attempts=retry.attempts,
            duration_seconds=record.duration_seconds,
            keys=sorted(patch),
        )
        return _StepOutcome(step=step, record=record, patch=patch)

    # =========================================================================
    # Counters
    # =========================================================================

    def _workflow_lock(self, workflow_id: str) -> threading.Lock:
        with self._workflow_locks_guard:
            lock = self._workflow_locks.get(workflow_id)
            if lock is None:
                lock = self._workflow_locks[workflow_id] = threading.Lock()
            return lock

    def _record_outcome(self, execution: WorkflowExecution) -> None:
        with self._workflow_lock(execution.workflow_id):
            workflow = self._workflow_store.find_by_id(execution.workflow_id)
            if workflow is None:
                logger.warning("workflow.missing_for_outcome", workflow_id=execution.workflow_id)
                return
            workflow.record_execution_outcome(
                succeeded=execution.is_successful,
                duration_ms=execution.duration_ms,
                executed_at=execution.completed_at,
            )
            self._workflow_store.save(workflow)

    # =========================================================================
    # Accessors
    # =========================================================================

    def get_workflow(self, workflow_id: str) -> Workflow | None:
        return self._workflow_store.find_by_id(workflow_id)

    def get_all_workflows(self) -> list[Workflow]:
        return self._workflow_store.find_all()

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        return self._execution_store.find_by_id(execution_id)

    def get_workflow_executions(self, workflow_id: str) -> list[WorkflowExecution]:
        """Executions of one workflow, most recently started first."""
        return self._execution_store.find_by_workflow_id(workflow_id)

    def running_execution_count(self) -> int:
        """Executions currently PENDING or RUNNING."""
        return sum(1 for h in list(self._handles.values()) if not h.execution.is_finished)

    def get_stats(self) -> dict[str, Any]:
        """Catalog and execution counts by status."""
        workflows = self._workflow_store.find_all()
        executions = self._execution_store.find_all()
        workflow_counts = Counter(w.status.value for w in workflows)
        execution_counts = Counter(e.status.value for e in executions)
        return {
            "workflows": {
                "total": len(workflows),
                "by_status": {s.value: workflow_counts.get(s.value, 0) for s in WorkflowStatus},
            },
            "executions": {
                "total": len(executions),
                "running": self.running_execution_count(),
                "by_status": {s.value: execution_counts.get(s.value, 0) for s in WorkflowExecutionStatus},
            },
            "step_types": self._registry.types(),
        }


__all__ = ["WorkflowOrchestrator"]
