"""
agentflow orchestration: the workflow execution engine.

WHY
───
A single agent command does one thing. Orchestration strings many of them
into a dependency graph with shared context, guards, retries, timeouts and
per-step failure policies, and keeps a live, queryable record of every run.

ARCHITECTURE
────────────
::

    WorkflowDefinition (immutable DAG of WorkflowStep)
      └── parsed from JSON / YAML / dict by definition_schema

    WorkflowOrchestrator
      ├── DependencyScheduler   ─ steps → waves (cycle + unknown-dep checks)
      ├── StepExecutorRegistry  ─ step type → executor
      │     agent-command, condition, loop, parallel, script
      ├── RetryContext          ─ exponential backoff per step
      ├── WorkflowStore         ─ catalog (Workflow, versions, counters)
      └── ExecutionStore        ─ WorkflowExecution records

MODULE MAP (recommended reading order)
──────────────────────────────────────
1. exceptions.py         ─ error hierarchy
2. definition.py         ─ WorkflowStep / WorkflowDefinition
3. definition_schema.py  ─ document parsing and parameter validation
4. models.py             ─ Workflow / WorkflowExecution + state machines
5. planner.py            ─ dependency waves
6. expressions.py        ─ restricted condition / script evaluator
7. executors.py          ─ registry + built-in step executors
8. retry.py              ─ retry strategies
9. stores.py / agents.py ─ collaborator protocols
10. orchestrator.py      ─ WorkflowOrchestrator

Example:
    from agentflow.orchestration import WorkflowOrchestrator

    orchestrator = WorkflowOrchestrator()
    workflow = orchestrator.create_workflow("hello", "", {
        "name": "hello",
        "steps": [
            {"name": "greet", "type": "script", "parameters": {"script": "greeting = 'hi ' + user"}},
        ],
    })
    orchestrator.activate_workflow(workflow.id)
    execution_id, task = await orchestrator.execute_workflow(workflow.id, {"user": "ada"})
    execution = await task
    execution.output["greeting"]  # 'hi ada'
"""

from agentflow.orchestration.agents import AgentInvoker, EchoAgentInvoker, RecordingAgentInvoker
from agentflow.orchestration.definition import (
    OnErrorPolicy,
    StepType,
    WorkflowDefinition,
    WorkflowStep,
)
from agentflow.orchestration.definition_schema import (
    load_definition_file,
    parse_definition,
    validate_nested_steps,
)
from agentflow.orchestration.exceptions import (
    CycleDetectedError,
    DefinitionInvalidError,
    ExecutionCancelledError,
    ExpressionError,
    InvalidTransitionError,
    StepExecutionFailedError,
    StepTimeoutError,
    UnknownDependencyError,
    UnknownStepTypeError,
    WorkflowNotExecutableError,
    WorkflowNotFoundError,
    WorkflowTimeoutError,
)
from agentflow.orchestration.executors import StepExecutor, StepExecutorRegistry
from agentflow.orchestration.models import (
    StepExecution,
    StepStatus,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStatus,
    WorkflowStatus,
)
from agentflow.orchestration.orchestrator import WorkflowOrchestrator
from agentflow.orchestration.planner import DependencyScheduler, ExecutionPlan, validate_steps
from agentflow.orchestration.retry import ExponentialBackoff, NoRetry, RetryContext
from agentflow.orchestration.stores import (
    ExecutionStore,
    InMemoryExecutionStore,
    InMemoryWorkflowStore,
    WorkflowStore,
)

__all__ = [
    # Definition
    "StepType",
    "OnErrorPolicy",
    "WorkflowStep",
    "WorkflowDefinition",
    "parse_definition",
    "load_definition_file",
    "validate_nested_steps",
    # Records
    "Workflow",
    "WorkflowStatus",
    "WorkflowExecution",
    "WorkflowExecutionStatus",
    "StepExecution",
    "StepStatus",
    # Engine
    "WorkflowOrchestrator",
    "DependencyScheduler",
    "ExecutionPlan",
    "validate_steps",
    "StepExecutor",
    "StepExecutorRegistry",
    "ExponentialBackoff",
    "NoRetry",
    "RetryContext",
    # Collaborators
    "AgentInvoker",
    "EchoAgentInvoker",
    "RecordingAgentInvoker",
    "WorkflowStore",
    "ExecutionStore",
    "InMemoryWorkflowStore",
    "InMemoryExecutionStore",
    # Errors
    "DefinitionInvalidError",
    "CycleDetectedError",
    "UnknownDependencyError",
    "WorkflowNotFoundError",
    "WorkflowNotExecutableError",
    "UnknownStepTypeError",
    "StepExecutionFailedError",
    "StepTimeoutError",
    "WorkflowTimeoutError",
    "ExecutionCancelledError",
    "ExpressionError",
    "InvalidTransitionError",
]
