"""Agent invocation collaborator: the boundary behind ``agent-command`` steps.

Manifesto:
    The engine never talks to agents directly. An ``agent-command`` step
    resolves its command template and hands it to an ``AgentInvoker``;
    whatever sits behind that (an HTTP client, a plugin host, a command
    parser) is swappable without touching the orchestrator.

ARCHITECTURE
────────────
::

    AgentInvoker (Protocol)
      └── await .invoke_agent(agent_name, command, context) → Any

    EchoAgentInvoker      default, returns the command it was given
    RecordingAgentInvoker wraps another invoker and records every call

Example::

    class HttpAgentInvoker:
        async def invoke_agent(self, agent_name, command, context):
            async with session.post(f"/agents/{agent_name}", json={"command": command}) as r:
                return await r.json()

Tags:
    agentflow, orchestration, agents, protocol, collaborator

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from agentflow.core.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class AgentInvoker(Protocol):
    """Protocol for agent backends.

    Implementations must be safe to call concurrently: steps in the same
    wave invoke agents in parallel.
    """

    async def invoke_agent(self, agent_name: str, command: str, context: Mapping[str, Any]) -> Any:
        """Run ``command`` on ``agent_name`` and return its result.

        Raising :class:`~agentflow.core.errors.TransientError` (or any plain
        exception) lets the step's retry budget apply; raising an
        ``AgentflowError`` with ``retryable=False`` fails the step at once.
        """
        ...


class EchoAgentInvoker:
    """Default invoker: acknowledges the command without side effects."""

    async def invoke_agent(self, agent_name: str, command: str, context: Mapping[str, Any]) -> Any:
        logger.debug("agent.echo", agent=agent_name, command=command)
        return f"Executed '{command}' on {agent_name}"


@dataclass
class AgentCall:
    """One recorded invocation."""

    agent_name: str
    command: str
    context_keys: list[str]


@dataclass
class RecordingAgentInvoker:
    """Delegates to ``inner`` and keeps a log of every call (for tests and dry runs)."""

    inner: AgentInvoker = field(default_factory=EchoAgentInvoker)
    calls: list[AgentCall] = field(default_factory=list)

    async def invoke_agent(self, agent_name: str, command: str, context: Mapping[str, Any]) -> Any:
        self.calls.append(AgentCall(agent_name, command, sorted(context.keys())))
        return await self.inner.invoke_agent(agent_name, command, context)


__all__ = [
    "AgentInvoker",
    "EchoAgentInvoker",
    "AgentCall",
    "RecordingAgentInvoker",
]
