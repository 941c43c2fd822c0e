"""
agentflow - asyncio workflow orchestration for agent commands.

- agentflow.core: errors, structured logging, settings
- agentflow.orchestration: definitions, scheduler, executors, orchestrator
- agentflow.cli: ``agentflow`` command line
"""

__version__ = "0.1.0"
