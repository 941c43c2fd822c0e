"""Centralized configuration for agentflow.

Quick start::

    from agentflow.core.config import get_settings

    settings = get_settings()
    print(settings.default_retry_count)   # 0

Guardrails:
    ❌ Reading ``os.environ`` ad-hoc in engine modules
    ✅ ``get_settings().cancel_grace_seconds`` from the cached singleton
    ❌ Hard-coding retry delays in executors
    ✅ Passing ``OrchestratorSettings`` to the orchestrator constructor

Tags:
    agentflow, configuration, settings, pydantic, env-files
"""

from .settings import OrchestratorSettings, clear_settings_cache, get_settings

__all__ = [
    "OrchestratorSettings",
    "get_settings",
    "clear_settings_cache",
]
