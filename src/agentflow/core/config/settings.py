"""
Centralized settings for agentflow.

Manifesto:
    One validated, cached settings object replaces the scattered constants
    for timeouts, retry backoff and logging that would otherwise be read
    from the environment in several places. ``OrchestratorSettings`` is
    the single place those values are resolved.

All fields can be set via ``AGENTFLOW_*`` environment variables (e.g.
``AGENTFLOW_DEFAULT_RETRY_COUNT=2``) or a ``.env`` file in the working
directory.

Tags:
    agentflow, configuration, settings, pydantic, caching, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_LOG_FORMATS = {"json", "console", "auto"}


class OrchestratorSettings(BaseSettings):
    """agentflow engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="auto", description="json, console or auto (json when not a tty)")

    # ── Step defaults ────────────────────────────────────────────
    default_step_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Per-attempt timeout for steps and workflows that declare none",
    )
    default_retry_count: int = Field(default=0, ge=0)

    # ── Retry backoff ────────────────────────────────────────────
    retry_base_delay_seconds: float = Field(default=1.0, ge=0)
    retry_max_delay_seconds: float = Field(default=30.0, ge=0)
    retry_jitter: bool = Field(default=True)

    # ── Cancellation ─────────────────────────────────────────────
    cancel_grace_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long a cancelled driver waits for in-flight steps to unwind",
    )

    # ── Catalog ──────────────────────────────────────────────────
    auto_activate: bool = Field(default=False, description="Create workflows ACTIVE instead of DRAFT")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def _normalize_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in _LOG_FORMATS:
            raise ValueError(f"log_format must be one of {sorted(_LOG_FORMATS)}")
        return fmt

    @model_validator(mode="after")
    def _validate_backoff(self) -> OrchestratorSettings:
        if self.retry_max_delay_seconds < self.retry_base_delay_seconds:
            raise ValueError("retry_max_delay_seconds must be >= retry_base_delay_seconds")
        return self

    @property
    def json_logs(self) -> bool | None:
        """Value for ``configure_logging(json_format=...)``; None means auto-detect."""
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


# ── Settings factory with caching ────────────────────────────────────────

_settings_cache: dict[str, OrchestratorSettings] = {}


def get_settings(
    *,
    env_file: Path | str | None = None,
    _force_reload: bool = False,
) -> OrchestratorSettings:
    """Load, validate, and cache an :class:`OrchestratorSettings` instance.

    Parameters
    ----------
    env_file:
        Explicit ``.env`` file to read instead of ``./.env``.
    _force_reload:
        Bypass cache and reload from the environment.
    """
    cache_key = str(env_file or "")

    if not _force_reload and cache_key in _settings_cache:
        return _settings_cache[cache_key]

    if env_file is not None:
        settings = OrchestratorSettings(_env_file=env_file)  # type: ignore[call-arg]
    else:
        settings = OrchestratorSettings()

    _settings_cache[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()
