"""
Runtime configuration for todoplan.

Reads the Todoist MCP endpoint, model choices and HTTP settings from the
environment. Provides a unified configuration that flows through the CLI,
the web server and the pipeline.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import urlparse

from todoplan.errors import ConfigurationError


DEFAULT_INTENT_MODEL = "qwen3:8b"
DEFAULT_PLAN_MODEL = "qwen3:4b"

_TRUTHY = ("1", "true", "yes", "on")


@dataclass
class RuntimeConfig:
    """
    Runtime configuration for one process.

    Attributes:
        todoist_mcp_url: Streamable-HTTP endpoint of the Todoist MCP server
        todoist_token: Bearer token sent to that server
        intent_model: Model used for intent classification
        plan_model: Model used for plan generation
        llm_base_url: OpenAI-compatible API base URL (Ollama when unset)
        llm_api_key: API key for the OpenAI-compatible API
        frontend_origins: Origins allowed to call `/plan` (empty allows any)
        debug_events: Emit `debug.*` events on the stream
        verbose: Debug logging
    """

    todoist_mcp_url: str | None = None
    todoist_token: str | None = None

    # LLM settings
    intent_model: str = DEFAULT_INTENT_MODEL
    plan_model: str = DEFAULT_PLAN_MODEL
    llm_base_url: str | None = None
    llm_api_key: str | None = None

    # HTTP
    frontend_origins: tuple[str, ...] = field(default_factory=tuple)

    # Debug
    debug_events: bool = True
    verbose: bool = False

    def require_todoist(self) -> tuple[str, str]:
        """Return (url, token) or raise ConfigurationError."""
        if not self.todoist_mcp_url:
            raise ConfigurationError("TODOIST_MCP_URL is not configured")
        if not self.todoist_token:
            raise ConfigurationError("TODOIST_TOKEN is required to contact the MCP server")
        parsed = urlparse(self.todoist_mcp_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError("TODOIST_MCP_URL must be a valid URL")
        return self.todoist_mcp_url, self.todoist_token


def _flag(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUTHY


def get_runtime_config(
    environ: Mapping[str, str] | None = None,
    *,
    verbose: bool | None = None,
) -> RuntimeConfig:
    """
    Create a runtime configuration from environment variables.

    Args:
        environ: Mapping to read from (default: os.environ)
        verbose: Override TODOPLAN_VERBOSE

    Returns:
        Configured RuntimeConfig instance
    """
    env = os.environ if environ is None else environ
    origins = tuple(
        item.strip() for item in env.get("FRONTEND_ORIGIN", "").split(",") if item.strip()
    )
    config = RuntimeConfig(
        todoist_mcp_url=env.get("TODOIST_MCP_URL") or None,
        todoist_token=env.get("TODOIST_TOKEN") or None,
        llm_base_url=env.get("TODOPLAN_LLM_BASE_URL") or None,
        llm_api_key=env.get("TODOPLAN_LLM_API_KEY") or None,
        frontend_origins=origins,
        debug_events=_flag(env.get("TODOPLAN_DEBUG_EVENTS"), True),
        verbose=_flag(env.get("TODOPLAN_VERBOSE"), False),
    )

    if env.get("TODOPLAN_INTENT_MODEL"):
        config.intent_model = env["TODOPLAN_INTENT_MODEL"]
    if env.get("TODOPLAN_PLAN_MODEL"):
        config.plan_model = env["TODOPLAN_PLAN_MODEL"]
    if verbose is not None:
        config.verbose = verbose

    return config


# Global config instance (can be set by CLI/web server)
_global_config: RuntimeConfig | None = None


def set_global_config(config: RuntimeConfig) -> None:
    """Set the global runtime configuration."""
    global _global_config
    _global_config = config


def get_global_config() -> RuntimeConfig:
    """Get the global runtime configuration, reading the environment if needed."""
    global _global_config
    if _global_config is None:
        _global_config = get_runtime_config()
    return _global_config
