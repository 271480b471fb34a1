"""
Configuration management for taskswarm.

All defaults live here. Components receive a `SwarmSettings` instance (or the
specific values they need) at construction time instead of reading the
environment on their own.
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


DEFAULT_TIMEOUT_MS = 600_000

BACKEND_PRIORITY = ("openai", "anthropic", "ollama", "cli")


class SwarmSettings(BaseSettings):
    """Runtime settings with environment variable support (prefix `TASKSWARM_`)."""

    # Planning
    selector_mode: str = Field(default="heuristic", description="heuristic | rule_based | delegated")
    decomposer_mode: str = Field(default="heuristic", description="heuristic | rule_based | delegated")
    min_agents: int = Field(default=2, ge=1)
    max_agents: int = Field(default=5, ge=1)
    use_router: bool = Field(default=False, description="Narrow the catalog with router candidates")

    # Execution
    runtime: str = Field(default="stub", description="stub | remote")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    remote_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_REMOTE_URL", "CODEX_URL", "remote_url")
    )
    remote_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_REMOTE_KEY", "CODEX_KEY", "remote_key")
    )
    strict_tools: bool = Field(default=False)
    retries: int = Field(default=1, ge=0, description="Phase driver retries per failed task")

    # Generative backends, resolved in BACKEND_PRIORITY order
    openai_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_OPENAI_API_KEY", "OPENAI_API_KEY", "openai_api_key")
    )
    openai_api_base: Optional[str] = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")
    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("TASKSWARM_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY", "anthropic_api_key"),
    )
    anthropic_api_base: Optional[str] = Field(default=None)
    anthropic_model: str = Field(default="claude-3-5-sonnet-20240620")
    ollama_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_OLLAMA_URL", "OLLAMA_URL", "ollama_url")
    )
    tiny_model_id: str = Field(default="phi3:3.8b")
    run_cmd: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_RUN_CMD", "RUN_CMD", "run_cmd")
    )
    planner_temperature: float = Field(default=0.2)
    planner_max_tokens: int = Field(default=512)
    llm_timeout: int = Field(default=60, description="Seconds per generation request")
    llm_max_attempts: int = Field(default=2, ge=1)
    llm_retry_on_errors: list[str] = Field(
        default_factory=lambda: ["RateLimitError", "ServiceUnavailableError", "APIConnectionError"]
    )

    # Memory
    memory_backend: str = Field(default="file", description="file | redis")
    redis_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("TASKSWARM_REDIS_URL", "MEM_REDIS_URL", "redis_url")
    )
    redis_prefix: str = Field(default="mem")
    redis_max_window: int = Field(default=200, gt=0)
    redis_ttl: str = Field(default="7d")

    # Storage locations and retention
    memory_dir: str = Field(default="data/memory")
    log_dir: str = Field(default="data/logs")
    runs_dir: str = Field(default=".runs")
    runs_max_per_alias: int = Field(default=10, ge=0)
    logs_max_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    agents_dir: Optional[str] = Field(default=None)
    triggers_path: Optional[str] = Field(default=None)

    # Diagnostics
    verbose: bool = Field(default=False)
    debug_mode: bool = Field(default=False)

    model_config = {
        "env_file": ".env",
        "env_prefix": "TASKSWARM_",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @classmethod
    def load_from_file(cls, config_path: Path, **overrides: Any) -> "SwarmSettings":
        """Load settings from a YAML file; missing file yields defaults."""
        if not config_path.exists():
            return cls(**overrides)

        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

        if not isinstance(config_data, dict):
            raise ValueError(f"Config file must contain a mapping: {config_path}")

        return cls(**{**config_data, **overrides})

    @property
    def events_path(self) -> Path:
        return Path(self.log_dir) / "events.jsonl"

    def delegated_backend(self) -> Optional[str]:
        """Return the first configured generative backend, or None."""
        available = {
            "openai": bool(self.openai_api_key),
            "anthropic": bool(self.anthropic_api_key),
            "ollama": bool(self.ollama_url),
            "cli": bool(self.run_cmd),
        }
        for name in BACKEND_PRIORITY:
            if available[name]:
                return name
        return None

    def resolve_agents_dir(self) -> Path:
        """Locate the agent registry directory.

        Order: explicit setting, `~/.codex/agents`, then `./codex/agents`.
        """
        if self.agents_dir and Path(self.agents_dir).exists():
            return Path(self.agents_dir).resolve()
        home_dir = Path.home() / ".codex" / "agents"
        if home_dir.exists():
            return home_dir
        return Path("codex", "agents").resolve()
