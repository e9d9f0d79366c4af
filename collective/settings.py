"""
Configuration for the orchestrator and its collaborators.

Values can be given directly or read from the environment (``.env`` files are
loaded by the entry points through python-dotenv):

  - COLLECTIVE_ADAPTER            openai | anthropic | stub
  - COLLECTIVE_ROLE_STRATEGY      model | static
  - COLLECTIVE_CONTEXT            free-text framing for role design
  - COLLECTIVE_MODEL              model identifier for the adapter
  - COLLECTIVE_TEMPERATURE
  - COLLECTIVE_MAX_TOKENS
  - COLLECTIVE_MAX_CONTEXT_CHARS  bound on transcript size embedded in prompts
  - COLLECTIVE_LOG_DIR            directory for per-run JSON logs
"""

from __future__ import annotations

import os
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Adapter = Literal["openai", "anthropic", "stub"]
RoleStrategy = Literal["model", "static"]

DEFAULT_MODELS: Dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "stub": "stub",
}

_ENV_FIELDS: Dict[str, str] = {
    "adapter": "COLLECTIVE_ADAPTER",
    "role_selection_strategy": "COLLECTIVE_ROLE_STRATEGY",
    "context": "COLLECTIVE_CONTEXT",
    "model": "COLLECTIVE_MODEL",
    "temperature": "COLLECTIVE_TEMPERATURE",
    "max_tokens": "COLLECTIVE_MAX_TOKENS",
    "max_context_chars": "COLLECTIVE_MAX_CONTEXT_CHARS",
    "log_dir": "COLLECTIVE_LOG_DIR",
}


class OrchestratorSettings(BaseModel):
    """Validated options for building an orchestrator."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    adapter: Adapter = "stub"
    role_selection_strategy: RoleStrategy = "model"
    context: str = ""
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int = Field(default=4000, ge=1)
    max_context_chars: Optional[int] = Field(default=None, gt=0)
    stub_response_delay: float = Field(default=0.0, ge=0.0)
    log_dir: Optional[str] = None

    @field_validator("adapter", "role_selection_strategy", mode="before")
    @classmethod
    def _lowercase(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @property
    def model_name(self) -> str:
        return self.model or DEFAULT_MODELS[self.adapter]

    @classmethod
    def from_env(cls, **overrides: Any) -> "OrchestratorSettings":
        """Build settings from ``COLLECTIVE_*`` variables; non-None overrides win."""

        values: Dict[str, Any] = {}
        for field_name, env_name in _ENV_FIELDS.items():
            raw = os.getenv(env_name)
            if raw not in (None, ""):
                values[field_name] = raw
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
