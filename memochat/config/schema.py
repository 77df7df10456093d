"""Configuration schema using Pydantic settings."""

from __future__ import annotations

import os
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_REF_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def _resolve_env(value: str) -> str:
    """Resolve a ``${VAR}`` reference against the environment.

    Plain values pass through unchanged; an unset variable resolves to "".
    """
    m = _ENV_REF_RE.match(value.strip()) if value else None
    if not m:
        return value
    return os.environ.get(m.group(1), "")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ResilienceConfig(_Frozen):
    """Timeout and retry policy for the upstream generation call."""

    timeout: int = 120
    max_retries: int = 3


class ProviderConfig(_Frozen):
    api_key: str = ""
    api_base: str | None = "https://openrouter.ai/api/v1"
    extra_headers: dict[str, str] = Field(default_factory=dict)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)

    @field_validator("api_key", mode="before")
    @classmethod
    def _resolve_api_key(cls, value: object) -> object:
        return _resolve_env(value) if isinstance(value, str) else value


class WindowConfig(_Frozen):
    """How much transcript goes into each prompt."""

    recent_messages: int = 8
    summary_messages: int = 24
    summary_min_messages: int = 40


class MemoryConfig(_Frozen):
    max_lines: int = 2000


class StreamConfig(_Frozen):
    marker: str = "<<<MEMORY_JSON>>>"
    html_throttle_ms: int = 140
    heartbeat_interval_s: float = 15.0

    @field_validator("marker")
    @classmethod
    def _marker_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("stream.marker must not be empty")
        return value


class Config(BaseSettings):
    """Root configuration, read from ``MEMOCHAT_*`` env vars and ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="MEMOCHAT_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    model: str = "z-ai/glm-4.7"
    temperature: float = 0.2
    max_tokens: int = 900
    data_dir: str = "~/.memochat/data"
    window: WindowConfig = Field(default_factory=WindowConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    serialize_sessions: bool = True
    log_level: str = "INFO"

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()
