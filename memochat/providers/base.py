"""Base LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str | None
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def is_error(self) -> bool:
        return self.finish_reason == "error"


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    ``stream_chat`` yields provider-agnostic event dicts:

    - ``{"type": "text_delta", "delta": str}``: append to the reply
    - ``{"type": "text_replace", "text": str}``: the provider echoed the whole
      message so far; it replaces, not extends, the accumulated text
    - ``{"type": "done", "response": LLMResponse}``: always last
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 900,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Return one completion for *messages*."""

    @abstractmethod
    def stream_chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 900,
        temperature: float = 0.2,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Stream a completion as events (see class docstring)."""

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
