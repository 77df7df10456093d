"""LLM provider abstraction module."""

from memochat.providers.base import LLMProvider, LLMResponse
from memochat.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "LiteLLMProvider"]
