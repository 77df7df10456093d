"""LiteLLM provider implementation (OpenRouter and other OpenAI-compatible gateways)."""

import asyncio
import logging
from typing import Any, AsyncGenerator

import litellm
from litellm import acompletion

from memochat.logging import get_logger, mask_secret
from memochat.providers.base import LLMProvider, LLMResponse

logger = get_logger("memochat.providers.litellm")


# Standard OpenAI chat-completion message keys; transcript extras (ts, images) are stripped.
_ALLOWED_MSG_KEYS = frozenset({"role", "content", "name"})


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM.

    Model ids are passed through ``openrouter/`` when the configured base
    points at OpenRouter, so ``z-ai/glm-4.7`` style ids work unchanged.
    Failures are never raised to the caller: they come back as an
    ``LLMResponse`` with ``finish_reason="error"``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "z-ai/glm-4.7",
        extra_headers: dict[str, str] | None = None,
        resilience_config: Any | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}
        self._resilience = resilience_config  # ResilienceConfig or None

        if api_key:
            logger.info("provider_initialized", model=default_model, api_key=mask_secret(api_key))

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        litellm.drop_params = True

    def _resolve_model(self, model: str) -> str:
        """Apply the gateway prefix LiteLLM needs to route the request."""
        if self.api_base and "openrouter" in self.api_base and not model.startswith("openrouter/"):
            return f"openrouter/{model}"
        return model

    @staticmethod
    def _sanitize_messages(messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Strip non-standard keys from outgoing messages."""
        return [{k: v for k, v in msg.items() if k in _ALLOWED_MSG_KEYS} for msg in messages]

    def _build_kwargs(
        self,
        messages: list[dict[str, Any]],
        model: str | None,
        max_tokens: int,
        temperature: float,
        *,
        stream: bool,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._resolve_model(model or self.default_model),
            "messages": self._sanitize_messages(messages),
            # LiteLLM rejects max_tokens < 1
            "max_tokens": max(1, max_tokens),
            "temperature": temperature,
        }
        if stream:
            kwargs["stream"] = True
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        rc = self._resilience
        if rc:
            kwargs["request_timeout"] = rc.timeout
            kwargs["num_retries"] = rc.max_retries

        if logging.getLogger("memochat").isEnabledFor(logging.DEBUG):
            logger.debug(
                "litellm_request",
                model=kwargs["model"],
                message_count=len(kwargs["messages"]),
                stream=stream,
            )
        return kwargs

    async def _call(self, kwargs: dict[str, Any]) -> Any:
        """Run acompletion with an ``asyncio.wait_for`` safety net over LiteLLM's own timeout."""
        rc = self._resilience
        safety_timeout = (rc.timeout + 30) if rc else None
        coro = acompletion(**kwargs)
        if safety_timeout:
            return await asyncio.wait_for(coro, timeout=safety_timeout)
        return await coro

    def _error_message(self, e: Exception) -> str:
        error_msg = str(e)
        # Mask any API keys that may appear in exception messages
        if self.api_key and self.api_key in error_msg:
            error_msg = error_msg.replace(self.api_key, mask_secret(self.api_key))
        return error_msg

    @staticmethod
    def _value(obj: Any, key: str, default: Any = None) -> Any:
        if isinstance(obj, dict):
            return obj.get(key, default)
        return getattr(obj, key, default)

    @classmethod
    def _extract_text(cls, part: Any) -> str:
        content = cls._value(part, "content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            texts: list[str] = []
            for item in content:
                text = cls._value(item, "text")
                if isinstance(text, str) and text:
                    texts.append(text)
            return "".join(texts)
        text = cls._value(part, "text")
        if isinstance(text, str):
            return text
        return ""

    @classmethod
    def _usage(cls, usage: Any) -> dict[str, int]:
        return {
            "prompt_tokens": int(cls._value(usage, "prompt_tokens", 0) or 0),
            "completion_tokens": int(cls._value(usage, "completion_tokens", 0) or 0),
            "total_tokens": int(cls._value(usage, "total_tokens", 0) or 0),
        }

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 900,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            model: Model identifier (e.g., 'z-ai/glm-4.7').
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.

        Returns:
            LLMResponse with the completion text.
        """
        kwargs = self._build_kwargs(messages, model, max_tokens, temperature, stream=False)
        try:
            response = await self._call(kwargs)
        except asyncio.TimeoutError:
            logger.error("llm_call_timeout", model=kwargs["model"])
            return LLMResponse(content="Error calling LLM: request timed out", finish_reason="error")
        except Exception as e:
            error_msg = self._error_message(e)
            logger.error("llm_call_failed", model=kwargs["model"], error=error_msg)
            return LLMResponse(content=f"Error calling LLM: {error_msg}", finish_reason="error")
        return self._parse_response(response)

    async def stream_chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 900,
        temperature: float = 0.2,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Stream chat completion as provider-agnostic events."""
        kwargs = self._build_kwargs(messages, model, max_tokens, temperature, stream=True)
        content = ""
        final_finish_reason = "stop"
        final_usage: dict[str, int] = {}

        try:
            stream = await self._call(kwargs)
            async for chunk in stream:
                choices = self._value(chunk, "choices") or []
                usage = self._value(chunk, "usage")
                if usage is not None:
                    final_usage = self._usage(usage)
                if not choices:
                    continue
                choice = choices[0]
                finish_reason = self._value(choice, "finish_reason")
                if isinstance(finish_reason, str) and finish_reason:
                    final_finish_reason = finish_reason

                delta = self._value(choice, "delta")
                text = self._extract_text(delta) if delta is not None else ""
                if text:
                    content += text
                    yield {"type": "text_delta", "delta": text}
                    continue

                message = self._value(choice, "message")
                echoed = self._extract_text(message) if message is not None else ""
                if echoed:
                    content = echoed
                    yield {"type": "text_replace", "text": echoed}
        except asyncio.TimeoutError:
            logger.error("llm_stream_timeout", model=kwargs["model"])
            yield {
                "type": "done",
                "response": LLMResponse(content="Error calling LLM: request timed out", finish_reason="error"),
            }
            return
        except Exception as e:
            error_msg = self._error_message(e)
            logger.error("llm_stream_failed", model=kwargs["model"], error=error_msg)
            yield {
                "type": "done",
                "response": LLMResponse(content=f"Error calling LLM: {error_msg}", finish_reason="error"),
            }
            return

        yield {
            "type": "done",
            "response": LLMResponse(
                content=content or None,
                finish_reason=final_finish_reason or "stop",
                usage=final_usage,
            ),
        }

    def _parse_response(self, response: Any) -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choices = self._value(response, "choices") or []
        if not choices:
            return LLMResponse(content=None)
        choice = choices[0]
        message = self._value(choice, "message")
        usage = self._value(response, "usage")
        return LLMResponse(
            content=self._extract_text(message) if message is not None else None,
            finish_reason=self._value(choice, "finish_reason") or "stop",
            usage=self._usage(usage) if usage else {},
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
