"""Tests for resilience: ResilienceConfig defaults, timeout/retry kwargs."""

import asyncio
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from memochat.config.schema import ProviderConfig, ResilienceConfig
from memochat.providers.litellm_provider import LiteLLMProvider


def _completion(text: str = "ok") -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text), finish_reason="stop")],
        usage=None,
    )


class TestResilienceConfigDefaults:
    def test_defaults(self):
        rc = ResilienceConfig()
        assert rc.timeout == 120
        assert rc.max_retries == 3

    def test_provider_config_has_resilience(self):
        pc = ProviderConfig(api_key="test-key")
        assert isinstance(pc.resilience, ResilienceConfig)
        assert pc.resilience.max_retries == 3


class TestTimeoutRetryKwargs:
    @pytest.mark.asyncio
    async def test_acompletion_receives_timeout_and_retries(self):
        p = LiteLLMProvider(api_key="fake", resilience_config=ResilienceConfig(timeout=60, max_retries=2))
        captured_kwargs = {}

        async def fake_acompletion(**kwargs):
            captured_kwargs.update(kwargs)
            return _completion()

        with patch("memochat.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
            resp = await p.chat(messages=[{"role": "user", "content": "hi"}])

        assert resp.content == "ok"
        assert captured_kwargs["request_timeout"] == 60
        assert captured_kwargs["num_retries"] == 2

    @pytest.mark.asyncio
    async def test_timeout_returns_error_response(self):
        p = LiteLLMProvider(api_key="fake", resilience_config=ResilienceConfig(timeout=1))

        async def slow_acompletion(**kwargs):
            await asyncio.sleep(999)

        with patch("memochat.providers.litellm_provider.acompletion", side_effect=slow_acompletion):
            with patch("memochat.providers.litellm_provider.asyncio.wait_for", side_effect=asyncio.TimeoutError):
                resp = await p.chat(messages=[{"role": "user", "content": "hi"}])

        assert resp.finish_reason == "error"
        assert "timed out" in resp.content

    @pytest.mark.asyncio
    async def test_stream_timeout_ends_with_error_done(self):
        p = LiteLLMProvider(api_key="fake", resilience_config=ResilienceConfig(timeout=1))

        async def slow_acompletion(**kwargs):
            await asyncio.sleep(999)

        with patch("memochat.providers.litellm_provider.acompletion", side_effect=slow_acompletion):
            with patch("memochat.providers.litellm_provider.asyncio.wait_for", side_effect=asyncio.TimeoutError):
                events = [e async for e in p.stream_chat(messages=[{"role": "user", "content": "hi"}])]

        assert [e["type"] for e in events] == ["done"]
        assert events[0]["response"].is_error

    @pytest.mark.asyncio
    async def test_no_resilience_config_skips_injection(self):
        p = LiteLLMProvider(api_key="fake", resilience_config=None)
        captured_kwargs = {}

        async def fake_acompletion(**kwargs):
            captured_kwargs.update(kwargs)
            return _completion()

        with patch("memochat.providers.litellm_provider.acompletion", side_effect=fake_acompletion):
            await p.chat(messages=[{"role": "user", "content": "hi"}])

        assert "request_timeout" not in captured_kwargs
        assert "num_retries" not in captured_kwargs
