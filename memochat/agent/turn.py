"""Chat turn runner: prompt, generate, split the stream, apply memory edits, persist."""

from __future__ import annotations

import asyncio
import contextlib
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Sequence, TypeVar

import structlog

from memochat.agent.context import ContextBuilder
from memochat.agent.events import (
    StreamEvent,
    delta_event,
    done_event,
    error_event,
    heartbeat_event,
    html_event,
    model_event,
)
from memochat.agent.session_locks import SessionLockRegistry
from memochat.agent.window import partition_window
from memochat.channels.base import ClientTransport
from memochat.config.schema import StreamConfig, WindowConfig
from memochat.logging import get_logger
from memochat.memory.store import MemoryStore
from memochat.providers.base import LLMProvider, LLMResponse
from memochat.render import render_markdown_safe
from memochat.session.manager import ImageRef, Message, SessionStore
from memochat.stream.metadata import extract_reply_and_metadata
from memochat.stream.splitter import MarkerStreamSplitter

if TYPE_CHECKING:
    from memochat.config.schema import Config

logger = get_logger(__name__)

T = TypeVar("T")

EMPTY_REPLY = "(empty response)"


class TurnState(str, Enum):
    AWAITING_GENERATION = "awaiting_generation"
    SPLITTING_STREAM = "splitting_stream"
    FINALIZING = "finalizing"
    APPLYING_EDITS = "applying_edits"
    DONE = "done"
    FAILED = "failed"


class UpstreamError(RuntimeError):
    """The generation service failed; only the user's message was persisted."""


@dataclass
class TurnResult:
    model: str
    reply: str = ""
    html: str | None = None
    memory_applied: dict[str, int] | None = None
    memory_actions: dict[str, Any] | None = None
    summary_updated: bool = False
    meta_parse_error: str | None = None
    state: TurnState = TurnState.AWAITING_GENERATION
    error: str | None = None
    client_disconnected: bool = False


@dataclass
class _PreparedTurn:
    messages: list[dict[str, Any]]
    memory_lines: list[str]


class _TurnEmitter:
    """Best-effort event sink for one turn; stops writing once the client is gone."""

    def __init__(
        self,
        transport: ClientTransport,
        *,
        renderer: Callable[[str], str],
        html_interval_s: float,
        clock: Callable[[], float],
    ) -> None:
        self.transport = transport
        self.renderer = renderer
        self.html_interval_s = html_interval_s
        self.clock = clock
        self.disconnected = False
        self._last_html_at: float | None = None

    async def send(self, event: StreamEvent) -> None:
        if self.disconnected:
            return
        if not self.transport.is_connected:
            self._mark_disconnected("not_connected")
            return
        try:
            await self.transport.send(event)
        except ConnectionError as e:
            self._mark_disconnected(str(e))

    def _mark_disconnected(self, reason: str) -> None:
        self.disconnected = True
        logger.info("client_disconnected", reason=reason)

    async def html(self, visible_text: str, *, force: bool = False) -> None:
        now = self.clock()
        if not force and self._last_html_at is not None and (now - self._last_html_at) < self.html_interval_s:
            return
        self._last_html_at = now
        await self.send(html_event(self.renderer(visible_text)))


class ChatTurnRunner:
    """
    Run one chat request end-to-end, streamed or as a single block.

    Per turn: append the user message, build the prompt from transcript,
    summary and memory, call the generator, forward the visible part of
    the reply, then apply any trailing instructions (memory edits, summary
    overwrite) and append the assistant reply. Malformed instructions never
    fail a turn; an upstream failure does, after the user message is saved.
    """

    def __init__(
        self,
        *,
        provider: LLMProvider,
        sessions: SessionStore,
        memory: MemoryStore,
        model: str | None = None,
        temperature: float = 0.2,
        max_tokens: int = 900,
        window: WindowConfig | None = None,
        stream: StreamConfig | None = None,
        context_builder: ContextBuilder | None = None,
        locks: SessionLockRegistry | None = None,
        renderer: Callable[[str], str] = render_markdown_safe,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.sessions = sessions
        self.memory = memory
        self.model = model or provider.get_default_model()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.window = window or WindowConfig()
        self.stream_config = stream or StreamConfig()
        self.context = context_builder or ContextBuilder(marker=self.stream_config.marker)
        self.locks = locks
        self.renderer = renderer
        self.clock = clock

    @classmethod
    def from_config(cls, config: "Config", provider: LLMProvider | None = None) -> "ChatTurnRunner":
        """Wire stores and the LiteLLM provider from a settings object."""
        if provider is None:
            from memochat.providers.litellm_provider import LiteLLMProvider

            provider = LiteLLMProvider(
                api_key=config.provider.api_key or None,
                api_base=config.provider.api_base,
                default_model=config.model,
                extra_headers=dict(config.provider.extra_headers),
                resilience_config=config.provider.resilience,
            )
        data_dir = config.data_path
        return cls(
            provider=provider,
            sessions=SessionStore(data_dir),
            memory=MemoryStore(data_dir, max_lines=config.memory.max_lines),
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            window=config.window,
            stream=config.stream,
            locks=SessionLockRegistry() if config.serialize_sessions else None,
        )

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _exclusive(self, session_id: str, work: Callable[[], Awaitable[T]]) -> T:
        if self.locks is None:
            return await work()
        return await self.locks.run_exclusive(session_id, work)

    def _prepare(self, session_id: str, text: str, images: Sequence[ImageRef]) -> _PreparedTurn:
        self.sessions.append_message(session_id, Message(role="user", content=text, images=tuple(images)))

        history = self.sessions.read_messages(session_id)
        summary = self.sessions.read_summary(session_id)
        memory_lines = self.memory.read_lines()

        window = partition_window(history, self.window.recent_messages, self.window.summary_messages)
        summary_window = window.summary_window if len(history) >= self.window.summary_min_messages else []

        messages = self.context.build_messages(
            system_prompt=self.context.build_system_prompt(memory_lines),
            session_summary=summary,
            recent=window.recent,
            summary_window=summary_window,
        )
        logger.debug(
            "turn_prompt_built",
            history_count=len(history),
            recent_count=len(window.recent),
            summary_window_count=len(summary_window),
            memory_line_count=len(memory_lines),
        )
        return _PreparedTurn(messages=messages, memory_lines=memory_lines)

    def _finish(self, session_id: str, full_text: str, prepared: _PreparedTurn, result: TurnResult) -> None:
        """Apply trailing instructions and append the assistant reply."""
        extracted = extract_reply_and_metadata(full_text, self.stream_config.marker)
        result.reply = extracted.reply or EMPTY_REPLY
        result.meta_parse_error = extracted.error

        result.state = TurnState.APPLYING_EDITS
        meta = extracted.meta
        if meta is not None:
            memory_actions = meta.get("memory")
            if isinstance(memory_actions, dict):
                # lineStart refers to the numbering the generator was shown.
                patched = self.memory.apply(memory_actions, base_lines=prepared.memory_lines)
                result.memory_actions = memory_actions
                result.memory_applied = patched.applied

            summary = meta.get("summary")
            if isinstance(summary, dict) and summary.get("update") is True and isinstance(summary.get("text"), str):
                self.sessions.write_summary(session_id, summary["text"])
                result.summary_updated = True

        self.sessions.append_message(session_id, Message(role="assistant", content=result.reply))
        result.state = TurnState.DONE
        logger.info(
            "turn_completed",
            reply_chars=len(result.reply),
            memory_applied=result.memory_applied,
            summary_updated=result.summary_updated,
            meta_parse_error=result.meta_parse_error,
        )

    @staticmethod
    def _validate(text: str, images: Sequence[ImageRef]) -> str | None:
        if not (text or "").strip() and not images:
            return "message or images are required"
        return None

    # ------------------------------------------------------------------
    # Single-block mode
    # ------------------------------------------------------------------

    async def run(self, session_id: str, text: str, images: Sequence[ImageRef] = ()) -> TurnResult:
        """
        Run one turn and return the complete result.

        Raises:
            ValueError: Empty message with no images.
            UpstreamError: The generation call failed.
        """
        problem = self._validate(text, images)
        if problem:
            raise ValueError(problem)
        with structlog.contextvars.bound_contextvars(session_id=session_id, request_id=uuid.uuid4().hex[:12]):
            return await self._exclusive(session_id, lambda: self._run_locked(session_id, text, images))

    async def _run_locked(self, session_id: str, text: str, images: Sequence[ImageRef]) -> TurnResult:
        prepared = self._prepare(session_id, text, images)
        result = TurnResult(model=self.model)

        response = await self.provider.chat(
            messages=prepared.messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        if response.is_error:
            result.state = TurnState.FAILED
            result.error = response.content or "generation failed"
            logger.error("turn_failed", error=result.error)
            raise UpstreamError(result.error)

        result.state = TurnState.FINALIZING
        self._finish(session_id, response.content or "", prepared, result)
        result.html = self.renderer(result.reply)
        return result

    # ------------------------------------------------------------------
    # Streaming mode
    # ------------------------------------------------------------------

    async def run_stream(
        self,
        session_id: str,
        text: str,
        transport: ClientTransport,
        images: Sequence[ImageRef] = (),
    ) -> TurnResult:
        """
        Run one turn, pushing events to *transport* as the reply streams in.

        Always ends with a ``done`` event (if the client is still there).
        Failures are reported as an ``error`` event and recorded on the
        returned result rather than raised.
        """
        emitter = _TurnEmitter(
            transport,
            renderer=self.renderer,
            html_interval_s=self.stream_config.html_throttle_ms / 1000,
            clock=self.clock,
        )
        problem = self._validate(text, images)
        if problem:
            await emitter.send(error_event(problem))
            await emitter.send(done_event())
            return TurnResult(model=self.model, state=TurnState.FAILED, error=problem)

        heartbeat = asyncio.create_task(self._heartbeat(emitter))
        try:
            with structlog.contextvars.bound_contextvars(session_id=session_id, request_id=uuid.uuid4().hex[:12]):
                return await self._exclusive(
                    session_id,
                    lambda: self._run_stream_locked(session_id, text, images, emitter),
                )
        finally:
            heartbeat.cancel()
            try:
                await heartbeat
            except asyncio.CancelledError:
                pass

    async def _heartbeat(self, emitter: _TurnEmitter) -> None:
        interval = self.stream_config.heartbeat_interval_s
        if interval <= 0:
            return
        while not emitter.disconnected:
            await asyncio.sleep(interval)
            await emitter.send(heartbeat_event(int(time.time() * 1000)))

    async def _run_stream_locked(
        self,
        session_id: str,
        text: str,
        images: Sequence[ImageRef],
        emitter: _TurnEmitter,
    ) -> TurnResult:
        result = TurnResult(model=self.model)
        try:
            prepared = self._prepare(session_id, text, images)
            await emitter.send(model_event(self.model))

            full_text, response = await self._consume_stream(prepared, emitter, result)
            if response is not None and response.is_error:
                raise UpstreamError(response.content or "generation failed")

            self._finish(session_id, full_text, prepared, result)
        except Exception as e:
            result.state = TurnState.FAILED
            result.error = str(e)
            if isinstance(e, UpstreamError):
                logger.error("turn_failed", error=result.error)
            else:
                logger.exception("turn_crashed")
            await emitter.send(error_event(result.error))

        result.client_disconnected = emitter.disconnected
        await emitter.send(done_event())
        return result

    async def _consume_stream(
        self,
        prepared: _PreparedTurn,
        emitter: _TurnEmitter,
        result: TurnResult,
    ) -> tuple[str, LLMResponse | None]:
        """Feed every fragment through the splitter; return the raw text and final response."""
        marker = self.stream_config.marker
        splitter = MarkerStreamSplitter(marker)
        raw = ""
        response: LLMResponse | None = None
        result.state = TurnState.SPLITTING_STREAM

        events = self.provider.stream_chat(
            messages=prepared.messages,
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        async with contextlib.aclosing(events):
            async for event in events:
                kind = event.get("type")
                if kind == "done":
                    response = event.get("response")
                    break

                if kind == "text_delta":
                    fragment = event.get("delta") or ""
                    raw += fragment
                elif kind == "text_replace":
                    replacement = event.get("text") or ""
                    if replacement.startswith(raw):
                        fragment = replacement[len(raw):]
                        raw = replacement
                    else:
                        # Diverging echo: restart splitting and resync the client via HTML.
                        raw = replacement
                        splitter = MarkerStreamSplitter(marker)
                        splitter.push(replacement)
                        await emitter.html(splitter.visible_text, force=True)
                        continue
                else:
                    continue

                released = splitter.push(fragment)
                if released:
                    await emitter.send(delta_event(released))
                    await emitter.html(splitter.visible_text)

        if response is not None and response.is_error:
            return raw, response

        result.state = TurnState.FINALIZING
        released = splitter.flush()
        if released:
            await emitter.send(delta_event(released))
        await emitter.html(splitter.visible_text, force=True)
        result.html = self.renderer(splitter.visible_text)
        return raw, response
