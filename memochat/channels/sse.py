"""Server-Sent Events wire encoding for turn events."""

from __future__ import annotations

import json
from typing import Awaitable, Callable, TypeAlias

from memochat.agent.events import EVENT_DONE, EVENT_HEARTBEAT, StreamEvent
from memochat.channels.base import ClientTransport
from memochat.logging import get_logger

logger = get_logger(__name__)

ByteWriter: TypeAlias = Callable[[bytes], Awaitable[None]]

SSE_HEADERS = {
    "Content-Type": "text/event-stream; charset=utf-8",
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Some browsers/proxies buffer until a few KB arrive; pad the first write.
SSE_PREAMBLE = ": stream-open\n:" + " " * 2048 + "\n\n"


def encode_sse(event: StreamEvent) -> str:
    """Encode one event as an SSE frame.

    Heartbeats become comment lines, ``done`` becomes ``data: [DONE]`` and
    every other event is a JSON object keyed by its payload field.
    """
    kind = event["type"]
    if kind == EVENT_HEARTBEAT:
        return f": keep-alive {event['timestamp_ms']}\n\n"
    if kind == EVENT_DONE:
        return "data: [DONE]\n\n"
    payload = {k: v for k, v in event.items() if k != "type"}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class SseTransport(ClientTransport):
    """Write SSE frames through an async byte writer (e.g. an ASGI ``send`` wrapper)."""

    name = "sse"

    def __init__(self, write: ByteWriter) -> None:
        self._write = write
        self._connected = True
        self._opened = False

    async def _raw(self, text: str) -> None:
        try:
            await self._write(text.encode("utf-8"))
        except (ConnectionError, OSError) as e:
            self._connected = False
            logger.info("sse_client_gone", error=str(e))
            raise ConnectionError("client disconnected") from e

    async def open(self) -> None:
        """Send the padding preamble once, before any event."""
        if not self._opened:
            self._opened = True
            await self._raw(SSE_PREAMBLE)

    async def send(self, event: StreamEvent) -> None:
        if not self._connected:
            raise ConnectionError("client disconnected")
        await self.open()
        await self._raw(encode_sse(event))

    @property
    def is_connected(self) -> bool:
        return self._connected
