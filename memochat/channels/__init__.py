"""Client transports for streamed turn events."""

from memochat.channels.base import ClientTransport, QueueTransport
from memochat.channels.sse import SSE_HEADERS, SseTransport, encode_sse

__all__ = ["ClientTransport", "QueueTransport", "SSE_HEADERS", "SseTransport", "encode_sse"]
