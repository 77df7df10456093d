"""Base transport interface for pushing turn events to a client."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from memochat.agent.events import StreamEvent
from memochat.logging import get_logger

logger = get_logger(__name__)


class ClientTransport(ABC):
    """
    Abstract push channel to one connected client.

    Implementations never apply backpressure: ``send`` is attempted eagerly
    for every event. A transport that detects the client has gone away
    reports ``is_connected == False`` and may raise ``ConnectionError``
    from ``send``; the turn runner stops writing but keeps processing.
    """

    name: str = "base"

    @abstractmethod
    async def send(self, event: StreamEvent) -> None:
        """
        Deliver one event to the client.

        Args:
            event: The event payload.
        """
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the client is still listening."""
        pass


class QueueTransport(ClientTransport):
    """Deliver events to an ``asyncio.Queue`` (web handlers, CLI, tests)."""

    name = "queue"

    def __init__(self, queue: asyncio.Queue[StreamEvent] | None = None) -> None:
        self.queue: asyncio.Queue[StreamEvent] = queue or asyncio.Queue()
        self._connected = True

    async def send(self, event: StreamEvent) -> None:
        if not self._connected:
            raise ConnectionError("client disconnected")
        await self.queue.put(event)

    def disconnect(self) -> None:
        """Simulate/mark the client going away."""
        if self._connected:
            logger.debug("transport_disconnected", transport=self.name)
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    def drain(self) -> list[StreamEvent]:
        """Return every queued event without waiting."""
        events: list[StreamEvent] = []
        while not self.queue.empty():
            events.append(self.queue.get_nowait())
        return events
