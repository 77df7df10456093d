"""Advisory per-session mutual exclusion for chat turns."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class SessionLockRegistry:
    """Per-session ``asyncio.Lock`` objects, created on demand and dropped when idle."""

    def __init__(self) -> None:
        self.locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def get_lock(self, session_id: str) -> asyncio.Lock:
        lock = self.locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self.locks[session_id] = lock
        return lock

    def is_busy(self, session_id: str) -> bool:
        return self._holders.get(session_id, 0) > 0

    async def run_exclusive(self, session_id: str, work: Callable[[], Awaitable[T]]) -> T:
        """Run *work* while holding the session's lock; waiters queue in arrival order."""
        lock = self.get_lock(session_id)
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                return await work()
        finally:
            remaining = self._holders[session_id] - 1
            if remaining:
                self._holders[session_id] = remaining
            else:
                # nobody holds or waits on this lock any more
                del self._holders[session_id]
                self.locks.pop(session_id, None)
