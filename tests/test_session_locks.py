import asyncio

import pytest

from memochat.agent.session_locks import SessionLockRegistry


@pytest.mark.asyncio
async def test_same_session_work_runs_in_arrival_order() -> None:
    registry = SessionLockRegistry()
    order: list[str] = []

    async def work(name: str) -> str:
        order.append(f"start {name}")
        await asyncio.sleep(0.01)
        order.append(f"end {name}")
        return name

    results = await asyncio.gather(
        registry.run_exclusive("s1", lambda: work("a")),
        registry.run_exclusive("s1", lambda: work("b")),
    )

    assert results == ["a", "b"]
    assert order == ["start a", "end a", "start b", "end b"]


@pytest.mark.asyncio
async def test_lock_is_dropped_when_idle() -> None:
    registry = SessionLockRegistry()
    seen_busy: list[bool] = []

    async def work() -> None:
        seen_busy.append(registry.is_busy("s1"))

    await registry.run_exclusive("s1", work)

    assert seen_busy == [True]
    assert registry.is_busy("s1") is False
    assert "s1" not in registry.locks


@pytest.mark.asyncio
async def test_lock_released_when_work_fails() -> None:
    registry = SessionLockRegistry()

    async def boom() -> None:
        raise RuntimeError("fail")

    with pytest.raises(RuntimeError):
        await registry.run_exclusive("s1", boom)

    assert registry.is_busy("s1") is False
    assert await registry.run_exclusive("s1", lambda: asyncio.sleep(0, result="ok")) == "ok"
