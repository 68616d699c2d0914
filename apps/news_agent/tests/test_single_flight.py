from __future__ import annotations

import asyncio

import pytest

from news_agent.errors import LockContention
from news_agent.services.single_flight import SingleFlightGuard


@pytest.mark.asyncio
async def test_second_holder_times_out_with_lock_contention() -> None:
    guard = SingleFlightGuard(timeout_seconds=0.05)
    entered = asyncio.Event()
    release = asyncio.Event()

    async def _first() -> None:
        async with guard.hold("crawl"):
            entered.set()
            await release.wait()

    first = asyncio.create_task(_first())
    await entered.wait()

    with pytest.raises(LockContention) as exc_info:
        async with guard.hold("send"):
            pass

    assert exc_info.value.task_name == "send"
    assert guard.holder == "crawl"
    release.set()
    await first
    assert guard.locked() is False
    assert guard.holder is None


@pytest.mark.asyncio
async def test_guard_is_released_when_block_raises() -> None:
    guard = SingleFlightGuard(timeout_seconds=0.05)

    with pytest.raises(RuntimeError):
        async with guard.hold("crawl"):
            raise RuntimeError("boom")

    async with guard.hold("send"):
        assert guard.holder == "send"


@pytest.mark.asyncio
async def test_waiter_acquires_when_holder_finishes_within_timeout() -> None:
    guard = SingleFlightGuard(timeout_seconds=1.0)
    order: list[str] = []

    async def _run(name: str, delay: float) -> None:
        async with guard.hold(name):
            order.append(name)
            await asyncio.sleep(delay)

    await asyncio.gather(_run("crawl", 0.01), _run("send", 0))

    assert order == ["crawl", "send"]
