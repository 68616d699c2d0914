from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

import pytest

from news_agent.config import SchedulerSettings
from news_agent.services.scheduler import SchedulerRunner
from news_agent.services.tasks import TaskOutcome


@dataclass
class _TasksSpy:
    outcomes: list[TaskOutcome] = field(default_factory=list)
    send_calls: int = 0

    async def send(self, *, manual: bool = False) -> TaskOutcome:
        self.send_calls += 1
        if self.outcomes:
            return self.outcomes.pop(0)
        return TaskOutcome(name="send", ok=True)

    async def crawl(self, *, manual: bool = False) -> TaskOutcome:
        return TaskOutcome(name="crawl", ok=True)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _runner(tasks: _TasksSpy, clock: _Clock, hours: list[int] | None = None) -> SchedulerRunner:
    settings = SchedulerSettings(timezone="Asia/Tokyo", delivery_hours=hours or [7])
    return SchedulerRunner(tasks=tasks, settings=settings, clock=clock)  # type: ignore[arg-type]


def test_delivery_slot_uses_local_hour() -> None:
    runner = _runner(_TasksSpy(), _Clock(datetime.now(timezone.utc)))

    assert runner.delivery_slot(datetime(2026, 1, 9, 22, 30, tzinfo=timezone.utc)) == (
        datetime(2026, 1, 10).date(),
        7,
    )
    assert runner.delivery_slot(datetime(2026, 1, 9, 23, 0, tzinfo=timezone.utc)) is None


@pytest.mark.asyncio
async def test_deliver_if_due_sends_once_per_slot() -> None:
    tasks = _TasksSpy()
    clock = _Clock(datetime(2026, 1, 9, 22, 1, tzinfo=timezone.utc))
    runner = _runner(tasks, clock)

    assert await runner.deliver_if_due() is True
    clock.now = datetime(2026, 1, 9, 22, 50, tzinfo=timezone.utc)
    assert await runner.deliver_if_due() is False
    clock.now = datetime(2026, 1, 10, 22, 5, tzinfo=timezone.utc)
    assert await runner.deliver_if_due() is True

    assert tasks.send_calls == 2


@pytest.mark.asyncio
async def test_deliver_if_due_outside_delivery_hours_does_nothing() -> None:
    tasks = _TasksSpy()
    runner = _runner(tasks, _Clock(datetime(2026, 1, 9, 3, 0, tzinfo=timezone.utc)))

    assert await runner.deliver_if_due() is False
    assert tasks.send_calls == 0


@pytest.mark.asyncio
async def test_skipped_delivery_is_not_retried_in_same_slot() -> None:
    tasks = _TasksSpy(outcomes=[TaskOutcome(name="send", ok=False, skipped=True)])
    clock = _Clock(datetime(2026, 1, 9, 22, 1, tzinfo=timezone.utc))
    runner = _runner(tasks, clock)

    assert await runner.deliver_if_due() is False
    clock.now = datetime(2026, 1, 9, 22, 2, tzinfo=timezone.utc)
    assert await runner.deliver_if_due() is False

    assert tasks.send_calls == 1


@pytest.mark.asyncio
async def test_multiple_delivery_hours_each_get_a_slot() -> None:
    tasks = _TasksSpy()
    clock = _Clock(datetime(2026, 1, 9, 22, 0, tzinfo=timezone.utc))
    runner = _runner(tasks, clock, hours=[7, 18])

    await runner.deliver_if_due()
    clock.now = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)
    await runner.deliver_if_due()

    assert tasks.send_calls == 2
