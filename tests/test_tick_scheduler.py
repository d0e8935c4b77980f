from __future__ import annotations

import asyncio
import time

import pytest

from latency_probe.scheduler.tick_scheduler import TickScheduler


class _FakeClock:
    """Monotonic clock whose sleeps wake up late by a scripted amount."""

    def __init__(self, start: float = 100.0, late_by: float = 0.0, stalls: list[float] | None = None) -> None:
        self.now = start
        self.late_by = late_by
        self.stalls = list(stalls or [])
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        extra = self.stalls.pop(0) if self.stalls else 0.0
        self.now += delay + self.late_by + extra
        await asyncio.sleep(0)


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.mark.parametrize("interval", [0, -1, -0.25, float("nan"), float("inf")])
def test_non_positive_interval_is_rejected(interval: float) -> None:
    with pytest.raises(ValueError):
        TickScheduler(interval)


def test_from_millis() -> None:
    assert TickScheduler.from_millis(250).interval == pytest.approx(0.25)


@pytest.mark.asyncio
async def test_deadlines_advance_additively_despite_late_wakeups() -> None:
    clock = _FakeClock(late_by=0.03)
    scheduler = TickScheduler(1.0, clock=clock, sleep=clock.sleep)

    await scheduler.run(lambda: None, max_ticks=5)

    # Each late wake-up is absorbed by the next sleep instead of accumulating.
    assert clock.sleeps[0] == pytest.approx(1.0)
    assert clock.sleeps[1:] == pytest.approx([0.97, 0.97, 0.97])


@pytest.mark.asyncio
async def test_overrun_does_not_skip_or_coalesce_ticks() -> None:
    calls = 0

    def job() -> None:
        nonlocal calls
        calls += 1

    clock = _FakeClock(start=0.0, stalls=[2.5])
    scheduler = TickScheduler(1.0, clock=clock, sleep=clock.sleep)

    await scheduler.run(job, max_ticks=6)
    await _drain()

    # Woke at 3.5 instead of 1.0: ticks due at 2.0 and 3.0 fire back to back, then cadence resumes.
    assert clock.sleeps == pytest.approx([1.0, 0.0, 0.0, 0.5, 1.0])
    assert scheduler.ticks_fired == 6
    assert calls == 6


@pytest.mark.asyncio
async def test_ticks_stay_on_schedule_when_jobs_overrun() -> None:
    interval = 0.1
    starts: list[float] = []
    running = 0
    peak = 0

    async def slow_job() -> None:
        nonlocal running, peak
        starts.append(time.monotonic())
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(interval * 3)
        running -= 1

    scheduler = TickScheduler(interval)
    await scheduler.run(slow_job, max_ticks=5)
    await asyncio.sleep(interval * 4)

    assert len(starts) == 5
    for i, ts in enumerate(starts):
        assert ts - starts[0] == pytest.approx(i * interval, abs=0.06)
    # Jobs longer than the interval overlap rather than delaying the next tick.
    assert peak > 1
    assert scheduler.in_flight == 0


@pytest.mark.asyncio
async def test_failing_job_does_not_stop_the_scheduler() -> None:
    calls = 0

    def boom() -> None:
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    scheduler = TickScheduler(0.01)
    await scheduler.run(boom, max_ticks=3)
    await asyncio.sleep(0.05)

    assert calls == 3
