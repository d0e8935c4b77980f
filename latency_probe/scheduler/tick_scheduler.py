"""Fixed-cadence, drift-free tick driver."""

from __future__ import annotations

import asyncio
import inspect
import math
import time
from typing import Any, Awaitable, Callable

import structlog


logger = structlog.get_logger(__name__)

TickJob = Callable[[], Any]


class TickScheduler:
    """
    Fires a job every ``interval`` seconds measured from a monotonic baseline.

    The next deadline is advanced additively (``next += interval``), never recomputed
    as ``now + interval``, so a slow wake-up or a slow job does not shift later ticks.
    Each job runs as its own task and is never awaited by the loop: overrunning jobs
    simply overlap. Late ticks are neither skipped nor coalesced.
    """

    def __init__(
        self,
        interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not math.isfinite(interval) or interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval!r}")
        self.interval = float(interval)
        self._clock = clock
        self._sleep = sleep
        self._jobs: set[asyncio.Task] = set()
        self.ticks_fired = 0

    @classmethod
    def from_millis(cls, interval_ms: int, **kwargs: Any) -> "TickScheduler":
        return cls(interval_ms / 1000.0, **kwargs)

    @property
    def in_flight(self) -> int:
        return len(self._jobs)

    async def run(self, job: TickJob, *, max_ticks: int | None = None) -> None:
        """
        Run forever (or until ``max_ticks`` jobs have been launched).

        ``job`` may be a plain callable or a coroutine function.
        """
        logger.info("Tick scheduler started", interval_seconds=self.interval)
        next_tick = self._clock()
        while True:
            next_tick += self.interval
            self._launch(job)
            if max_ticks is not None and self.ticks_fired >= max_ticks:
                return
            await self._sleep(max(0.0, next_tick - self._clock()))

    def _launch(self, job: TickJob) -> None:
        self.ticks_fired += 1
        task = asyncio.create_task(self._invoke(job, self.ticks_fired), name=f"tick-{self.ticks_fired}")
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _invoke(self, job: TickJob, tick: int) -> None:
        try:
            result = job()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Tick job failed", tick=tick)
