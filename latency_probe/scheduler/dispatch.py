"""Per-tick fan-out of one isolated probe task per configured target."""

from __future__ import annotations

import asyncio
from typing import Mapping, Protocol, Sequence

import structlog

from latency_probe.errors import ProbeError
from latency_probe.metrics import MetricsSink
from latency_probe.models import ProbeKind, ProbeOutcome, Target
from latency_probe.prober import DRIVERS, ProbeDriver


logger = structlog.get_logger(__name__)


class TargetSnapshotSource(Protocol):
    def current_targets(self) -> Sequence[Target]: ...


class TimeoutSource(Protocol):
    def current_default_timeout(self) -> float: ...


class DispatchEngine:
    """
    Launches one independent probe task per target on every tick.

    The engine never joins its probe tasks: ``dispatch`` returns as soon as the
    tasks are created. Each task reads the timeout fresh, runs the driver for its
    target's kind and reports exactly one observation to the sink. Nothing a
    probe raises leaves its own task.
    """

    def __init__(
        self,
        targets: TargetSnapshotSource,
        timeouts: TimeoutSource,
        sink: MetricsSink,
        *,
        drivers: Mapping[ProbeKind, ProbeDriver] | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        if max_in_flight is not None and max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {max_in_flight}")
        self._targets = targets
        self._timeouts = timeouts
        self._sink = sink
        self._drivers = dict(DRIVERS if drivers is None else drivers)
        self._max_in_flight = max_in_flight
        self._probes: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._probes)

    def dispatch(self) -> list[asyncio.Task]:
        """Snapshot the targets and launch their probes. Must be called from a running loop."""
        snapshot = tuple(self._targets.current_targets())
        launched: list[asyncio.Task] = []
        skipped = 0

        for target in snapshot:
            if self._max_in_flight is not None and len(self._probes) >= self._max_in_flight:
                skipped += 1
                continue
            task = asyncio.create_task(self.probe_target(target), name=f"probe:{target.name}")
            self._probes.add(task)
            task.add_done_callback(self._probes.discard)
            launched.append(task)

        if skipped:
            logger.warning(
                "In-flight probe limit reached; probes skipped this tick",
                skipped=skipped,
                max_in_flight=self._max_in_flight,
            )
        logger.debug("Tick dispatched", targets=len(snapshot), launched=len(launched))
        return launched

    async def run_tick(self) -> None:
        """Tick job for the scheduler."""
        self.dispatch()

    async def probe_target(self, target: Target) -> ProbeOutcome:
        kind = target.probe_kind
        label = kind.label
        log = logger.bind(target=target.name, probe_type=label, host=target.host)

        try:
            timeout = self._timeouts.current_default_timeout()
            driver = self._drivers[kind]
            host, port = target.endpoint()
            elapsed = await driver(host, port, timeout)
        except ProbeError as exc:
            log.warning("Probe failed", reason=exc.reason, error=str(exc))
            self._sink.record_failure(target.name, label)
            return ProbeOutcome(target_name=target.name, probe_type=label, error=exc)
        except Exception as exc:
            log.exception("Probe crashed", error=f"{type(exc).__name__}: {exc}")
            self._sink.record_failure(target.name, label)
            return ProbeOutcome(target_name=target.name, probe_type=label, error=exc)

        latency_ms = float(elapsed) * 1000.0
        log.info("Probe succeeded", latency_ms=round(latency_ms, 3))
        self._sink.record_latency(target.name, label, latency_ms)
        return ProbeOutcome(target_name=target.name, probe_type=label, latency_ms=latency_ms)
