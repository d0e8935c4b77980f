"""Tick scheduling and per-tick probe dispatch."""

from .dispatch import DispatchEngine, TargetSnapshotSource, TimeoutSource
from .tick_scheduler import TickScheduler

__all__ = ["DispatchEngine", "TargetSnapshotSource", "TickScheduler", "TimeoutSource"]
