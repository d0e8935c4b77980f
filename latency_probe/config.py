"""Configuration loading and the hot-reloadable target/timeout source."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, field_validator

from latency_probe.models import Target


logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_PATH = "targets.json"
DEFAULT_POLL_INTERVAL_SECONDS = 30.0

LOG_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_log_level(value: str) -> int:
    key = str(value or "").strip().lower()
    if key not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {value}. Valid levels are: trace, debug, info, warn, error"
        )
    return LOG_LEVELS[key]


class ProbeConfig(BaseModel):
    """Agent configuration. Treated as an immutable value: reloads replace it wholesale."""

    probe_interval_ms: int = Field(..., gt=0, description="Tick interval in milliseconds")
    default_timeout_ms: int = Field(..., gt=0, description="Per-probe deadline in milliseconds")
    targets: list[Target] = Field(default_factory=list, description="Targets probed on every tick")
    log_level: str = Field(default="info", description="trace|debug|info|warn|error")
    enable_latency_history: bool = Field(default=False, description="Also export a latency histogram")
    max_in_flight_probes: int | None = Field(default=None, ge=1, description="Cap on concurrently running probes")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        parse_log_level(value)
        return value.strip().lower()

    @field_validator("targets")
    @classmethod
    def _unique_names(cls, value: list[Target]) -> list[Target]:
        seen: set[str] = set()
        for target in value:
            if target.name in seen:
                raise ValueError(f"Duplicate target name: {target.name}")
            seen.add(target.name)
        return value

    @property
    def logging_level(self) -> int:
        return parse_log_level(self.log_level)

    @property
    def default_timeout_seconds(self) -> float:
        return self.default_timeout_ms / 1000.0


def resolve_config_path(path: str | os.PathLike[str] | None = None) -> Path:
    if path is None:
        path = os.getenv("TARGET_CONFIG", DEFAULT_CONFIG_PATH)
    return Path(path)


def poll_interval_from_env(default: float = DEFAULT_POLL_INTERVAL_SECONDS) -> float:
    raw = os.getenv("CONFIG_POLL_INTERVAL_SECONDS")
    if raw is None:
        return float(default)
    try:
        value = float(str(raw).strip())
    except ValueError:
        return float(default)
    return value if value > 0 else float(default)


def load_config(path: str | os.PathLike[str]) -> ProbeConfig:
    """Load a YAML or JSON config file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data: Any = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Config must be a mapping")
    return ProbeConfig.model_validate(data)


class FileConfigSource:
    """
    Serves the current target snapshot and default timeout from a config file.

    ``current_targets`` and ``current_default_timeout`` never block on I/O: the
    config is re-read by ``poll_forever`` in a worker thread and swapped in under
    a lock. A failed re-read keeps the last-known-good config.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        initial: ProbeConfig,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError(f"poll_interval_seconds must be positive, got {poll_interval_seconds}")
        self.path = Path(path)
        self.poll_interval_seconds = float(poll_interval_seconds)
        self._lock = threading.Lock()
        self._config = initial

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> "FileConfigSource":
        return cls(path, load_config(path), poll_interval_seconds=poll_interval_seconds)

    @property
    def config(self) -> ProbeConfig:
        with self._lock:
            return self._config

    def current_targets(self) -> tuple[Target, ...]:
        return tuple(self.config.targets)

    def current_default_timeout(self) -> float:
        return self.config.default_timeout_seconds

    def reload(self) -> bool:
        """Re-read the file. Returns True when the effective config changed. Errors propagate."""
        new_config = load_config(self.path)
        with self._lock:
            old_config = self._config
            if new_config == old_config:
                return False
            self._config = new_config

        if new_config.probe_interval_ms != old_config.probe_interval_ms:
            logger.warning(
                "probe_interval_ms changed; restart required for the new tick interval",
                old_interval_ms=old_config.probe_interval_ms,
                new_interval_ms=new_config.probe_interval_ms,
            )
        logger.info(
            "Local config file updated",
            path=str(self.path),
            targets=len(new_config.targets),
            default_timeout_ms=new_config.default_timeout_ms,
        )
        return True

    async def poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                await asyncio.to_thread(self.reload)
            except (OSError, ValueError, yaml.YAMLError) as exc:
                logger.error(
                    "Error reading config file; keeping last-known-good config",
                    path=str(self.path),
                    error=f"{type(exc).__name__}: {exc}",
                )
