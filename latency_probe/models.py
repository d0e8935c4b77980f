from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from latency_probe.util import parse_host_port


class ProbeKind(str, Enum):
    """Probe protocol. The value doubles as the ``probe_type`` metric label and must stay stable."""

    ICMP = "icmp"
    TCP_CONNECT = "tcp_connect"
    HTTP = "http"
    ECHO = "echo"

    @property
    def label(self) -> str:
        return self.value


DEFAULT_PORTS: dict[ProbeKind, int] = {
    ProbeKind.TCP_CONNECT: 80,
    ProbeKind.HTTP: 80,
    ProbeKind.ECHO: 9000,
}

# Older config files spell the TCP kind without the underscore.
_KIND_ALIASES = {
    "tcpconnect": ProbeKind.TCP_CONNECT.value,
    "tcp-connect": ProbeKind.TCP_CONNECT.value,
    "tcp": ProbeKind.TCP_CONNECT.value,
    "udp": ProbeKind.ECHO.value,
    "ping": ProbeKind.ICMP.value,
}


class Target(BaseModel):
    """One configured endpoint. Immutable once parsed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., min_length=1, description="Unique name, used as the metric label")
    probe_kind: ProbeKind = Field(..., alias="kind")
    host: str = Field(..., min_length=1)
    port: int | None = Field(default=None, ge=1, le=65535)

    @field_validator("probe_kind", mode="before")
    @classmethod
    def _normalize_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            s = value.strip().lower()
            return _KIND_ALIASES.get(s, s)
        return value

    @field_validator("name", "host")
    @classmethod
    def _strip(cls, value: str) -> str:
        s = value.strip()
        if not s:
            raise ValueError("must not be blank")
        return s

    def endpoint(self, default_port: int | None = None) -> tuple[str, int | None]:
        """Explicit `port` wins, then a port embedded in `host`, then the kind default."""
        if default_port is None:
            default_port = DEFAULT_PORTS.get(self.probe_kind)
        host, embedded = parse_host_port(self.host, 0)
        port = self.port or embedded or default_port
        return host, port


@dataclass(frozen=True)
class ProbeOutcome:
    target_name: str
    probe_type: str
    latency_ms: float | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.latency_ms is not None

    @property
    def reason(self) -> str | None:
        if self.error is None:
            return None
        return getattr(self.error, "reason", type(self.error).__name__)
