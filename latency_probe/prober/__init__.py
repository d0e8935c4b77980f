"""Protocol drivers. Each performs exactly one attempt and returns elapsed seconds or raises a ProbeError."""

from __future__ import annotations

from typing import Awaitable, Callable

from latency_probe.models import ProbeKind
from latency_probe.prober.echo import probe_echo
from latency_probe.prober.http import probe_http
from latency_probe.prober.icmp import probe_icmp
from latency_probe.prober.tcp_connect import probe_tcp

ProbeDriver = Callable[[str, int | None, float | None], Awaitable[float]]

DRIVERS: dict[ProbeKind, ProbeDriver] = {
    ProbeKind.ICMP: probe_icmp,
    ProbeKind.TCP_CONNECT: probe_tcp,
    ProbeKind.HTTP: probe_http,
    ProbeKind.ECHO: probe_echo,
}

__all__ = ["DRIVERS", "ProbeDriver", "probe_echo", "probe_http", "probe_icmp", "probe_tcp"]
