from __future__ import annotations

import asyncio
import itertools
import os
import time

from icmplib import (
    AsyncSocket,
    ICMPError,
    ICMPLibError,
    ICMPRequest,
    ICMPv4Socket,
    ICMPv6Socket,
    TimeoutExceeded,
    is_ipv6_address,
)

from latency_probe.errors import NetworkError, ProbeTimeout
from latency_probe.util import resolve_host

DEFAULT_TIMEOUT_SECONDS = 2.0

# Kernel datagram ICMP sockets need no CAP_NET_RAW (net.ipv4.ping_group_range permitting).
PRIVILEGED = os.getenv("ICMP_PRIVILEGED", "false").strip().lower() in ("1", "true", "yes")

_sequence = itertools.count(1)


def _process_tag() -> int:
    return os.getpid() & 0xFFFF


async def probe_icmp(host: str, port: int | None = None, timeout: float | None = None) -> float:
    """Send one echo request tagged with the process id and time the matching reply."""
    deadline = DEFAULT_TIMEOUT_SECONDS if timeout is None else float(timeout)
    started = time.monotonic()
    address = await resolve_host(host, deadline)
    remaining = max(0.001, deadline - (time.monotonic() - started))

    tag = _process_tag()
    request = ICMPRequest(
        destination=address,
        id=tag,
        sequence=next(_sequence) & 0xFFFF,
        payload=tag.to_bytes(2, "big"),
    )
    socket_cls = ICMPv6Socket if is_ipv6_address(address) else ICMPv4Socket

    try:
        with AsyncSocket(socket_cls(privileged=PRIVILEGED)) as sock:
            sent_at = time.perf_counter()
            sock.send(request)
            reply = await sock.receive(request, remaining)
            elapsed = time.perf_counter() - sent_at
            reply.raise_for_status()
    except TimeoutExceeded as exc:
        raise ProbeTimeout(f"no echo reply from {address} within {deadline:.3f}s") from exc
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"no echo reply from {address} within {deadline:.3f}s") from exc
    except ICMPError as exc:
        raise NetworkError(f"icmp error reply from {address}: {exc}") from exc
    except (ICMPLibError, OSError) as exc:
        raise NetworkError(f"icmp socket error for {address}: {type(exc).__name__}: {exc}") from exc
    return elapsed
