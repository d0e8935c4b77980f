from __future__ import annotations

import asyncio
from urllib.parse import urlsplit, urlunsplit

from icmplib import ICMPLibError, async_resolve, is_ipv4_address, is_ipv6_address

from latency_probe.errors import ProbeTimeout, ResolutionError


def _as_port(value: str) -> int | None:
    if not value.isdigit():
        return None
    port = int(value)
    if 0 < port <= 65535:
        return port
    return None


def parse_host_port(value: str, default_port: int) -> tuple[str, int]:
    """
    Split ``host:port``. Falls back to ``default_port`` when no valid port suffix exists.

    ``[::1]:80`` is unwrapped; a bare IPv6 literal such as ``::1`` is returned unchanged.
    """
    s = (value or "").strip()
    if s.startswith("["):
        end = s.find("]")
        if end != -1:
            host = s[1:end]
            rest = s[end + 1 :]
            if rest.startswith(":"):
                port = _as_port(rest[1:])
                if port is not None:
                    return host, port
            return host, default_port

    if s.count(":") != 1:
        return s, default_port

    host, _, tail = s.rpartition(":")
    port = _as_port(tail)
    if port is None or not host:
        return s, default_port
    return host, port


def http_url(host: str, port: int) -> str:
    raw = (host or "").strip()
    if "://" not in raw:
        if is_ipv6_address(raw):
            raw = f"[{raw}]"
        return f"http://{raw}:{port}"

    parts = urlsplit(raw)
    if parts.port is not None:
        return raw
    return urlunsplit((parts.scheme, f"{parts.netloc}:{port}", parts.path, parts.query, ""))


def is_ip_address(host: str) -> bool:
    return is_ipv4_address(host) or is_ipv6_address(host)


async def resolve_host(host: str, timeout: float) -> str:
    """Return ``host`` if it is an IP literal, else the first address of one DNS lookup."""
    if is_ip_address(host):
        return host

    try:
        addresses = await asyncio.wait_for(async_resolve(host), timeout=max(0.001, float(timeout)))
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"name lookup for {host} timed out after {timeout:.3f}s") from exc
    except (ICMPLibError, OSError) as exc:
        raise ResolutionError(f"could not resolve hostname: {host}: {exc}") from exc

    if not addresses:
        raise ResolutionError(f"could not resolve hostname: {host}")
    return str(addresses[0])
