from __future__ import annotations

import asyncio
import socket
import time

from latency_probe.errors import ConnectionRefused, NetworkError, ProbeTimeout, ResolutionError

DEFAULT_TIMEOUT_SECONDS = 3.0


async def probe_tcp(host: str, port: int | None, timeout: float | None = None) -> float:
    """Time a TCP handshake to ``host:port``. The connection is closed without sending data."""
    if port is None:
        raise NetworkError("tcp_connect probe requires a port")
    deadline = DEFAULT_TIMEOUT_SECONDS if timeout is None else float(timeout)

    started = time.perf_counter()
    try:
        _reader, writer = await asyncio.wait_for(
            asyncio.open_connection(host=host, port=int(port)),
            timeout=deadline,
        )
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"tcp connect to {host}:{port} timed out after {deadline:.3f}s") from exc
    except ConnectionRefusedError as exc:
        raise ConnectionRefused(f"tcp connect to {host}:{port} refused") from exc
    except socket.gaierror as exc:
        raise ResolutionError(f"could not resolve hostname: {host}: {exc}") from exc
    except OSError as exc:
        raise NetworkError(f"tcp connect to {host}:{port} failed: {type(exc).__name__}: {exc}") from exc
    elapsed = time.perf_counter() - started

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        # Peer reset during close; the handshake already succeeded.
        pass
    return elapsed
