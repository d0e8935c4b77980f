from __future__ import annotations

import asyncio
import socket
import time

from latency_probe.errors import NetworkError, ProbeTimeout, ResolutionError

DEFAULT_TIMEOUT_SECONDS = 1.0
ECHO_PAYLOAD = b"ping"


class _EchoReplyProtocol(asyncio.DatagramProtocol):
    """Resolves ``reply`` with the receive time of the first datagram, whatever it contains."""

    def __init__(self) -> None:
        self.reply: asyncio.Future[float] = asyncio.get_running_loop().create_future()

    def datagram_received(self, data: bytes, addr) -> None:
        if not self.reply.done():
            self.reply.set_result(time.perf_counter())

    def error_received(self, exc: Exception) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.reply.done():
            self.reply.set_exception(exc or ConnectionError("echo socket closed"))


async def probe_echo(host: str, port: int | None, timeout: float | None = None) -> float:
    """Send one small UDP datagram and time the first reply."""
    if port is None:
        raise NetworkError("echo probe requires a port")
    deadline = DEFAULT_TIMEOUT_SECONDS if timeout is None else float(timeout)
    loop = asyncio.get_running_loop()
    started = time.perf_counter()

    try:
        transport, protocol = await asyncio.wait_for(
            loop.create_datagram_endpoint(_EchoReplyProtocol, remote_addr=(host, int(port))),
            timeout=deadline,
        )
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"echo setup for {host}:{port} timed out after {deadline:.3f}s") from exc
    except socket.gaierror as exc:
        raise ResolutionError(f"could not resolve hostname: {host}: {exc}") from exc
    except OSError as exc:
        raise NetworkError(f"echo socket for {host}:{port} failed: {type(exc).__name__}: {exc}") from exc

    try:
        remaining = max(0.0, deadline - (time.perf_counter() - started))
        sent_at = time.perf_counter()
        transport.sendto(ECHO_PAYLOAD)
        received_at = await asyncio.wait_for(protocol.reply, timeout=remaining)
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"no echo reply from {host}:{port} within {deadline:.3f}s") from exc
    except OSError as exc:
        raise NetworkError(f"echo to {host}:{port} failed: {type(exc).__name__}: {exc}") from exc
    finally:
        transport.close()
    return received_at - sent_at
