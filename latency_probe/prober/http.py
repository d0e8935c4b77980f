from __future__ import annotations

import asyncio
import ssl
import time

import certifi
import httpx

from latency_probe.errors import ProbeTimeout, RequestError
from latency_probe.util import http_url

DEFAULT_TIMEOUT_SECONDS = 30.0
MAX_TIMEOUT_SECONDS = 30.0
CONNECT_TIMEOUT_SECONDS = 5.0

# Loading the CA bundle is slow and synchronous; do it once, not on the event loop per probe.
SSL_CONTEXT = ssl.create_default_context(cafile=certifi.where())


async def probe_http(host: str, port: int | None, timeout: float | None = None) -> float:
    """
    GET ``http://host:port`` and time it from request start until the full body has been read.

    The status code is never inspected: any complete response counts as success.
    """
    deadline = DEFAULT_TIMEOUT_SECONDS if timeout is None else float(timeout)
    deadline = min(deadline, MAX_TIMEOUT_SECONDS)
    url = http_url(host, int(port or 80))
    timeouts = httpx.Timeout(deadline, connect=min(CONNECT_TIMEOUT_SECONDS, deadline))

    try:
        async with httpx.AsyncClient(timeout=timeouts, follow_redirects=True, verify=SSL_CONTEXT) as client:
            started = time.perf_counter()
            await asyncio.wait_for(client.get(url), timeout=deadline)
            elapsed = time.perf_counter() - started
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        raise ProbeTimeout(f"http GET {url} timed out after {deadline:.3f}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise RequestError(f"http GET {url} failed: {type(exc).__name__}: {exc}") from exc
    return elapsed
