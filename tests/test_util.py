from __future__ import annotations

import pytest

from latency_probe.util import http_url, is_ip_address, parse_host_port, resolve_host


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("example.com", ("example.com", 80)),
        ("example.com:8080", ("example.com", 8080)),
        ("10.0.0.5:5432", ("10.0.0.5", 5432)),
        ("[::1]:9000", ("::1", 9000)),
        ("[::1]", ("::1", 80)),
        ("::1", ("::1", 80)),
        ("host:notaport", ("host:notaport", 80)),
        ("host:70000", ("host:70000", 80)),
        ("  padded.example  ", ("padded.example", 80)),
    ],
)
def test_parse_host_port(value: str, expected: tuple[str, int]) -> None:
    assert parse_host_port(value, 80) == expected


@pytest.mark.parametrize(
    ("host", "port", "expected"),
    [
        ("example.com", 80, "http://example.com:80"),
        ("10.0.0.7", 8080, "http://10.0.0.7:8080"),
        ("::1", 80, "http://[::1]:80"),
        ("https://example.com", 443, "https://example.com:443"),
        ("http://example.com/health", 8080, "http://example.com:8080/health"),
        ("http://example.com:8081/x", 80, "http://example.com:8081/x"),
    ],
)
def test_http_url(host: str, port: int, expected: str) -> None:
    assert http_url(host, port) == expected


def test_is_ip_address() -> None:
    assert is_ip_address("127.0.0.1")
    assert is_ip_address("::1")
    assert not is_ip_address("example.com")


@pytest.mark.asyncio
async def test_resolve_host_passes_ip_literals_through(monkeypatch: pytest.MonkeyPatch) -> None:
    async def unexpected_lookup(name):
        raise AssertionError("unexpected lookup")

    monkeypatch.setattr("latency_probe.util.async_resolve", unexpected_lookup)

    assert await resolve_host("192.0.2.10", 1.0) == "192.0.2.10"
