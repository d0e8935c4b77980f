from __future__ import annotations

import asyncio
import json
import socket
from pathlib import Path

import pytest

from latency_probe.config import FileConfigSource, load_config
from latency_probe.main import build_argparser, build_engine, main, run_once
from latency_probe.metrics import PrometheusMetricsSink


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def _write_config(path: Path, targets: list[dict]) -> Path:
    path.write_text(
        json.dumps(
            {
                "probe_interval_ms": 1000,
                "default_timeout_ms": 2000,
                "log_level": "error",
                "targets": targets,
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.mark.asyncio
async def test_run_once_records_success_and_failure(tmp_path: Path) -> None:
    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    closed_port = _free_port()
    path = _write_config(
        tmp_path / "targets.json",
        [
            {"name": "up", "kind": "tcp_connect", "host": "127.0.0.1", "port": port},
            {"name": "down", "kind": "tcpconnect", "host": f"127.0.0.1:{closed_port}"},
        ],
    )
    source = FileConfigSource(path, load_config(path))
    sink = PrometheusMetricsSink()
    try:
        outcomes = await run_once(build_engine(source, sink))
    finally:
        server.close()
        await server.wait_closed()

    by_name = {o.target_name: o for o in outcomes}
    assert by_name["up"].ok
    assert by_name["down"].reason == "connection_refused"
    assert sink.current_latency("up", "tcp_connect") is not None
    assert sink.failure_count("up", "tcp_connect") == 0
    assert sink.failure_count("down", "tcp_connect") == 1
    assert sink.current_latency("down", "tcp_connect") is None


def test_main_once_exit_codes(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.bind(("127.0.0.1", 0))
        listener.listen(8)
        port = listener.getsockname()[1]

        ok_path = _write_config(
            tmp_path / "ok.json",
            [{"name": "up", "kind": "tcp_connect", "host": "127.0.0.1", "port": port}],
        )
        assert main(["--config", str(ok_path), "--once"]) == 0

    bad_path = _write_config(
        tmp_path / "bad.json",
        [{"name": "down", "kind": "tcp_connect", "host": "127.0.0.1", "port": _free_port()}],
    )
    assert main(["--config", str(bad_path), "--once"]) == 1


def test_main_rejects_invalid_config(tmp_path: Path) -> None:
    assert main(["--config", str(tmp_path / "missing.json"), "--once"]) == 2

    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps({"probe_interval_ms": 0, "default_timeout_ms": 1, "targets": []}), encoding="utf-8")
    assert main(["--config", str(broken), "--once"]) == 2


def test_main_rejects_unknown_log_level_override(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "t.json", [])
    assert main(["--config", str(path), "--log-level", "loud", "--once"]) == 2


def test_argparser_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("METRICS_PORT", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    args = build_argparser().parse_args([])

    assert args.config is None
    assert args.log_level is None
    assert args.metrics_port == 9100
    assert args.once is False
