"""Entry point: load config, wire source/sink/engine/scheduler and run until shutdown."""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path

import structlog
import uvicorn
import yaml
from pydantic import ValidationError

from latency_probe.config import (
    FileConfigSource,
    ProbeConfig,
    load_config,
    parse_log_level,
    poll_interval_from_env,
    resolve_config_path,
)
from latency_probe.metrics import PrometheusMetricsSink
from latency_probe.models import ProbeOutcome
from latency_probe.scheduler import DispatchEngine, TickScheduler
from latency_probe.server import create_app


logger = structlog.get_logger(__name__)

DEFAULT_METRICS_HOST = "0.0.0.0"
DEFAULT_METRICS_PORT = 9100


def configure_logging(level: int) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_engine(source: FileConfigSource, sink: PrometheusMetricsSink) -> DispatchEngine:
    return DispatchEngine(
        source,
        source,
        sink,
        max_in_flight=source.config.max_in_flight_probes,
    )


async def run_once(engine: DispatchEngine) -> list[ProbeOutcome]:
    """Dispatch a single tick and wait for every probe of it."""
    tasks = engine.dispatch()
    outcomes = list(await asyncio.gather(*tasks))
    failed = [o for o in outcomes if not o.ok]
    logger.info(
        "Single tick complete",
        probes=len(outcomes),
        succeeded=len(outcomes) - len(failed),
        failed=len(failed),
    )
    return outcomes


async def run_agent(
    config_path: Path,
    config: ProbeConfig,
    *,
    metrics_host: str = DEFAULT_METRICS_HOST,
    metrics_port: int = DEFAULT_METRICS_PORT,
    once: bool = False,
) -> int:
    source = FileConfigSource(config_path, config, poll_interval_seconds=poll_interval_from_env())
    sink = PrometheusMetricsSink(enable_latency_history=config.enable_latency_history)
    engine = build_engine(source, sink)

    if once:
        outcomes = await run_once(engine)
        return 0 if all(o.ok for o in outcomes) else 1

    scheduler = TickScheduler.from_millis(config.probe_interval_ms)
    server = uvicorn.Server(
        uvicorn.Config(
            create_app(sink, source),
            host=metrics_host,
            port=int(metrics_port),
            log_level="warning",
            access_log=False,
        )
    )
    poller = asyncio.create_task(source.poll_forever(), name="config-poller")
    server_task = asyncio.create_task(server.serve(), name="metrics-server")
    logger.info(
        "Starting latency probe",
        config=str(config_path),
        targets=len(config.targets),
        interval_ms=config.probe_interval_ms,
        metrics=f"http://{metrics_host}:{metrics_port}/metrics",
        latency_history=config.enable_latency_history,
    )
    try:
        await scheduler.run(engine.run_tick)
    finally:
        server.should_exit = True
        poller.cancel()
        await asyncio.gather(poller, server_task, return_exceptions=True)
    return 0


def build_argparser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Periodic network latency probe with Prometheus metrics")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to JSON/YAML target config (default: $TARGET_CONFIG or targets.json)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL"),
        help="Override the config log level (trace, debug, info, warn, error)",
    )
    parser.add_argument("--metrics-host", default=DEFAULT_METRICS_HOST, help="Metrics listen address")
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=int(os.getenv("METRICS_PORT", str(DEFAULT_METRICS_PORT))),
        help="Metrics listen port",
    )
    parser.add_argument("--once", action="store_true", help="Probe every target once and exit")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_argparser().parse_args(argv)
    config_path = resolve_config_path(args.config)

    try:
        config = load_config(config_path)
        level = parse_log_level(args.log_level) if args.log_level else config.logging_level
    except (OSError, ValueError, ValidationError, yaml.YAMLError) as exc:
        logger.error("Invalid configuration", config=str(config_path), error=str(exc))
        return 2

    configure_logging(level)
    try:
        return asyncio.run(
            run_agent(
                config_path,
                config,
                metrics_host=args.metrics_host,
                metrics_port=args.metrics_port,
                once=bool(args.once),
            )
        )
    except KeyboardInterrupt:
        logger.info("Latency probe stopped")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
