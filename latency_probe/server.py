"""HTTP surface: Prometheus scrape endpoint plus health and target listing."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Response

from latency_probe import __version__
from latency_probe.metrics import PrometheusMetricsSink
from latency_probe.scheduler.dispatch import TargetSnapshotSource


def create_app(sink: PrometheusMetricsSink, source: TargetSnapshotSource | None = None) -> FastAPI:
    app = FastAPI(title="Latency Probe", version=__version__)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        payload: dict[str, Any] = {"status": "healthy", "service": "latency-probe"}
        if source is not None:
            payload["targets"] = len(source.current_targets())
        return payload

    @app.get("/metrics")
    async def metrics() -> Response:
        body, content_type = sink.render()
        return Response(content=body, media_type=content_type)

    @app.get("/targets")
    async def targets() -> dict[str, Any]:
        snapshot = source.current_targets() if source is not None else ()
        return {"targets": [t.model_dump(mode="json", by_alias=True) for t in snapshot]}

    return app
