"""
Prometheus scrape endpoint.

Each request gets a fresh MetricSink; every enabled collector runs once
against it, then the exporter's own process metrics and the sink are
rendered into one text exposition.
"""

import platform

import structlog
from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from idleness_exporter import __version__
from idleness_exporter.modules.collection.domain.registry import AggregateCollector
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink
from idleness_exporter.shared.core.ops_metrics import METRICS_REQUESTS_TOTAL, SCRAPE_DURATION

logger = structlog.get_logger()
router = APIRouter(tags=["Metrics"])

BUILD_INFO = MetricDescriptor(
    "gcp_idleness_exporter_build_info",
    "A metric with a constant '1' value labeled by version and Python version.",
    ("version", "python_version"),
)


@router.get("/metrics")
async def metrics(request: Request) -> Response:
    aggregate: AggregateCollector | None = getattr(
        request.app.state, "aggregate_collector", None
    )
    if aggregate is None:
        METRICS_REQUESTS_TOTAL.labels(code="503").inc()
        return Response("collectors not initialized\n", status_code=503, media_type="text/plain")

    sink = MetricSink()
    sink.add(BUILD_INFO, 1.0, __version__, platform.python_version())

    with SCRAPE_DURATION.time():
        results = await aggregate.collect(sink)

    failed = sorted(name for name, ok in results.items() if not ok)
    logger.debug(
        "scrape_completed",
        collectors=len(results),
        failed=failed,
        samples=len(sink),
    )

    METRICS_REQUESTS_TOTAL.labels(code="200").inc()
    body = generate_latest(REGISTRY) + sink.render()
    return Response(content=body, media_type=CONTENT_TYPE_LATEST)
