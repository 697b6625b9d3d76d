from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from idleness_exporter.modules.collection.adapters.gcp.collectors import (
    register_default_collectors,
)
from idleness_exporter.modules.collection.adapters.gcp.services import build_gcp_services
from idleness_exporter.modules.collection.domain.collector import CollectorContext
from idleness_exporter.modules.collection.domain.registry import (
    AggregateCollector,
    CollectorRegistry,
)
from idleness_exporter.shared.core.app_routes import (
    register_api_routers,
    register_lifecycle_routes,
)
from idleness_exporter.shared.core.config import Settings, get_settings
from idleness_exporter.shared.core.exceptions import IdlenessExporterError
from idleness_exporter.shared.core.http import close_http_client

logger = structlog.get_logger()


def build_collector_registry(settings: Settings) -> CollectorRegistry:
    """Register the built-in collectors, apply the enable flags, then freeze."""
    registry = register_default_collectors(CollectorRegistry())
    registry.configure(
        disable_defaults=settings.COLLECTOR_DISABLE_DEFAULTS,
        enabled=settings.enabled_collectors,
        disabled=settings.disabled_collectors,
    )
    registry.freeze()
    return registry


def create_app(settings: Settings | None = None, services: Any = None) -> FastAPI:
    """
    Build the exporter application.

    `services` (anything with project_id, compute and dataproc) replaces
    the real GCP wiring; tests pass fakes here.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("app_starting", app_name=settings.APP_NAME, version=settings.VERSION)

        gcp = services or await build_gcp_services(settings)
        registry = build_collector_registry(settings)
        context = CollectorContext(
            project=gcp.project_id,
            monitored_regions=settings.monitored_regions,
            compute=gcp.compute,
            dataproc=gcp.dataproc,
        )
        collectors = registry.instantiate_enabled(context)
        for name, collector in collectors.items():
            logger.info("collector_enabled", collector=name, metrics=collector.list_metrics())
        if not collectors:
            logger.warning("no_collectors_enabled")

        app.state.project_id = gcp.project_id
        app.state.collector_registry = registry
        app.state.aggregate_collector = AggregateCollector(collectors)

        yield

        logger.info("app_shutting_down")
        await close_http_client()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )

    @app.exception_handler(IdlenessExporterError)
    async def exporter_exception_handler(
        request: Request, exc: IdlenessExporterError
    ) -> JSONResponse:
        logger.error(
            "request_failed",
            path=request.url.path,
            code=exc.code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.code, "message": exc.message},
        )

    register_lifecycle_routes(app, app_name=settings.APP_NAME, version=settings.VERSION)
    register_api_routers(app)
    return app
