from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

LANDING_PAGE = """<html>
<head><title>{app_name}</title></head>
<body>
<h1>{app_name}</h1>
<p>Version {version}</p>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>
"""


def register_api_routers(app: FastAPI) -> None:
    """Register API route modules in one place to keep app entrypoint focused."""
    from idleness_exporter.modules.collection.api.metrics import router as metrics_router

    app.include_router(metrics_router)


def register_lifecycle_routes(
    app: FastAPI,
    *,
    app_name: str,
    version: str,
    metrics_path: str = "/metrics",
) -> None:
    """Register the landing page and health endpoint."""

    @app.get("/", response_class=HTMLResponse, tags=["Lifecycle"])
    async def root() -> str:
        return LANDING_PAGE.format(app_name=app_name, version=version, metrics_path=metrics_path)

    @app.get("/health", tags=["Lifecycle"])
    async def health_check(request: Request) -> dict[str, Any]:
        """Liveness plus the collectors this process will run."""
        aggregate = getattr(request.app.state, "aggregate_collector", None)
        return {
            "status": "healthy",
            "version": version,
            "project": getattr(request.app.state, "project_id", None),
            "collectors": sorted(aggregate.collectors) if aggregate is not None else [],
        }
