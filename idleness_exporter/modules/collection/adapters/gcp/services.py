"""
Startup wiring for the GCP API clients.

Any failure here (no credentials, no project) is fatal: the lifespan
raises and the server never starts serving.
"""

from dataclasses import dataclass

import httpx
import structlog

from idleness_exporter.modules.collection.adapters.gcp.client import (
    ComputeEngineClient,
    DataprocClient,
)
from idleness_exporter.shared.core.config import Settings
from idleness_exporter.shared.core.http import init_http_client, load_default_credentials
from idleness_exporter.shared.core.identity import resolve_project_id
from idleness_exporter.shared.core.retry import RetryPolicy

logger = structlog.get_logger()


@dataclass(frozen=True)
class GCPServices:
    project_id: str
    compute: ComputeEngineClient
    dataproc: DataprocClient


def build_api_clients(
    http: httpx.AsyncClient, settings: Settings
) -> tuple[ComputeEngineClient, DataprocClient]:
    return (
        ComputeEngineClient(http, settings.COMPUTE_API_URL),
        DataprocClient(http, settings.DATAPROC_API_URL),
    )


async def build_gcp_services(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> GCPServices:
    credentials, default_project = load_default_credentials()
    http = init_http_client(
        RetryPolicy.from_settings(settings), credentials=credentials, transport=transport
    )
    project_id = await resolve_project_id(settings, default_project=default_project)
    compute, dataproc = build_api_clients(http, settings)

    logger.info(
        "gcp_services_ready",
        project=project_id,
        compute_api=settings.COMPUTE_API_URL,
        dataproc_api=settings.DATAPROC_API_URL,
    )
    return GCPServices(project_id=project_id, compute=compute, dataproc=dataproc)
