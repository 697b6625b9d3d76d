"""
Project ID discovery.

Order: explicit setting, then the `project_id` field of the service
account file named by GOOGLE_APPLICATION_CREDENTIALS, then the GCE
metadata server, then whatever google.auth.default() reported.
"""

import json
import os
from pathlib import Path

import httpx
import structlog

from idleness_exporter.shared.core.config import Settings
from idleness_exporter.shared.core.exceptions import ConfigurationError

logger = structlog.get_logger()

METADATA_TIMEOUT_SECONDS = 3.0


def project_from_credentials_file(path: Path) -> str:
    try:
        payload = json.loads(path.read_text())
    except (OSError, ValueError) as exc:
        logger.error("gcp_credentials_file_unreadable", path=str(path), error=str(exc))
        return ""
    project_id = str(payload.get("project_id") or "") if isinstance(payload, dict) else ""
    if not project_id:
        logger.error("gcp_credentials_file_missing_project_id", path=str(path))
    return project_id


async def project_from_metadata(
    url: str, client: httpx.AsyncClient | None = None
) -> str:
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=METADATA_TIMEOUT_SECONDS)
    try:
        response = await client.get(url, headers={"Metadata-Flavor": "Google"})
        response.raise_for_status()
        return response.text.strip()
    except httpx.HTTPError as exc:
        logger.error("gcp_metadata_project_lookup_failed", error=str(exc))
        return ""
    finally:
        if owns_client:
            await client.aclose()


async def resolve_project_id(
    settings: Settings,
    default_project: str | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Return the project to monitor, or raise ConfigurationError."""
    project_id = (settings.GCP_PROJECT_ID or "").strip()
    source = "settings"

    if not project_id:
        credentials_file = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
        if credentials_file:
            project_id = project_from_credentials_file(Path(credentials_file))
            source = "credentials_file"
        else:
            project_id = await project_from_metadata(
                settings.METADATA_PROJECT_URL, client=client
            )
            source = "metadata"

    if not project_id and default_project:
        project_id = default_project
        source = "application_default_credentials"

    if not project_id:
        raise ConfigurationError("GCP Project ID cannot be empty")

    logger.info("gcp_project_resolved", project=project_id, source=source)
    return project_id
