"""
Thin REST clients for the Compute Engine and Dataproc APIs.

Both borrow the shared, retrying httpx client. List calls follow
nextPageToken until exhausted and return a flat list of handles; an
item that does not validate is logged and skipped.
"""

from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from idleness_exporter.modules.collection.domain.models import (
    DataprocCluster,
    Disk,
    Instance,
    Region,
    Snapshot,
)
from idleness_exporter.shared.core.exceptions import ExternalAPIError

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


class GCPRestClient:
    def __init__(self, http: httpx.AsyncClient, base_url: str):
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            response = await self._http.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ExternalAPIError(
                f"request to {path} failed: {exc}",
                details={"path": path, "error_type": type(exc).__name__},
            ) from exc

        if response.is_error:
            raise ExternalAPIError(
                f"{path} returned HTTP {response.status_code}",
                upstream_status=response.status_code,
                details={"path": path, "body": response.text[:512]},
            )
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalAPIError(f"{path} returned invalid JSON", details={"path": path}) from exc

    async def _list(
        self, path: str, items_key: str, model: type[ModelT]
    ) -> list[ModelT]:
        items: list[ModelT] = []
        seen_tokens: set[str] = set()
        params: dict[str, str] = {}

        while True:
            payload = await self._get(path, params)
            for raw in payload.get(items_key) or []:
                try:
                    items.append(model.model_validate(raw))
                except ValidationError as exc:
                    logger.error(
                        "gcp_resource_parse_failed",
                        path=path,
                        name=raw.get("name") if isinstance(raw, dict) else None,
                        error=str(exc),
                    )

            page_token = payload.get("nextPageToken")
            if not page_token:
                return items
            if page_token in seen_tokens:
                logger.warning("gcp_pagination_token_repeated", path=path)
                return items
            seen_tokens.add(page_token)
            params = {"pageToken": page_token}


class ComputeEngineClient(GCPRestClient):
    async def list_regions(self, project: str) -> list[Region]:
        return await self._list(f"projects/{project}/regions", "items", Region)

    async def list_instances(self, project: str, zone: str) -> list[Instance]:
        return await self._list(f"projects/{project}/zones/{zone}/instances", "items", Instance)

    async def list_disks(self, project: str, zone: str) -> list[Disk]:
        return await self._list(f"projects/{project}/zones/{zone}/disks", "items", Disk)

    async def list_snapshots(self, project: str) -> list[Snapshot]:
        return await self._list(f"projects/{project}/global/snapshots", "items", Snapshot)


class DataprocClient(GCPRestClient):
    async def list_clusters(self, project: str, region: str) -> list[DataprocCluster]:
        return await self._list(
            f"projects/{project}/regions/{region}/clusters", "clusters", DataprocCluster
        )
