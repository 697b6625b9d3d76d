"""
Async HTTP Client Shared Infrastructure

One httpx.AsyncClient per process, authenticated with Google default
credentials and wrapped in the retrying transport. Every collector's API
client borrows it, so connection pools and retry settings are shared.
"""

import asyncio
from collections.abc import AsyncGenerator
from typing import Any, Optional

import google.auth
import google.auth.exceptions
import google.auth.transport.requests
import httpx
import structlog

from idleness_exporter import __version__
from idleness_exporter.shared.core.exceptions import ConfigurationError
from idleness_exporter.shared.core.retry import RetryPolicy, RetryTransport

logger = structlog.get_logger()

COMPUTE_READONLY_SCOPE = "https://www.googleapis.com/auth/compute.readonly"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
DEFAULT_SCOPES = (COMPUTE_READONLY_SCOPE, CLOUD_PLATFORM_SCOPE)

# Singleton instance
_client: Optional[httpx.AsyncClient] = None


class GoogleCredentialsAuth(httpx.Auth):
    """Attach a bearer token from google-auth credentials, refreshing when stale."""

    def __init__(self, credentials: Any):
        self._credentials = credentials
        self._refresh_lock = asyncio.Lock()

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        await self._ensure_valid()
        self._credentials.apply(request.headers)
        yield request

    async def _ensure_valid(self) -> None:
        if self._credentials.valid:
            return
        async with self._refresh_lock:
            if self._credentials.valid:
                return
            # google-auth refresh is blocking.
            await asyncio.to_thread(
                self._credentials.refresh, google.auth.transport.requests.Request()
            )
            logger.debug("gcp_credentials_refreshed")


def load_default_credentials(
    scopes: tuple[str, ...] = DEFAULT_SCOPES,
) -> tuple[Any, str | None]:
    """Resolve Application Default Credentials or fail startup."""
    try:
        credentials, project_id = google.auth.default(scopes=list(scopes))
    except google.auth.exceptions.DefaultCredentialsError as exc:
        logger.error("gcp_credentials_unavailable", error=str(exc))
        raise ConfigurationError(
            "Unable to create GCP client: no application default credentials",
            details={"error": str(exc)},
        ) from exc
    return credentials, project_id


def build_http_client(
    policy: RetryPolicy,
    credentials: Any = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an AsyncClient whose transport retries per `policy`."""
    inner = transport or httpx.AsyncHTTPTransport()
    return httpx.AsyncClient(
        transport=RetryTransport(inner, policy),
        auth=GoogleCredentialsAuth(credentials) if credentials is not None else None,
        # Per attempt; RetryTransport bounds the call including retries.
        timeout=httpx.Timeout(policy.timeout),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
        headers={"User-Agent": f"gcp-idleness-exporter/{__version__}"},
    )


def init_http_client(
    policy: RetryPolicy,
    credentials: Any = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Initializes the process-wide client. Called once from the app lifespan."""
    global _client
    if _client is not None:
        logger.warning("http_client_already_initialized")
        return _client

    _client = build_http_client(policy, credentials=credentials, transport=transport)
    logger.info(
        "http_client_initialized",
        max_retries=policy.max_retries,
        retry_statuses=sorted(policy.retry_statuses),
        timeout_seconds=policy.timeout,
    )
    return _client


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("HTTP client used before init_http_client()")
    return _client


async def close_http_client() -> None:
    """Gracefully shuts down the process-wide client."""
    global _client
    if _client is None:
        return
    await _client.aclose()
    _client = None
    logger.info("http_client_closed")
