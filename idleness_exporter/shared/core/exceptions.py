"""
Exporter exception hierarchy.

Every error raised on purpose by the exporter derives from
IdlenessExporterError so callers (and the HTTP layer) can handle them
uniformly.
"""

from typing import Any


class IdlenessExporterError(Exception):
    """Base class for exporter errors."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message} (status={self.status_code})"


class ExternalAPIError(IdlenessExporterError):
    """A call to the cloud provider failed or returned a non-success status."""

    def __init__(
        self,
        message: str,
        upstream_status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        merged = dict(details or {})
        if upstream_status is not None:
            merged["upstream_status"] = upstream_status
        super().__init__(
            message, code="external_api_error", status_code=502, details=merged
        )
        self.upstream_status = upstream_status


class ConfigurationError(IdlenessExporterError):
    """Invalid or missing configuration. Raised during startup only."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, code="config_error", status_code=500, details=details)


class CollectorRegistrationError(ConfigurationError):
    """A collector was registered twice or after the registry was frozen."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)
        self.code = "collector_registration_error"
