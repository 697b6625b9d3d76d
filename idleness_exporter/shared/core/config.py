import re
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from idleness_exporter import __version__

LOG_LEVELS = {"debug", "info", "warn", "warning", "error"}
LOG_FORMATS = {"logfmt", "json", "console"}

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Parse a Go-style duration ("500ms", "10s", "1m") or plain seconds."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit or "s"]


def split_csv(value: str) -> tuple[str, ...]:
    """Split a comma-separated list, dropping blanks and repeats but keeping order."""
    items = (item.strip() for item in (value or "").split(","))
    return tuple(dict.fromkeys(item for item in items if item))


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the exporter settings."""
    return Settings()


class Settings(BaseSettings):
    """
    Exporter configuration.
    Read from environment variables (and an optional .env file); the CLI
    passes its flags in as explicit overrides.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    APP_NAME: str = "gcp-idleness-exporter"
    VERSION: str = __version__
    DEBUG: bool = False
    TESTING: bool = False

    # Scope
    GCP_PROJECT_ID: str | None = None
    GCP_REGIONS: str = ""  # comma separated, e.g. "us-east1,europe-west1"

    # Retrying transport
    GCP_EXPORTER_MAX_RETRIES: int = Field(default=0, ge=0)
    GCP_EXPORTER_HTTP_TIMEOUT: float = 10.0
    GCP_EXPORTER_MAX_BACKOFF_DURATION: float = 5.0
    GCP_EXPORTER_BACKOFF_JITTER_BASE: float = 1.0
    GCP_EXPORTER_RETRY_STATUSES: str = "503"

    # Upstream endpoints (overridable for emulators and tests)
    COMPUTE_API_URL: str = "https://compute.googleapis.com/compute/v1"
    DATAPROC_API_URL: str = "https://dataproc.googleapis.com/v1"
    METADATA_PROJECT_URL: str = (
        "http://metadata.google.internal/computeMetadata/v1/project/project-id"
    )

    # Collectors
    COLLECTOR_DISABLE_DEFAULTS: bool = False
    COLLECTORS_ENABLED: str = ""
    COLLECTORS_DISABLED: str = ""

    # Serving and logging
    LISTEN_ADDRESS: str = ":5000"
    LOG_LEVEL: str = "info"
    LOG_FORMAT: str = "logfmt"

    @field_validator(
        "GCP_EXPORTER_HTTP_TIMEOUT",
        "GCP_EXPORTER_MAX_BACKOFF_DURATION",
        "GCP_EXPORTER_BACKOFF_JITTER_BASE",
        mode="before",
    )
    @classmethod
    def _parse_durations(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("GCP_EXPORTER_RETRY_STATUSES")
    @classmethod
    def _validate_retry_statuses(cls, value: str) -> str:
        for item in split_csv(value):
            if not item.isdigit() or not 100 <= int(item) <= 599:
                raise ValueError(f"invalid HTTP status in retry statuses: {item!r}")
        return value

    @field_validator("LOG_LEVEL")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(LOG_LEVELS)}")
        return normalized

    @field_validator("LOG_FORMAT")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {sorted(LOG_FORMATS)}")
        return normalized

    @model_validator(mode="after")
    def _validate_transport_and_collectors(self) -> "Settings":
        if self.GCP_EXPORTER_HTTP_TIMEOUT <= 0:
            raise ValueError("GCP_EXPORTER_HTTP_TIMEOUT must be positive.")
        if self.GCP_EXPORTER_MAX_BACKOFF_DURATION < 0:
            raise ValueError("GCP_EXPORTER_MAX_BACKOFF_DURATION cannot be negative.")
        if self.GCP_EXPORTER_BACKOFF_JITTER_BASE < 0:
            raise ValueError("GCP_EXPORTER_BACKOFF_JITTER_BASE cannot be negative.")

        both = set(self.enabled_collectors) & set(self.disabled_collectors)
        if both:
            raise ValueError(
                "Collectors cannot be both enabled and disabled: "
                + ", ".join(sorted(both))
            )
        self.listen_endpoint()
        return self

    @property
    def monitored_regions(self) -> tuple[str, ...]:
        return split_csv(self.GCP_REGIONS)

    @property
    def retry_statuses(self) -> frozenset[int]:
        return frozenset(int(item) for item in split_csv(self.GCP_EXPORTER_RETRY_STATUSES))

    @property
    def enabled_collectors(self) -> tuple[str, ...]:
        return split_csv(self.COLLECTORS_ENABLED)

    @property
    def disabled_collectors(self) -> tuple[str, ...]:
        return split_csv(self.COLLECTORS_DISABLED)

    def listen_endpoint(self) -> tuple[str, int]:
        """Split LISTEN_ADDRESS ("host:port" or ":port") into a bindable pair."""
        host, sep, port = self.LISTEN_ADDRESS.rpartition(":")
        if not sep or not port.isdigit():
            raise ValueError(f"LISTEN_ADDRESS must look like 'host:port', got {self.LISTEN_ADDRESS!r}")
        return host.strip("[]") or "0.0.0.0", int(port)
