import logging
import sys
from typing import Any, cast

import structlog

from idleness_exporter.shared.core.config import Settings, get_settings

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_SENSITIVE_FIELDS = {"authorization", "token", "access_token", "private_key", "secret"}
_SENSITIVE_SUFFIXES = ("_token", "_secret", "_key")


def credential_redactor(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """
    Drop credential material from log events.
    Upstream error payloads and request headers can carry bearer tokens.
    """

    def is_sensitive_key(key: Any) -> bool:
        key_norm = str(key).lower().strip().replace("-", "_")
        return key_norm in _SENSITIVE_FIELDS or key_norm.endswith(_SENSITIVE_SUFFIXES)

    def redact(data: Any) -> Any:
        if isinstance(data, dict):
            return {
                k: ("[REDACTED]" if is_sensitive_key(k) else redact(v))
                for k, v in data.items()
            }
        if isinstance(data, list):
            return [redact(item) for item in data]
        return data

    return cast(dict[str, Any], redact(event_dict))


def setup_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    min_level = logging.DEBUG if settings.DEBUG else _LEVELS[settings.LOG_LEVEL]

    # 1. Common processors
    base_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        credential_redactor,
    ]

    # 2. Renderer
    renderer: Any
    if settings.DEBUG or settings.LOG_FORMAT == "console":
        renderer = structlog.dev.ConsoleRenderer()
        processors = base_processors + [renderer]
    elif settings.LOG_FORMAT == "json":
        renderer = structlog.processors.JSONRenderer()
        processors = base_processors + [structlog.processors.dict_tracebacks, renderer]
    else:
        renderer = structlog.processors.LogfmtRenderer(
            key_order=["timestamp", "level", "event"]
        )
        processors = base_processors + [structlog.processors.format_exc_info, renderer]

    # 3. Apply the configuration
    structlog.configure(
        processors=cast(Any, processors),
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # 4. Route stdlib logging (uvicorn, httpx) to the same stream and level.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=min_level,
        force=True,
    )
