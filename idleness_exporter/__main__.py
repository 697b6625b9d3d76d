"""
Command line entry point: `gcp-idleness-exporter` / `python -m idleness_exporter`.

Flags override the matching environment variables; anything not given on
the command line falls through to Settings' environment lookup.
"""

import argparse
import os
import sys
from collections.abc import Sequence
from typing import Any

import structlog
import uvicorn
from pydantic import ValidationError

from idleness_exporter import __version__
from idleness_exporter.modules.collection.adapters.gcp.collectors import DEFAULT_COLLECTORS
from idleness_exporter.shared.core.config import Settings
from idleness_exporter.shared.core.logging import setup_logging

logger = structlog.get_logger()

# flag dest -> Settings field
_FLAG_FIELDS = {
    "project_id": "GCP_PROJECT_ID",
    "regions": "GCP_REGIONS",
    "max_retries": "GCP_EXPORTER_MAX_RETRIES",
    "http_timeout": "GCP_EXPORTER_HTTP_TIMEOUT",
    "max_backoff": "GCP_EXPORTER_MAX_BACKOFF_DURATION",
    "backoff_jitter": "GCP_EXPORTER_BACKOFF_JITTER_BASE",
    "retry_statuses": "GCP_EXPORTER_RETRY_STATUSES",
    "listen_address": "LISTEN_ADDRESS",
    "log_level": "LOG_LEVEL",
    "log_format": "LOG_FORMAT",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gcp-idleness-exporter",
        description="Prometheus exporter for idle GCP resources.",
        allow_abbrev=False,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project-id", help="GCP Project ID to monitor. ($GCP_PROJECT_ID)")
    parser.add_argument(
        "--regions",
        help="Comma-separated GCP regions to monitor, e.g. asia-east1,us-east1 ($GCP_REGIONS)",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        help="Max number of retries on retryable statuses from GCP. ($GCP_EXPORTER_MAX_RETRIES)",
    )
    parser.add_argument(
        "--http-timeout",
        help="How long to wait for a result from the Google API, retries included. "
        "($GCP_EXPORTER_HTTP_TIMEOUT)",
    )
    parser.add_argument(
        "--max-backoff",
        help="Max time between requests in an exp backoff scenario. "
        "($GCP_EXPORTER_MAX_BACKOFF_DURATION)",
    )
    parser.add_argument(
        "--backoff-jitter",
        help="Jitter base for the exp backoff. ($GCP_EXPORTER_BACKOFF_JITTER_BASE)",
    )
    parser.add_argument(
        "--retry-statuses",
        help="Comma-separated HTTP statuses that trigger a retry. ($GCP_EXPORTER_RETRY_STATUSES)",
    )
    parser.add_argument(
        "--listen-address",
        help="Address to listen on for web interface and telemetry. ($LISTEN_ADDRESS)",
    )
    parser.add_argument("--log.level", dest="log_level", help="debug, info, warn or error.")
    parser.add_argument("--log.format", dest="log_format", help="logfmt, json or console.")
    parser.add_argument(
        "--collector.disable-defaults",
        dest="disable_defaults",
        action="store_true",
        default=None,
        help="Set all collectors to disabled by default.",
    )

    for name, default_enabled, _ in DEFAULT_COLLECTORS:
        state = "enabled" if default_enabled else "disabled"
        parser.add_argument(
            f"--collector.{name}",
            dest="collectors_enabled",
            action="append_const",
            const=name,
            help=f"Enable the {name} collector (default: {state}).",
        )
        parser.add_argument(
            f"--no-collector.{name}",
            dest="collectors_disabled",
            action="append_const",
            const=name,
            help=argparse.SUPPRESS,
        )
    return parser


def settings_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Settings fields explicitly set on the command line."""
    overrides: dict[str, Any] = {
        field: getattr(args, dest)
        for dest, field in _FLAG_FIELDS.items()
        if getattr(args, dest) is not None
    }
    if args.disable_defaults:
        overrides["COLLECTOR_DISABLE_DEFAULTS"] = True
    if args.collectors_enabled:
        overrides["COLLECTORS_ENABLED"] = ",".join(args.collectors_enabled)
    if args.collectors_disabled:
        overrides["COLLECTORS_DISABLED"] = ",".join(args.collectors_disabled)
    return overrides


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        settings = Settings(**settings_overrides(args))
    except ValidationError as exc:
        print(f"gcp-idleness-exporter: invalid configuration\n{exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    setup_logging(settings)
    logger.info("exporter_starting", version=__version__)
    if hasattr(os, "geteuid") and os.geteuid() == 0:
        logger.warning(
            "running_as_root",
            detail="gcp-idleness-exporter is designed to run as an unprivileged user",
        )
    if not settings.monitored_regions:
        logger.warning("no_regions_configured", hint="set --regions or GCP_REGIONS")

    host, port = settings.listen_endpoint()
    logger.info("exporter_listening", host=host, port=port, regions=list(settings.monitored_regions))

    from idleness_exporter.main import create_app

    uvicorn.run(
        create_app(settings),
        host=host,
        port=port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()
