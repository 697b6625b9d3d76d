"""
Exporter self-observability metrics.

These live in the process-wide prometheus_client registry, next to the
default process/platform collectors, and are served alongside the
per-scrape resource metrics.
"""

from prometheus_client import Counter, Histogram

METRICS_REQUESTS_TOTAL = Counter(
    "gcp_idleness_exporter_metric_handler_requests_total",
    "Total number of scrapes served by the metrics handler",
    ["code"],
)

SCRAPE_DURATION = Histogram(
    "gcp_idleness_exporter_scrape_duration_seconds",
    "Wall time spent collecting all enabled collectors for one scrape",
    buckets=(0.5, 1, 2.5, 5, 10, 20, 30, 60),
)

COLLECTOR_FAILURES_TOTAL = Counter(
    "gcp_idleness_exporter_collector_failures_total",
    "Total number of collector update cycles that raised",
    ["collector"],
)

UPSTREAM_RETRIES_TOTAL = Counter(
    "gcp_idleness_exporter_upstream_retries_total",
    "Total number of GCP API requests re-issued because of a retryable status",
    ["status"],
)
