"""
Short-name extraction from fully-qualified GCP resource URLs.

    https://www.googleapis.com/compute/v1/projects/p/zones/us-east1-b/disks/d
        zone_from_url(...)      -> "us-east1-b"
        disk_name_from_url(...) -> "d"

The resolvers never raise: an unparsable URL or a missing keyword yields
"" and a log line, and callers treat "" as unknown.
"""

from urllib.parse import urlparse

import structlog

logger = structlog.get_logger()


def resource_name_from_url(url: str, keyword: str) -> str:
    """Return the path segment that follows the last `keyword` segment."""
    if not url:
        logger.warning("resource_url_empty", keyword=keyword)
        return ""

    try:
        path = urlparse(url).path
    except ValueError as exc:
        logger.error("resource_url_parse_failed", url=url, keyword=keyword, error=str(exc))
        return ""

    parts = path.split("/")
    name = ""
    for index, part in enumerate(parts[:-1]):
        if part == keyword:
            name = parts[index + 1]

    if not name:
        logger.warning("resource_url_segment_missing", url=url, keyword=keyword)
    return name


def zone_from_url(url: str) -> str:
    return resource_name_from_url(url, "zones")


def region_from_url(url: str) -> str:
    return resource_name_from_url(url, "regions")


def disk_name_from_url(url: str) -> str:
    return resource_name_from_url(url, "disks")


def region_of_zone(zone: str) -> str:
    """'us-east1-b' -> 'us-east1'."""
    region, sep, _ = zone.rpartition("-")
    return region if sep else ""
