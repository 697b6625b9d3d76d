"""
Snapshot aggregation: de-duplication, per-disk age/count and the
pairwise redundancy ("old snapshot") heuristic.

Redundancy only compares neighbours after a stable sort by source disk
id. In a run of three or more snapshots of one disk whose timestamps are
not monotonic, an older snapshot can escape being flagged.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from idleness_exporter.modules.collection.domain.models import Snapshot
from idleness_exporter.modules.collection.domain.ports import ComputeAPI
from idleness_exporter.modules.collection.domain.resolver import disk_name_from_url

logger = structlog.get_logger()


@dataclass(frozen=True)
class SnapshotAge:
    disk: str
    snapshot: str
    age_days: int


@dataclass
class DiskSnapshotSummary:
    disk: str
    count: int = 0
    newest_age_days: int | None = None


@dataclass(frozen=True)
class RedundantSnapshot:
    disk: str
    snapshot: str


@dataclass
class SnapshotReport:
    ages: list[SnapshotAge] = field(default_factory=list)
    disks: dict[str, DiskSnapshotSummary] = field(default_factory=dict)
    redundant: list[RedundantSnapshot] = field(default_factory=list)


def parse_creation_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def snapshot_age_days(created_at: datetime, now: datetime) -> int:
    hours = (now - created_at).total_seconds() / 3600
    return max(0, math.floor(hours / 24))


def dedupe_snapshots(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Keep the first snapshot seen for each name, preserving order."""
    seen: set[str] = set()
    unique = []
    for snapshot in snapshots:
        if snapshot.name in seen:
            continue
        seen.add(snapshot.name)
        unique.append(snapshot)
    return unique


def _created_before(first: Snapshot, second: Snapshot) -> bool:
    try:
        return parse_creation_timestamp(first.creation_timestamp) < parse_creation_timestamp(
            second.creation_timestamp
        )
    except ValueError:
        return first.creation_timestamp < second.creation_timestamp


def find_redundant_snapshots(snapshots: list[Snapshot]) -> list[Snapshot]:
    """
    Flag the older snapshot of every adjacent same-disk pair.

    Input must already be de-duplicated. Snapshots are stable-sorted by
    source disk id; each adjacent pair sharing a (non-empty) disk id flags
    its older member, or the second member when both timestamps are
    equal. A snapshot flagged once is skipped as the left side of the
    next pair.
    """
    ordered = sorted(snapshots, key=lambda s: s.source_disk_id)
    reported: set[str] = set()
    redundant: list[Snapshot] = []

    for current, following in zip(ordered, ordered[1:]):
        if current.name in reported:
            continue
        if not current.source_disk_id or current.source_disk_id != following.source_disk_id:
            continue
        older = current if _created_before(current, following) else following
        redundant.append(older)
        reported.add(older.name)

    return redundant


def summarize_snapshots(
    snapshots: Iterable[Snapshot],
    project: str = "",
    now: datetime | None = None,
    log: Any = None,
) -> SnapshotReport:
    log = log or logger
    now = now or datetime.now(timezone.utc)
    unique = dedupe_snapshots(snapshots)
    report = SnapshotReport()

    for snapshot in unique:
        disk = disk_name_from_url(snapshot.source_disk)
        summary = report.disks.setdefault(disk, DiskSnapshotSummary(disk=disk))
        summary.count += 1

        try:
            created_at = parse_creation_timestamp(snapshot.creation_timestamp)
        except ValueError as exc:
            log.error(
                "snapshot_timestamp_parse_failed",
                project=project,
                snapshot=snapshot.name,
                creation_timestamp=snapshot.creation_timestamp,
                error=str(exc),
            )
            continue

        age = snapshot_age_days(created_at, now)
        report.ages.append(SnapshotAge(disk=disk, snapshot=snapshot.name, age_days=age))
        if summary.newest_age_days is None or age < summary.newest_age_days:
            summary.newest_age_days = age

    report.redundant = [
        RedundantSnapshot(disk=disk_name_from_url(s.source_disk), snapshot=s.name)
        for s in find_redundant_snapshots(unique)
    ]
    return report


class SnapshotAggregator:
    """Lists a project's snapshots and summarizes them."""

    def __init__(self, compute: ComputeAPI, log: Any = None):
        self.compute = compute
        self.log = log or logger

    async def aggregate(self, project: str, now: datetime | None = None) -> SnapshotReport:
        # A failed listing propagates: the calling collector reports failure.
        snapshots = await self.compute.list_snapshots(project)
        report = summarize_snapshots(snapshots, project=project, now=now, log=self.log)
        self.log.debug(
            "snapshots_aggregated",
            project=project,
            listed=len(snapshots),
            disks=len(report.disks),
            redundant=len(report.redundant),
        )
        return report
