"""Disk snapshot collectors built on the snapshot aggregator."""

from idleness_exporter.modules.collection.domain.collector import Collector
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink
from idleness_exporter.modules.collection.domain.snapshots import (
    SnapshotAggregator,
    SnapshotReport,
)

GCE_DISK_SNAPSHOT_AGE_DAYS = MetricDescriptor(
    "gce_disk_snapshot_age_days",
    "tells how many days the snapshot has",
    ("project", "disk", "snapshot"),
)
GCE_DISK_SNAPSHOT_AMOUNT = MetricDescriptor(
    "gce_disk_snapshot_amount",
    "tells how many snapshots the Disk has",
    ("project", "disk"),
)
GCE_IS_OLD_SNAPSHOT = MetricDescriptor(
    "gce_is_old_snapshot",
    "tells whether the Disk has unnecessary old snapshots",
    ("project", "disk", "snapshot"),
)


class SnapshotCollector(Collector):
    async def aggregate(self) -> SnapshotReport:
        return await SnapshotAggregator(self.context.compute, self.logger).aggregate(self.project)

    def emit_ages(self, sink: MetricSink, report: SnapshotReport) -> None:
        for age in report.ages:
            sink.add(GCE_DISK_SNAPSHOT_AGE_DAYS, age.age_days, self.project, age.disk, age.snapshot)

    def emit_amounts(self, sink: MetricSink, report: SnapshotReport) -> None:
        for summary in report.disks.values():
            sink.add(GCE_DISK_SNAPSHOT_AMOUNT, summary.count, self.project, summary.disk)


class GCEDiskSnapshotCollector(SnapshotCollector):
    METRICS = (GCE_DISK_SNAPSHOT_AGE_DAYS, GCE_DISK_SNAPSHOT_AMOUNT)

    async def collect(self, sink: MetricSink) -> None:
        report = await self.aggregate()
        self.emit_ages(sink, report)
        self.emit_amounts(sink, report)


class GCEDiskSnapshotAgeDaysCollector(SnapshotCollector):
    METRICS = (GCE_DISK_SNAPSHOT_AGE_DAYS,)

    async def collect(self, sink: MetricSink) -> None:
        self.emit_ages(sink, await self.aggregate())


class GCEDiskSnapshotAmountCollector(SnapshotCollector):
    METRICS = (GCE_DISK_SNAPSHOT_AMOUNT,)

    async def collect(self, sink: MetricSink) -> None:
        self.emit_amounts(sink, await self.aggregate())


class GCEIsOldSnapshotCollector(SnapshotCollector):
    """Emits 1 for every snapshot the pairwise scan flags as redundant."""

    METRICS = (GCE_IS_OLD_SNAPSHOT,)

    async def collect(self, sink: MetricSink) -> None:
        report = await self.aggregate()
        for flagged in report.redundant:
            sink.add(GCE_IS_OLD_SNAPSHOT, 1.0, self.project, flagged.disk, flagged.snapshot)
