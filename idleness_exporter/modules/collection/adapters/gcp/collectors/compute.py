"""
Compute Engine collectors: VM running state and disk attachment.

All three share the regional fan-out; each asks it only for the resource
kinds it reports on.
"""

from idleness_exporter.modules.collection.adapters.gcp.fanout import (
    DISKS,
    INSTANCES,
    Inventory,
    RegionalFanOutFetcher,
)
from idleness_exporter.modules.collection.domain.collector import Collector
from idleness_exporter.modules.collection.domain.resolver import zone_from_url
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink

ZONE_LABELS = ("project", "zone", "name")

GCE_IS_MACHINE_RUNNING = MetricDescriptor(
    "gce_is_machine_running", "tells whether the VM is running", ZONE_LABELS
)
GCE_IS_DISK_ATTACHED = MetricDescriptor(
    "gce_is_disk_attached", "tells whether the Disk is attached to some machine", ZONE_LABELS
)
GCE_MACHINE_RUNNING = MetricDescriptor(
    "gce_machine_running", "tells whether the VM is running", ZONE_LABELS
)
GCE_DISK_ATTACHED = MetricDescriptor(
    "gce_disk_attached", "tells whether the Disk is attached to some machine", ZONE_LABELS
)


class ZonalResourceCollector(Collector):
    """Base for collectors fed by the regional fan-out."""

    KINDS: tuple[str, ...] = ()

    async def fetch_inventory(self) -> Inventory:
        fetcher = RegionalFanOutFetcher(self.context.compute, self.logger)
        return await fetcher.fetch(self.project, self.monitored_regions, kinds=self.KINDS)

    def emit_instances(
        self, sink: MetricSink, descriptor: MetricDescriptor, inventory: Inventory
    ) -> None:
        for instance in inventory.instances:
            sink.add(
                descriptor,
                1.0 if instance.is_running else 0.0,
                self.project,
                zone_from_url(instance.zone),
                instance.name,
            )

    def emit_disks(
        self, sink: MetricSink, descriptor: MetricDescriptor, inventory: Inventory
    ) -> None:
        for disk in inventory.disks:
            sink.add(
                descriptor,
                1.0 if disk.is_attached else 0.0,
                self.project,
                zone_from_url(disk.zone),
                disk.name,
            )


class GCEIsMachineRunningCollector(ZonalResourceCollector):
    METRICS = (GCE_IS_MACHINE_RUNNING,)
    KINDS = (INSTANCES,)

    async def collect(self, sink: MetricSink) -> None:
        inventory = await self.fetch_inventory()
        self.emit_instances(sink, GCE_IS_MACHINE_RUNNING, inventory)


class GCEIsDiskAttachedCollector(ZonalResourceCollector):
    METRICS = (GCE_IS_DISK_ATTACHED,)
    KINDS = (DISKS,)

    async def collect(self, sink: MetricSink) -> None:
        inventory = await self.fetch_inventory()
        self.emit_disks(sink, GCE_IS_DISK_ATTACHED, inventory)


class ComputeEngineCollector(ZonalResourceCollector):
    """Legacy combined collector: machines and disks from one fan-out."""

    METRICS = (GCE_MACHINE_RUNNING, GCE_DISK_ATTACHED)
    KINDS = (INSTANCES, DISKS)

    async def collect(self, sink: MetricSink) -> None:
        inventory = await self.fetch_inventory()
        self.emit_instances(sink, GCE_MACHINE_RUNNING, inventory)
        self.emit_disks(sink, GCE_DISK_ATTACHED, inventory)
