"""In-memory stand-ins for the Compute Engine and Dataproc clients."""

import asyncio
from collections import Counter

from idleness_exporter.modules.collection.domain.models import (
    DataprocCluster,
    Disk,
    Instance,
    Region,
    Snapshot,
)
from idleness_exporter.shared.core.exceptions import ExternalAPIError

API = "https://www.googleapis.com/compute/v1/projects/test-project"


def zone_url(zone: str) -> str:
    return f"{API}/zones/{zone}"


def disk_url(zone: str, disk: str) -> str:
    return f"{API}/zones/{zone}/disks/{disk}"


def make_region(name: str, zones: list[str]) -> Region:
    return Region(name=name, zones=[zone_url(zone) for zone in zones], status="UP")


def make_instance(name: str, zone: str, status: str = "RUNNING", id: str | None = None) -> Instance:
    return Instance(name=name, zone=zone_url(zone), status=status, id=id or f"id-{zone}-{name}")


def make_disk(name: str, zone: str, users: list[str] | None = None, id: str | None = None) -> Disk:
    return Disk(name=name, zone=zone_url(zone), users=users or [], id=id or f"id-{zone}-{name}")


def make_snapshot(
    name: str, disk: str, created: str, disk_id: str | None = None, zone: str = "us-east1-b"
) -> Snapshot:
    return Snapshot(
        name=name,
        source_disk=disk_url(zone, disk),
        source_disk_id=disk_id if disk_id is not None else f"disk-id-{disk}",
        creation_timestamp=created,
    )


def make_cluster(name: str, state: str = "RUNNING", zone_uri: str = "") -> DataprocCluster:
    return DataprocCluster.model_validate(
        {
            "clusterName": name,
            "status": {"state": state},
            "config": {"gceClusterConfig": {"zoneUri": zone_uri}},
        }
    )


class FakeCompute:
    """ComputeAPI double. Records every call; zones in `failing_zones` raise."""

    def __init__(self):
        self.regions: list[Region] = []
        self.instances: dict[str, list[Instance]] = {}
        self.disks: dict[str, list[Disk]] = {}
        self.snapshots: list[Snapshot] = []
        self.failing_zones: set[str] = set()
        self.fail_regions = False
        self.fail_snapshots = False
        self.calls: Counter = Counter()

    async def list_regions(self, project: str) -> list[Region]:
        await asyncio.sleep(0)
        self.calls[("regions", project)] += 1
        if self.fail_regions:
            raise ExternalAPIError("regions unavailable", upstream_status=500)
        return list(self.regions)

    async def list_instances(self, project: str, zone: str) -> list[Instance]:
        await asyncio.sleep(0)
        self.calls[("instances", zone)] += 1
        if zone in self.failing_zones:
            raise ExternalAPIError(f"instances unavailable in {zone}", upstream_status=503)
        return list(self.instances.get(zone, []))

    async def list_disks(self, project: str, zone: str) -> list[Disk]:
        await asyncio.sleep(0)
        self.calls[("disks", zone)] += 1
        if zone in self.failing_zones:
            raise ExternalAPIError(f"disks unavailable in {zone}", upstream_status=503)
        return list(self.disks.get(zone, []))

    async def list_snapshots(self, project: str) -> list[Snapshot]:
        await asyncio.sleep(0)
        self.calls[("snapshots", project)] += 1
        if self.fail_snapshots:
            raise ExternalAPIError("snapshots unavailable", upstream_status=500)
        return list(self.snapshots)


class FakeDataproc:
    def __init__(self):
        self.clusters: dict[str, list[DataprocCluster]] = {}
        self.failing_regions: set[str] = set()
        self.calls: Counter = Counter()

    async def list_clusters(self, project: str, region: str) -> list[DataprocCluster]:
        await asyncio.sleep(0)
        self.calls[region] += 1
        if region in self.failing_regions:
            raise ExternalAPIError(f"clusters unavailable in {region}", upstream_status=500)
        return list(self.clusters.get(region, []))
