from typing import Protocol

from idleness_exporter.modules.collection.domain.models import (
    DataprocCluster,
    Disk,
    Instance,
    Region,
    Snapshot,
)


class ComputeAPI(Protocol):
    """Read-only Compute Engine listings. Every call returns all pages."""

    async def list_regions(self, project: str) -> list[Region]: ...

    async def list_instances(self, project: str, zone: str) -> list[Instance]: ...

    async def list_disks(self, project: str, zone: str) -> list[Disk]: ...

    async def list_snapshots(self, project: str) -> list[Snapshot]: ...


class DataprocAPI(Protocol):
    async def list_clusters(self, project: str, region: str) -> list[DataprocCluster]: ...
