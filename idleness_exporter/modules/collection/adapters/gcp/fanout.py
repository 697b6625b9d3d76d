"""
Regional fan-out over Compute Engine zones.

regions (one listing) -> monitored regions (one task each) -> zones (one
task each) -> per-kind list calls. Every task returns its own partial
inventory; the partials are merged by a single reader after the gather
barrier, so no task ever writes to shared state.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from idleness_exporter.modules.collection.domain.models import Disk, Instance, Region
from idleness_exporter.modules.collection.domain.ports import ComputeAPI
from idleness_exporter.modules.collection.domain.resolver import region_of_zone, zone_from_url
from idleness_exporter.shared.core.exceptions import ExternalAPIError

logger = structlog.get_logger()

INSTANCES = "instances"
DISKS = "disks"
RESOURCE_KINDS = (INSTANCES, DISKS)


@dataclass
class Inventory:
    """Merged zone listings, de-duplicated by provider identity."""

    _instances: dict[str, Instance] = field(default_factory=dict)
    _disks: dict[str, Disk] = field(default_factory=dict)

    @property
    def instances(self) -> list[Instance]:
        return list(self._instances.values())

    @property
    def disks(self) -> list[Disk]:
        return list(self._disks.values())

    def add_instances(self, instances: Iterable[Instance]) -> None:
        for instance in instances:
            self._instances.setdefault(instance.identity(), instance)

    def add_disks(self, disks: Iterable[Disk]) -> None:
        for disk in disks:
            self._disks.setdefault(disk.identity(), disk)

    def merge(self, other: "Inventory") -> None:
        self.add_instances(other.instances)
        self.add_disks(other.disks)


class RegionalFanOutFetcher:
    def __init__(self, compute: ComputeAPI, log: Any = None):
        self.compute = compute
        self.log = log or logger

    async def fetch(
        self,
        project: str,
        monitored_regions: Iterable[str],
        kinds: Iterable[str] = RESOURCE_KINDS,
    ) -> Inventory:
        """
        List the requested resource kinds in every zone of every monitored region.

        A failing region listing or zone call is logged; whatever failed
        contributes nothing to the returned inventory.
        """
        kinds = tuple(dict.fromkeys(kinds))
        unknown = set(kinds) - set(RESOURCE_KINDS)
        if unknown:
            raise ValueError(f"unsupported resource kinds: {sorted(unknown)}")

        monitored = set(monitored_regions)
        try:
            regions = await self.compute.list_regions(project)
        except ExternalAPIError as exc:
            self.log.error("gcp_region_list_failed", project=project, error=str(exc))
            return Inventory()

        zones_by_region = self._zones_by_region(
            [region for region in regions if region.name in monitored]
        )
        partials = await asyncio.gather(
            *(
                self._fetch_region(project, region, zones, kinds)
                for region, zones in zones_by_region.items()
            )
        )

        inventory = Inventory()
        for region_partials in partials:
            for partial in region_partials:
                inventory.merge(partial)

        self.log.debug(
            "gcp_fanout_completed",
            project=project,
            regions=len(zones_by_region),
            zones=sum(len(zones) for zones in zones_by_region.values()),
            instances=len(inventory.instances),
            disks=len(inventory.disks),
        )
        return inventory

    def _zones_by_region(self, regions: list[Region]) -> dict[str, list[str]]:
        seen: set[str] = set()
        result: dict[str, list[str]] = {}
        for region in regions:
            zones = result.setdefault(region.name, [])
            for zone_url in region.zones:
                zone = zone_from_url(zone_url)
                if not zone or zone in seen:
                    continue
                if region_of_zone(zone) != region.name:
                    self.log.warning(
                        "gcp_zone_outside_region_skipped", region=region.name, zone=zone
                    )
                    continue
                seen.add(zone)
                zones.append(zone)
        return result

    async def _fetch_region(
        self, project: str, region: str, zones: list[str], kinds: tuple[str, ...]
    ) -> list[Inventory]:
        return list(
            await asyncio.gather(*(self._fetch_zone(project, zone, kinds) for zone in zones))
        )

    async def _fetch_zone(self, project: str, zone: str, kinds: tuple[str, ...]) -> Inventory:
        listers = {INSTANCES: self.compute.list_instances, DISKS: self.compute.list_disks}
        results = await asyncio.gather(
            *(listers[kind](project, zone) for kind in kinds), return_exceptions=True
        )

        partial = Inventory()
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self.log.error(
                    "gcp_zone_list_failed",
                    project=project,
                    zone=zone,
                    kind=kind,
                    error=str(result),
                )
                continue
            if kind == INSTANCES:
                partial.add_instances(result)
            else:
                partial.add_disks(result)
        return partial
