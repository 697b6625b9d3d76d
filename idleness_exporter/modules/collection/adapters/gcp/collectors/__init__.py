"""
Built-in idleness collectors.

Registration is explicit: call register_default_collectors() on a fresh
registry at startup.
"""

from idleness_exporter.modules.collection.adapters.gcp.collectors.compute import (
    ComputeEngineCollector,
    GCEIsDiskAttachedCollector,
    GCEIsMachineRunningCollector,
)
from idleness_exporter.modules.collection.adapters.gcp.collectors.dataproc import (
    DataprocIsClusterRunningCollector,
)
from idleness_exporter.modules.collection.adapters.gcp.collectors.snapshots import (
    GCEDiskSnapshotAgeDaysCollector,
    GCEDiskSnapshotAmountCollector,
    GCEDiskSnapshotCollector,
    GCEIsOldSnapshotCollector,
)
from idleness_exporter.modules.collection.domain.registry import CollectorRegistry

# (name, enabled by default, collector class)
DEFAULT_COLLECTORS = (
    ("gce_is_machine_running", True, GCEIsMachineRunningCollector),
    ("gce_is_disk_attached", True, GCEIsDiskAttachedCollector),
    ("gce_disk_snapshot", True, GCEDiskSnapshotCollector),
    ("gce_is_old_snapshot", True, GCEIsOldSnapshotCollector),
    ("dataproc_is_cluster_running", True, DataprocIsClusterRunningCollector),
    ("compute_engine", False, ComputeEngineCollector),
    ("gce_disk_snapshot_age_days", False, GCEDiskSnapshotAgeDaysCollector),
    ("gce_disk_snapshot_amount", False, GCEDiskSnapshotAmountCollector),
)

DEFAULT_COLLECTOR_NAMES = tuple(name for name, _, _ in DEFAULT_COLLECTORS)


def register_default_collectors(registry: CollectorRegistry) -> CollectorRegistry:
    for name, default_enabled, collector_cls in DEFAULT_COLLECTORS:
        registry.register(name, default_enabled, collector_cls)
    return registry


__all__ = [
    "DEFAULT_COLLECTORS",
    "DEFAULT_COLLECTOR_NAMES",
    "register_default_collectors",
]
