import asyncio

from idleness_exporter.modules.collection.domain.collector import Collector
from idleness_exporter.modules.collection.domain.models import DataprocCluster
from idleness_exporter.modules.collection.domain.resolver import zone_from_url
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink

DATAPROC_IS_CLUSTER_RUNNING = MetricDescriptor(
    "dataproc_is_cluster_running",
    "tells whether the Dataproc cluster is running",
    ("project", "region", "zone", "name"),
)


class DataprocIsClusterRunningCollector(Collector):
    METRICS = (DATAPROC_IS_CLUSTER_RUNNING,)

    async def collect(self, sink: MetricSink) -> None:
        regions = list(dict.fromkeys(self.monitored_regions))
        results = await asyncio.gather(*(self._list_region(region) for region in regions))

        for region, clusters in zip(regions, results):
            for cluster in clusters:
                # GKE-backed clusters carry no zone.
                zone = zone_from_url(cluster.config.gce_cluster_config.zone_uri) or region
                sink.add(
                    DATAPROC_IS_CLUSTER_RUNNING,
                    1.0 if cluster.is_running else 0.0,
                    self.project,
                    region,
                    zone,
                    cluster.cluster_name,
                )

    async def _list_region(self, region: str) -> list[DataprocCluster]:
        try:
            return await self.context.dataproc.list_clusters(self.project, region)
        except Exception as exc:
            self.logger.error(
                "dataproc_cluster_list_failed",
                project=self.project,
                region=region,
                error=str(exc),
            )
            return []
