import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from idleness_exporter.modules.collection.domain.ports import ComputeAPI, DataprocAPI
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink


@dataclass(frozen=True)
class CollectorContext:
    """What every collector is constructed with: scope plus shared API clients."""

    project: str
    monitored_regions: tuple[str, ...]
    compute: ComputeAPI
    dataproc: DataprocAPI


class Collector(ABC):
    """
    Abstract base class for idleness collectors.
    Each collector fetches one category of resource and emits the gauges
    listed in METRICS onto the scrape's sink.
    """

    METRICS: ClassVar[tuple[MetricDescriptor, ...]] = ()

    def __init__(self, logger: Any, context: CollectorContext):
        self.logger = logger
        self.context = context
        self.project = context.project
        self.monitored_regions = context.monitored_regions
        # Overlapping scrapes against this instance run one at a time.
        self._lock = asyncio.Lock()

    def list_metrics(self) -> list[str]:
        return [descriptor.name for descriptor in self.METRICS]

    async def update(self, sink: MetricSink) -> None:
        """Run one collection cycle. Raises if the collector could not collect."""
        async with self._lock:
            await self.collect(sink)

    @abstractmethod
    async def collect(self, sink: MetricSink) -> None:
        raise NotImplementedError


CollectorFactory = Callable[[Any, CollectorContext], Collector]
