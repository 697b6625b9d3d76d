"""
Per-scrape metric accumulation and Prometheus text rendering.

Collectors only ever append to a MetricSink; the HTTP layer renders it
once every collector has finished.
"""

from dataclasses import dataclass

import structlog
from prometheus_client import CollectorRegistry as PrometheusRegistry
from prometheus_client import generate_latest
from prometheus_client.core import GaugeMetricFamily

logger = structlog.get_logger()


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text and label names of one gauge family."""

    name: str
    documentation: str
    label_names: tuple[str, ...]


@dataclass(frozen=True)
class MetricSample:
    name: str
    labels: tuple[tuple[str, str], ...]
    value: float


class MetricSink:
    """
    Append-only collection of gauge samples.

    A sample whose name and label values were already recorded in this
    scrape is dropped (first one wins), so overlapping collectors cannot
    produce duplicate series.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, MetricDescriptor] = {}
        self._series: dict[str, dict[tuple[str, ...], float]] = {}

    def add(self, descriptor: MetricDescriptor, value: float, *label_values: str) -> None:
        if len(label_values) != len(descriptor.label_names):
            raise ValueError(
                f"{descriptor.name} expects labels {descriptor.label_names}, "
                f"got {len(label_values)} values"
            )
        known = self._descriptors.setdefault(descriptor.name, descriptor)
        if known.label_names != descriptor.label_names:
            raise ValueError(f"conflicting label names for metric {descriptor.name}")

        series = self._series.setdefault(descriptor.name, {})
        key = tuple(str(v) for v in label_values)
        if key in series:
            logger.debug("metric_sample_duplicate_dropped", metric=descriptor.name, labels=key)
            return
        series[key] = float(value)

    @property
    def samples(self) -> list[MetricSample]:
        result = []
        for name, series in self._series.items():
            label_names = self._descriptors[name].label_names
            for key, value in series.items():
                result.append(MetricSample(name, tuple(zip(label_names, key)), value))
        return result

    def metric_names(self) -> set[str]:
        return set(self._series)

    def __len__(self) -> int:
        return sum(len(series) for series in self._series.values())

    def families(self) -> list[GaugeMetricFamily]:
        families = []
        for name, series in self._series.items():
            descriptor = self._descriptors[name]
            family = GaugeMetricFamily(
                name, descriptor.documentation, labels=list(descriptor.label_names)
            )
            for key, value in series.items():
                family.add_metric(list(key), value)
            families.append(family)
        return families

    def render(self) -> bytes:
        """Prometheus text exposition of everything recorded so far."""
        registry = PrometheusRegistry(auto_describe=False)
        registry.register(_SinkCollector(self))
        return generate_latest(registry)


class _SinkCollector:
    def __init__(self, sink: MetricSink):
        self._sink = sink

    def collect(self) -> list[GaugeMetricFamily]:
        return self._sink.families()
