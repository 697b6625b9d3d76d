import asyncio
from unittest.mock import MagicMock

import pytest

from idleness_exporter.modules.collection.domain.collector import Collector, CollectorContext
from idleness_exporter.modules.collection.domain.registry import (
    AggregateCollector,
    CollectorRegistry,
)
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink
from idleness_exporter.shared.core.exceptions import (
    CollectorRegistrationError,
    ConfigurationError,
)
from tests.factories import FakeCompute, FakeDataproc

UP = MetricDescriptor("probe_up", "probe", ("project",))


class StaticCollector(Collector):
    METRICS = (UP,)

    async def collect(self, sink: MetricSink) -> None:
        await asyncio.sleep(0)
        sink.add(UP, 1, self.project)


class BrokenCollector(Collector):
    METRICS = (MetricDescriptor("broken_metric", "never emitted", ("project",)),)

    async def collect(self, sink: MetricSink) -> None:
        raise RuntimeError("upstream exploded")


class SlowCollector(Collector):
    def __init__(self, logger, context):
        super().__init__(logger, context)
        self.in_flight = 0
        self.max_in_flight = 0

    async def collect(self, sink: MetricSink) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1


@pytest.fixture
def context():
    return CollectorContext(
        project="p",
        monitored_regions=("us-east1",),
        compute=FakeCompute(),
        dataproc=FakeDataproc(),
    )


def _samples(sink: MetricSink) -> dict:
    return {(s.name, s.labels): s.value for s in sink.samples}


def test_duplicate_registration_is_rejected():
    registry = CollectorRegistry()
    registry.register("static", True, StaticCollector)

    with pytest.raises(CollectorRegistrationError, match="already registered"):
        registry.register("static", False, StaticCollector)


def test_frozen_registry_rejects_changes():
    registry = CollectorRegistry()
    registry.register("static", True, StaticCollector)
    registry.freeze()

    assert registry.frozen
    with pytest.raises(CollectorRegistrationError):
        registry.register("other", True, StaticCollector)
    with pytest.raises(CollectorRegistrationError):
        registry.set_enabled("static", False)


def test_disable_defaults_then_explicit_enable():
    registry = CollectorRegistry()
    registry.register("a", True, StaticCollector)
    registry.register("b", True, StaticCollector)
    registry.register("c", False, StaticCollector)

    registry.configure(disable_defaults=True, enabled=("b",))

    assert [registry.is_enabled(name) for name in registry.names] == [False, True, False]


def test_explicit_disable_overrides_default():
    registry = CollectorRegistry()
    registry.register("a", True, StaticCollector)
    registry.register("c", False, StaticCollector)

    registry.configure(enabled=("c",), disabled=("a",))

    assert not registry.is_enabled("a")
    assert registry.is_enabled("c")


def test_unknown_collector_name_is_a_configuration_error():
    registry = CollectorRegistry()
    registry.register("a", True, StaticCollector)

    with pytest.raises(ConfigurationError, match="unknown collector"):
        registry.set_enabled("nope", True)


def test_instantiate_enabled_builds_only_enabled(context):
    registry = CollectorRegistry()
    registry.register("on", True, StaticCollector)
    registry.register("off", False, StaticCollector)
    base_logger = MagicMock()

    collectors = registry.instantiate_enabled(context, base_logger=base_logger)

    assert list(collectors) == ["on"]
    assert collectors["on"].project == "p"
    assert collectors["on"].list_metrics() == ["probe_up"]
    base_logger.bind.assert_called_once_with(collector="on")


def test_failing_factory_aborts_instantiation(context):
    def factory(logger, ctx):
        raise RuntimeError("no client")

    registry = CollectorRegistry()
    registry.register("bad", True, factory)

    with pytest.raises(ConfigurationError, match="couldn't create collector 'bad'"):
        registry.instantiate_enabled(context)


@pytest.mark.asyncio
async def test_failing_collector_does_not_block_others(context):
    aggregate = AggregateCollector(
        {"static": StaticCollector(MagicMock(), context), "broken": BrokenCollector(MagicMock(), context)}
    )
    sink = MetricSink()

    results = await aggregate.collect(sink)

    assert results == {"static": True, "broken": False}
    samples = _samples(sink)
    assert samples[("probe_up", (("project", "p"),))] == 1.0
    assert samples[("gcp_idleness_exporter_scrape_collector_success", (("collector", "static"),))] == 1.0
    assert samples[("gcp_idleness_exporter_scrape_collector_success", (("collector", "broken"),))] == 0.0
    assert "broken_metric" not in sink.metric_names()
    assert ("gcp_idleness_exporter_scrape_collector_duration_seconds", (("collector", "broken"),)) in samples


@pytest.mark.asyncio
async def test_overlapping_updates_on_one_collector_are_serialized(context):
    collector = SlowCollector(MagicMock(), context)

    await asyncio.gather(*(collector.update(MetricSink()) for _ in range(4)))

    assert collector.max_in_flight == 1


@pytest.mark.asyncio
async def test_distinct_collectors_run_concurrently(context):
    first = SlowCollector(MagicMock(), context)
    second = SlowCollector(MagicMock(), context)
    started = asyncio.get_running_loop().time()

    await AggregateCollector({"first": first, "second": second}).collect(MetricSink())

    assert asyncio.get_running_loop().time() - started < 0.05
