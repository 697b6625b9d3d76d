"""
Collector registry and the aggregate collector built from it.

The registry is an explicit object created once at startup: collectors
are registered, enable/disable flags are applied, then the registry is
frozen and only read from while serving.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import structlog

from idleness_exporter.modules.collection.domain.collector import (
    Collector,
    CollectorContext,
    CollectorFactory,
)
from idleness_exporter.modules.collection.domain.sink import MetricDescriptor, MetricSink
from idleness_exporter.shared.core.exceptions import (
    CollectorRegistrationError,
    ConfigurationError,
)
from idleness_exporter.shared.core.ops_metrics import COLLECTOR_FAILURES_TOTAL

logger = structlog.get_logger()

SCRAPE_COLLECTOR_DURATION = MetricDescriptor(
    "gcp_idleness_exporter_scrape_collector_duration_seconds",
    "gcp_idleness_exporter: Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_COLLECTOR_SUCCESS = MetricDescriptor(
    "gcp_idleness_exporter_scrape_collector_success",
    "gcp_idleness_exporter: Whether a collector succeeded.",
    ("collector",),
)


@dataclass(frozen=True)
class CollectorRegistration:
    name: str
    default_enabled: bool
    factory: CollectorFactory


class CollectorRegistry:
    def __init__(self) -> None:
        self._registrations: dict[str, CollectorRegistration] = {}
        self._enabled: dict[str, bool] = {}
        self._frozen = False

    def register(self, name: str, default_enabled: bool, factory: CollectorFactory) -> None:
        if self._frozen:
            raise CollectorRegistrationError(
                f"cannot register collector {name!r}: registry is frozen"
            )
        if name in self._registrations:
            raise CollectorRegistrationError(f"collector {name!r} is already registered")
        self._registrations[name] = CollectorRegistration(name, default_enabled, factory)
        self._enabled[name] = default_enabled

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def names(self) -> list[str]:
        return list(self._registrations)

    def is_enabled(self, name: str) -> bool:
        self._require_known(name)
        return self._enabled[name]

    def disable_defaults(self) -> None:
        """Set every collector to disabled; explicit flags may re-enable some."""
        self._require_mutable()
        for name in self._enabled:
            self._enabled[name] = False

    def set_enabled(self, name: str, enabled: bool) -> None:
        self._require_mutable()
        self._require_known(name)
        self._enabled[name] = enabled

    def configure(
        self,
        disable_defaults: bool = False,
        enabled: tuple[str, ...] = (),
        disabled: tuple[str, ...] = (),
    ) -> None:
        """Apply the global switch first, then per-collector flags."""
        if disable_defaults:
            self.disable_defaults()
        for name in enabled:
            self.set_enabled(name, True)
        for name in disabled:
            self.set_enabled(name, False)

    def instantiate_enabled(
        self, context: CollectorContext, base_logger: Any = None
    ) -> dict[str, Collector]:
        """Build every enabled collector. A failing factory aborts startup."""
        base_logger = base_logger or logger
        collectors: dict[str, Collector] = {}
        for name, registration in self._registrations.items():
            if not self._enabled[name]:
                continue
            try:
                collectors[name] = registration.factory(
                    base_logger.bind(collector=name), context
                )
            except Exception as exc:
                logger.error("collector_instantiation_failed", collector=name, error=str(exc))
                raise ConfigurationError(
                    f"couldn't create collector {name!r}", details={"error": str(exc)}
                ) from exc
        return collectors

    def _require_known(self, name: str) -> None:
        if name not in self._registrations:
            raise ConfigurationError(
                f"unknown collector {name!r}", details={"known": sorted(self._registrations)}
            )

    def _require_mutable(self) -> None:
        if self._frozen:
            raise CollectorRegistrationError("registry is frozen")


class AggregateCollector:
    """
    Runs every instantiated collector once per scrape.

    Collectors run concurrently. A collector that raises is logged and
    reported through scrape_collector_success=0; the others still emit.
    """

    def __init__(self, collectors: dict[str, Collector]):
        self.collectors = collectors

    async def collect(self, sink: MetricSink) -> dict[str, bool]:
        results = await asyncio.gather(
            *(self._run(name, collector, sink) for name, collector in self.collectors.items())
        )
        return dict(results)

    async def _run(self, name: str, collector: Collector, sink: MetricSink) -> tuple[str, bool]:
        start = time.perf_counter()
        try:
            await collector.update(sink)
            success = True
        except Exception as exc:
            COLLECTOR_FAILURES_TOTAL.labels(collector=name).inc()
            logger.error(
                "collector_update_failed",
                collector=name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            success = False

        duration = time.perf_counter() - start
        logger.debug("collector_update_finished", collector=name, duration_seconds=round(duration, 3))
        sink.add(SCRAPE_COLLECTOR_DURATION, duration, name)
        sink.add(SCRAPE_COLLECTOR_SUCCESS, 1.0 if success else 0.0, name)
        return name, success
