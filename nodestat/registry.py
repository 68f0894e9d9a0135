"""Collector interface, registration and the node-wide scrape wrapper."""

from __future__ import annotations

import abc
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Iterator, Mapping

from .helper import Settings
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric

log = logging.getLogger(__name__)

SCRAPE_DURATION_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_duration_seconds"),
    "Duration of a collector scrape.",
    ("collector",),
)
SCRAPE_SUCCESS_DESC = Desc(
    build_fq_name(NAMESPACE, "scrape", "collector_success"),
    "Whether a collector succeeded.",
    ("collector",),
)


class CollectorError(Exception):
    """Raised when a collector cannot gather its metrics."""


class Collector(abc.ABC):
    """Base class of all collectors."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings if settings is not None else Settings()

    @abc.abstractmethod
    def update(self) -> Iterable[Metric]:
        """Gather fresh metrics."""


Factory = Callable[[Settings], Collector]


class CollectorRegistry:
    """Known collectors, their factories and whether each is enabled."""

    def __init__(self) -> None:
        self._factories: dict[str, Factory] = {}
        self._enabled: dict[str, bool] = {}

    def register(self, name: str, default_enabled: bool, factory: Factory) -> None:
        if name in self._factories:
            raise ValueError(f"collector already registered: {name}")
        self._factories[name] = factory
        self._enabled[name] = bool(default_enabled)

    def set_enabled(self, name: str, enabled: bool) -> None:
        if name not in self._factories:
            raise KeyError(f"missing collector: {name}")
        self._enabled[name] = bool(enabled)

    def is_enabled(self, name: str) -> bool:
        try:
            return self._enabled[name]
        except KeyError:
            raise KeyError(f"missing collector: {name}") from None

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._factories))

    def __len__(self) -> int:
        return len(self._factories)

    def __getitem__(self, name: str) -> Factory:
        try:
            return self._factories[name]
        except KeyError:
            raise KeyError(f"missing collector: {name}") from None


REGISTRY = CollectorRegistry()


def register_collector(name: str, default_enabled: bool) -> Callable[[Factory], Factory]:
    """Class decorator adding a collector to the default registry."""

    def decorator(factory: Factory) -> Factory:
        REGISTRY.register(name, default_enabled, factory)
        return factory

    return decorator


def execute(name: str, collector: Collector) -> list[Metric]:
    """Run one collector, appending its scrape duration and success metrics."""
    metrics: list[Metric] = []
    begin = time.perf_counter()
    try:
        for metric in collector.update():
            metrics.append(metric)
    except Exception as err:  # any collector failure is reported, not raised
        duration = time.perf_counter() - begin
        log.error("%s collector failed after %fs: %s", name, duration, err)
        success = 0.0
    else:
        duration = time.perf_counter() - begin
        log.debug("OK: %s collector succeeded after %fs.", name, duration)
        success = 1.0
    metrics.append(new_const_metric(SCRAPE_DURATION_DESC, ValueType.GAUGE, duration, name))
    metrics.append(new_const_metric(SCRAPE_SUCCESS_DESC, ValueType.GAUGE, success, name))
    return metrics


class NodeCollector:
    """Runs a set of named collectors concurrently."""

    def __init__(self, collectors: Mapping[str, Collector]) -> None:
        self.collectors = dict(collectors)

    def describe(self) -> Iterator[Desc]:
        yield SCRAPE_DURATION_DESC
        yield SCRAPE_SUCCESS_DESC

    def collect(self) -> Iterator[Metric]:
        if not self.collectors:
            return
        with ThreadPoolExecutor(max_workers=len(self.collectors)) as pool:
            futures = [
                pool.submit(execute, name, collector)
                for name, collector in self.collectors.items()
            ]
            for future in futures:
                yield from future.result()