"""Assembles the enabled collectors into one node collector."""

from __future__ import annotations

# Importing the collector modules registers them.
from . import (  # noqa: F401
    arp,
    bonding,
    buddyinfo,
    cpu,
    diskstats,
    drbd,
    edac,
    filesystem,
    hwmon,
    infiniband,
    interrupts,
    kernel,
)
from .helper import Settings
from .registry import REGISTRY, Collector, NodeCollector


def available_collectors() -> list[str]:
    """Return the names of all registered collectors, sorted."""
    return sorted(REGISTRY)


def new_node_collector(settings: Settings | None, *args: str) -> NodeCollector:
    """Build a node collector from enabled collectors, optionally filtered by name."""
    settings = settings if settings is not None else Settings()
    filters: set[str] = set()
    for name in args:
        if name not in REGISTRY:
            raise ValueError(f"missing collector: {name}")
        if not REGISTRY.is_enabled(name):
            raise ValueError(f"disabled collector: {name}")
        filters.add(name)

    collectors: dict[str, Collector] = {}
    for name in REGISTRY:
        if not REGISTRY.is_enabled(name):
            continue
        collector = REGISTRY[name](settings)
        if not filters or name in filters:
            collectors[name] = collector
    return NodeCollector(collectors)