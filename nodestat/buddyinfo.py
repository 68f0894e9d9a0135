"""Free memory block counts by node, zone and block size."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator

from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

log = logging.getLogger(__name__)

BUDDYINFO_SUBSYSTEM = "buddyinfo"


@dataclass(frozen=True)
class BuddyInfoEntry:
    """Free block counts of one memory zone, indexed by block order."""

    node: str
    zone: str
    sizes: tuple[float, ...]


def parse_buddyinfo(stream: Iterable[str]) -> list[BuddyInfoEntry]:
    """Parse a buddyinfo listing into one entry per node and zone."""
    entries: list[BuddyInfoEntry] = []
    bucket_count: int | None = None
    for line in stream:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError("invalid number of fields when parsing buddyinfo")
        node = parts[1].rstrip(",")
        zone = parts[3].rstrip(",")
        size_count = len(parts) - 4
        if bucket_count is None:
            bucket_count = size_count
        elif bucket_count != size_count:
            raise ValueError("mismatch in number of buddyinfo buckets")
        try:
            sizes = tuple(float(raw) for raw in parts[4:])
        except ValueError as err:
            raise ValueError(f"could not parse buddyinfo line {line.strip()!r}: {err}") from err
        entries.append(BuddyInfoEntry(node, zone, sizes))
    return entries


@register_collector("buddyinfo", False)
class BuddyinfoCollector(Collector):
    """Exposes free block counts from the buddy allocator."""

    BLOCKS = Desc(
        build_fq_name(NAMESPACE, BUDDYINFO_SUBSYSTEM, "blocks"),
        "Count of free blocks according to size.",
        ("node", "zone", "size"),
    )

    def update(self) -> Iterator[Metric]:
        try:
            with open(self.settings.proc_file_path("buddyinfo"), encoding="utf-8") as handle:
                entries = parse_buddyinfo(handle)
        except (OSError, ValueError) as err:
            raise CollectorError(f"couldn't get buddyinfo: {err}") from err
        log.debug("Set node_buddy: %r", entries)
        for entry in entries:
            for size, value in enumerate(entry.sizes):
                yield new_const_metric(
                    self.BLOCKS, ValueType.GAUGE, value, entry.node, entry.zone, str(size)
                )