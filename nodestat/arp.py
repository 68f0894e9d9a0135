"""ARP table entry counts per device."""

from __future__ import annotations

from collections import Counter
from typing import Iterable, Iterator

from .helper import Settings
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector


def parse_arp_entries(stream: Iterable[str]) -> dict[str, int]:
    """Count the entries of an ARP table listing by device."""
    entries: Counter[str] = Counter()
    for line in stream:
        columns = line.split()
        if len(columns) < 6:
            raise ValueError("unexpected ARP table format")
        if columns[0] != "IP":
            entries[columns[-1]] += 1
    return dict(entries)


def get_arp_entries(settings: Settings) -> dict[str, int]:
    with open(settings.proc_file_path("net/arp"), encoding="utf-8") as handle:
        return parse_arp_entries(handle)


@register_collector("arp", True)
class ArpCollector(Collector):
    """Exposes the number of ARP entries by device."""

    ENTRIES = Desc(
        build_fq_name(NAMESPACE, "arp", "entries"),
        "ARP entries by device",
        ("device",),
    )

    def update(self) -> Iterator[Metric]:
        try:
            entries = get_arp_entries(self.settings)
        except (OSError, ValueError) as err:
            raise CollectorError(f"could not get ARP entries: {err}") from err
        for device, count in entries.items():
            yield new_const_metric(self.ENTRIES, ValueType.GAUGE, count, device)