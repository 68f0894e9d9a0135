"""Block device I/O statistics."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helper import Settings
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

log = logging.getLogger(__name__)

DISK_SUBSYSTEM = "disk"
DISK_SECTOR_SIZE = 512
DISKSTATS_FILENAME = "diskstats"
DEFAULT_IGNORED_DEVICES = r"^(ram|loop|fd|(h|s|v|xv)d[a-z]|nvme\d+n\d+p)\d+$"

DISK_LABEL_NAMES = ("device",)


def _disk_desc(name: str, help_text: str) -> Desc:
    return Desc(build_fq_name(NAMESPACE, DISK_SUBSYSTEM, name), help_text, DISK_LABEL_NAMES)


READS_COMPLETED_DESC = _disk_desc(
    "reads_completed_total", "The total number of reads completed successfully."
)
READ_BYTES_DESC = _disk_desc("read_bytes_total", "The total number of bytes read successfully.")
WRITES_COMPLETED_DESC = _disk_desc(
    "writes_completed_total", "The total number of writes completed successfully."
)
WRITTEN_BYTES_DESC = _disk_desc(
    "written_bytes_total", "The total number of bytes written successfully."
)
IO_TIME_SECONDS_DESC = _disk_desc("io_time_seconds_total", "Total seconds spent doing I/Os.")
READ_TIME_SECONDS_DESC = _disk_desc(
    "read_time_seconds_total", "The total number of seconds spent by all reads."
)
WRITE_TIME_SECONDS_DESC = _disk_desc(
    "write_time_seconds_total", "This is the total number of seconds spent by all writes."
)


@dataclass(frozen=True)
class TypedFactorDesc:
    """A descriptor with a value type and a scaling factor (0 means none)."""

    desc: Desc
    value_type: ValueType
    factor: float = 0.0

    def metric(self, value: float, *args: str) -> Metric:
        if self.factor != 0:
            value *= self.factor
        return new_const_metric(self.desc, self.value_type, value, *args)


_COUNTER = ValueType.COUNTER

# Field order of a diskstats line after major, minor and device name.
DISKSTATS_DESCS: tuple[TypedFactorDesc, ...] = (
    TypedFactorDesc(READS_COMPLETED_DESC, _COUNTER),
    TypedFactorDesc(_disk_desc("reads_merged_total", "The total number of reads merged."), _COUNTER),
    TypedFactorDesc(READ_BYTES_DESC, _COUNTER, DISK_SECTOR_SIZE),
    TypedFactorDesc(READ_TIME_SECONDS_DESC, _COUNTER, 0.001),
    TypedFactorDesc(WRITES_COMPLETED_DESC, _COUNTER),
    TypedFactorDesc(_disk_desc("writes_merged_total", "The number of writes merged."), _COUNTER),
    TypedFactorDesc(WRITTEN_BYTES_DESC, _COUNTER, DISK_SECTOR_SIZE),
    TypedFactorDesc(WRITE_TIME_SECONDS_DESC, _COUNTER, 0.001),
    TypedFactorDesc(
        _disk_desc("io_now", "The number of I/Os currently in progress."), ValueType.GAUGE
    ),
    TypedFactorDesc(IO_TIME_SECONDS_DESC, _COUNTER, 0.001),
    TypedFactorDesc(
        _disk_desc("io_time_weighted_seconds_total", "The weighted # of seconds spent doing I/Os."),
        _COUNTER,
        0.001,
    ),
    TypedFactorDesc(
        _disk_desc(
            "discards_completed_total", "The total number of discards completed successfully."
        ),
        _COUNTER,
    ),
    TypedFactorDesc(
        _disk_desc("discards_merged_total", "The total number of discards merged."), _COUNTER
    ),
    TypedFactorDesc(
        _disk_desc(
            "discarded_sectors_total", "The total number of sectors discarded successfully."
        ),
        _COUNTER,
    ),
    TypedFactorDesc(
        _disk_desc(
            "discard_time_seconds_total",
            "This is the total number of seconds spent by all discards.",
        ),
        _COUNTER,
        0.001,
    ),
)


def parse_disk_stats(stream: Iterable[str]) -> dict[str, list[str]]:
    """Map each device of a diskstats listing to its raw statistic fields."""
    stats: dict[str, list[str]] = {}
    for line in stream:
        parts = line.split()
        if len(parts) < 4:  # major, minor and device name come first
            raise ValueError(f"invalid line in {DISKSTATS_FILENAME}: {line.rstrip()}")
        stats[parts[2]] = parts[3:]
    return stats


def get_disk_stats(settings: Settings) -> dict[str, list[str]]:
    with open(settings.proc_file_path(DISKSTATS_FILENAME), encoding="utf-8") as handle:
        return parse_disk_stats(handle)


@register_collector("diskstats", True)
class DiskstatsCollector(Collector):
    """Exposes per-device disk I/O statistics."""

    def __init__(
        self, settings: Settings | None = None, ignored_devices: str = DEFAULT_IGNORED_DEVICES
    ) -> None:
        super().__init__(settings)
        self.ignored_devices_pattern = re.compile(ignored_devices)
        self.descs = DISKSTATS_DESCS

    def update(self) -> Iterator[Metric]:
        try:
            disk_stats = get_disk_stats(self.settings)
        except (OSError, ValueError) as err:
            raise CollectorError(f"couldn't get diskstats: {err}") from err

        for device, stats in disk_stats.items():
            if self.ignored_devices_pattern.search(device):
                log.debug("Ignoring device: %s", device)
                continue
            # Statistics beyond the known fields are ignored.
            for desc, raw in zip(self.descs, stats):
                try:
                    value = float(raw)
                except ValueError as err:
                    raise CollectorError(f"invalid value {raw} in diskstats: {err}") from err
                yield desc.metric(value, device)