"""DRBD replication statistics."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator

from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

log = logging.getLogger(__name__)

_UINT_RE = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1


@dataclass(frozen=True)
class _NumericalMetric:
    desc: Desc
    value_type: ValueType
    multiplier: float


@dataclass(frozen=True)
class _StringPairMetric:
    desc: Desc
    value_okay: str


def _numerical(name: str, help_text: str, value_type: ValueType, multiplier: float) -> _NumericalMetric:
    return _NumericalMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device",)),
        value_type,
        multiplier,
    )


def _string_pair(name: str, help_text: str, value_okay: str) -> _StringPairMetric:
    return _StringPairMetric(
        Desc(build_fq_name(NAMESPACE, "drbd", name), help_text, ("device", "node")),
        value_okay,
    )


_C = ValueType.COUNTER
_G = ValueType.GAUGE

NUMERICAL_METRICS: dict[str, _NumericalMetric] = {
    "ns": _numerical("network_sent_bytes_total", "Total number of bytes sent via the network.", _C, 1024),
    "nr": _numerical("network_received_bytes_total", "Total number of bytes received via the network.", _C, 1),
    "dw": _numerical("disk_written_bytes_total", "Net data written on local hard disk; in bytes.", _C, 1024),
    "dr": _numerical("disk_read_bytes_total", "Net data read from local hard disk; in bytes.", _C, 1024),
    "al": _numerical("activitylog_writes_total", "Number of updates of the activity log area of the meta data.", _C, 1),
    "bm": _numerical("bitmap_writes_total", "Number of updates of the bitmap area of the meta data.", _C, 1),
    "lo": _numerical("local_pending", "Number of open requests to the local I/O sub-system.", _G, 1),
    "pe": _numerical("remote_pending", "Number of requests sent to the peer, but that have not yet been answered by the latter.", _G, 1),
    "ua": _numerical("remote_unacknowledged", "Number of requests received by the peer via the network connection, but that have not yet been answered.", _G, 1),
    "ap": _numerical("application_pending", "Number of block I/O requests forwarded to DRBD, but not yet answered by DRBD.", _G, 1),
    "ep": _numerical("epochs", "Number of Epochs currently on the fly.", _G, 1),
    "oos": _numerical("out_of_sync_bytes", "Amount of data known to be out of sync; in bytes.", _G, 1024),
}

STRING_PAIR_METRICS: dict[str, _StringPairMetric] = {
    "ro": _string_pair("node_role_is_primary", "Whether the role of the node is in the primary state.", "Primary"),
    "ds": _string_pair("disk_state_is_up_to_date", "Whether the disk of the node is up to date.", "UpToDate"),
}

DRBD_CONNECTED = Desc(
    build_fq_name(NAMESPACE, "drbd", "connected"),
    "Whether DRBD is connected to the peer.",
    ("device",),
)


def _device_id(key: str) -> int | None:
    if not _UINT_RE.fullmatch(key):
        return None
    value = int(key)
    return value if value <= _UINT64_MAX else None


def _string_pair_metrics(pair: _StringPairMetric, field: str, value: str, device: str) -> Iterator[Metric]:
    values = value.split("/")
    if len(values) < 2:
        raise ValueError(f"malformed string pair {field!r}")
    for node, state in (("local", values[0]), ("remote", values[1])):
        okay = 1.0 if state == pair.value_okay else 0.0
        yield new_const_metric(pair.desc, ValueType.GAUGE, okay, device, node)


def parse_drbd(stream: Iterable[str]) -> Iterator[Metric]:
    """Yield metrics for the key:value words of a DRBD status listing."""
    device = "unknown"
    for line in stream:
        for field in line.split():
            kv = field.split(":")
            if len(kv) != 2:
                log.debug("Don't know how to process string %r", field)
                continue
            key, value = kv
            device_id = _device_id(key)
            if device_id is not None and value == "":
                device = f"drbd{device_id}"
            elif key in NUMERICAL_METRICS:
                metric = NUMERICAL_METRICS[key]
                yield new_const_metric(
                    metric.desc, metric.value_type, float(value) * metric.multiplier, device
                )
            elif key in STRING_PAIR_METRICS:
                yield from _string_pair_metrics(STRING_PAIR_METRICS[key], field, value, device)
            elif key == "cs":
                connected = 1.0 if value == "Connected" else 0.0
                yield new_const_metric(DRBD_CONNECTED, ValueType.GAUGE, connected, device)
            else:
                log.debug("Don't know how to process key-value pair [%s: %r]", key, value)


@register_collector("drbd", False)
class DrbdCollector(Collector):
    """Exposes DRBD statistics from the proc status file."""

    def update(self) -> Iterator[Metric]:
        stats_file = self.settings.proc_file_path("drbd")
        try:
            handle = open(stats_file, encoding="utf-8")
        except FileNotFoundError as err:
            log.debug("Not collecting DRBD statistics, as %s does not exist: %s", stats_file, err)
            return
        with handle:
            try:
                yield from parse_drbd(handle)
            except ValueError as err:
                raise CollectorError(str(err)) from err