"""InfiniBand port counters."""

from __future__ import annotations

import glob
import logging
import os
from dataclasses import dataclass
from typing import Iterator

from .helper import Settings, read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

log = logging.getLogger(__name__)

INFINIBAND_PATH = "class/infiniband"
INFINIBAND_SUBSYSTEM = "infiniband"

# Counters reported per lane; each port has four lanes.
_PER_LANE_FILES = frozenset({"port_rcv_data", "port_xmit_data", "port_rcv_data_64", "port_xmit_data_64"})


class InfinibandNoDevicesError(CollectorError):
    """No InfiniBand devices were found."""

    def __init__(self, message: str = "no InfiniBand devices detected") -> None:
        super().__init__(message)


class InfinibandNoPortsError(CollectorError):
    """An InfiniBand device has no ports."""

    def __init__(self, message: str = "no InfiniBand ports detected") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class _InfinibandMetric:
    file: str
    help: str


COUNTERS: dict[str, _InfinibandMetric] = {
    "link_downed_total": _InfinibandMetric("link_downed", "Number of times the link failed to recover from an error state and went down"),
    "link_error_recovery_total": _InfinibandMetric("link_error_recovery", "Number of times the link successfully recovered from an error state"),
    "multicast_packets_received_total": _InfinibandMetric("multicast_rcv_packets", "Number of multicast packets received (including errors)"),
    "multicast_packets_transmitted_total": _InfinibandMetric("multicast_xmit_packets", "Number of multicast packets transmitted (including errors)"),
    "port_constraint_errors_received_total": _InfinibandMetric("port_rcv_constraint_errors", "Number of packets received on the switch physical port that are discarded"),
    "port_constraint_errors_transmitted_total": _InfinibandMetric("port_xmit_constraint_errors", "Number of packets not transmitted from the switch physical port"),
    "port_data_received_bytes_total": _InfinibandMetric("port_rcv_data", "Number of data octets received on all links"),
    "port_data_transmitted_bytes_total": _InfinibandMetric("port_xmit_data", "Number of data octets transmitted on all links"),
    "port_discards_received_total": _InfinibandMetric("port_rcv_discards", "Number of inbound packets discarded by the port because the port is down or congested"),
    "port_discards_transmitted_total": _InfinibandMetric("port_xmit_discards", "Number of outbound packets discarded by the port because the port is down or congested"),
    "port_errors_received_total": _InfinibandMetric("port_rcv_errors", "Number of packets containing an error that were received on this port"),
    "port_packets_received_total": _InfinibandMetric("port_rcv_packets", "Number of packets received on all VLs by this port (including errors)"),
    "port_packets_transmitted_total": _InfinibandMetric("port_xmit_packets", "Number of packets transmitted on all VLs from this port (including errors)"),
    "port_transmit_wait_total": _InfinibandMetric("port_xmit_wait", "Number of ticks during which the port had data to transmit but no data was sent during the entire tick"),
    "unicast_packets_received_total": _InfinibandMetric("unicast_rcv_packets", "Number of unicast packets received (including errors)"),
    "unicast_packets_transmitted_total": _InfinibandMetric("unicast_xmit_packets", "Number of unicast packets transmitted (including errors)"),
}

# Deprecated counters of some older drivers.
LEGACY_COUNTERS: dict[str, _InfinibandMetric] = {
    "legacy_multicast_packets_received_total": _InfinibandMetric("port_multicast_rcv_packets", "Number of multicast packets received"),
    "legacy_multicast_packets_transmitted_total": _InfinibandMetric("port_multicast_xmit_packets", "Number of multicast packets transmitted"),
    "legacy_data_received_bytes_total": _InfinibandMetric("port_rcv_data_64", "Number of data octets received on all links"),
    "legacy_packets_received_total": _InfinibandMetric("port_rcv_packets_64", "Number of data packets received on all links"),
    "legacy_unicast_packets_received_total": _InfinibandMetric("port_unicast_rcv_packets", "Number of unicast packets received"),
    "legacy_unicast_packets_transmitted_total": _InfinibandMetric("port_unicast_xmit_packets", "Number of unicast packets transmitted"),
    "legacy_data_transmitted_bytes_total": _InfinibandMetric("port_xmit_data_64", "Number of data octets transmitted on all links"),
    "legacy_packets_transmitted_total": _InfinibandMetric("port_xmit_packets_64", "Number of data packets received on all links"),
}


def _basenames(pattern: str) -> list[str]:
    return [os.path.basename(path) for path in sorted(glob.glob(pattern))]


def infiniband_devices(path: str | os.PathLike[str]) -> list[str]:
    """Return the names of the InfiniBand devices under ``path``."""
    devices = _basenames(os.path.join(glob.escape(os.fspath(path)), "*"))
    if not devices:
        log.debug("Unable to detect InfiniBand devices")
        raise InfinibandNoDevicesError()
    return devices


def infiniband_ports(path: str | os.PathLike[str], device: str) -> list[str]:
    """Return the port numbers of one InfiniBand device."""
    base = glob.escape(os.path.join(os.fspath(path), device, "ports"))
    ports = _basenames(os.path.join(base, "*"))
    if not ports:
        log.debug("Unable to detect ports for %s", device)
        raise InfinibandNoPortsError()
    return ports


def read_metric(directory: str | os.PathLike[str], metric_file: str) -> int:
    """Read one counter file, scaling per-lane data counters to the port."""
    try:
        metric = read_uint_from_file(os.path.join(os.fspath(directory), metric_file))
    except ValueError as err:
        # Some drivers report unavailable counters as text.
        if "N/A (no PMA)" in str(err):
            log.debug("%r value is N/A", metric_file)
            return 0
        log.debug("Error reading %r file", metric_file)
        raise
    except OSError:
        log.debug("Error reading %r file", metric_file)
        raise
    if metric_file in _PER_LANE_FILES:
        metric *= 4
    return metric


def _desc(name: str, help_text: str) -> Desc:
    return Desc(
        build_fq_name(NAMESPACE, INFINIBAND_SUBSYSTEM, name), help_text, ("device", "port")
    )


@register_collector("infiniband", True)
class InfinibandCollector(Collector):
    """Exposes InfiniBand port counters."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self.counters = dict(COUNTERS)
        self.legacy_counters = dict(LEGACY_COUNTERS)
        self.metric_descs = {
            name: _desc(name, metric.help)
            for name, metric in (*self.counters.items(), *self.legacy_counters.items())
        }

    def _port_metrics(
        self, directory: str, counters: dict[str, _InfinibandMetric], device: str, port: str
    ) -> Iterator[Metric]:
        for name, counter in counters.items():
            path = os.path.join(directory, counter.file)
            try:
                os.stat(path)
            except FileNotFoundError:
                continue
            except OSError:
                pass
            try:
                value = read_metric(directory, counter.file)
            except (OSError, ValueError) as err:
                raise CollectorError(str(err)) from err
            yield new_const_metric(
                self.metric_descs[name], ValueType.COUNTER, value, device, port
            )

    def update(self) -> Iterator[Metric]:
        root = self.settings.sys_file_path(INFINIBAND_PATH)
        try:
            devices = infiniband_devices(root)
        except InfinibandNoDevicesError:
            return
        for device in devices:
            try:
                ports = infiniband_ports(root, device)
            except InfinibandNoPortsError:
                continue
            for port in ports:
                port_dir = os.path.join(root, device, "ports", port)
                yield from self._port_metrics(
                    os.path.join(port_dir, "counters"), self.counters, device, port
                )
                yield from self._port_metrics(
                    os.path.join(port_dir, "counters_ext"), self.legacy_counters, device, port
                )