"""Hardware monitoring sensors (temperatures, voltages, fans and more)."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Iterator

from .metrics import Desc, Metric, ValueType, new_const_metric
from .registry import Collector, CollectorError, register_collector

log = logging.getLogger(__name__)

_INVALID_METRIC_CHARS = re.compile(r"[^a-z0-9:_]")
_FILENAME_FORMAT = re.compile(r"(?P<type>[^0-9]+)(?P<id>[0-9]*)?(_(?P<property>.+))?")
_INT64_MAX = 2**63 - 1
_READ_SIZE = 128

HWMON_LABEL_NAMES = ("chip", "sensor")
HWMON_CHIP_NAME_LABEL_NAMES = ("chip", "chip_name")
HWMON_SENSOR_TYPES = frozenset(
    {
        "vrm", "beep_enable", "update_interval", "in", "cpu", "fan",
        "pwm", "temp", "curr", "power", "energy", "humidity",
        "intrusion",
    }
)

CHIP_NAMES_DESC = Desc(
    "node_hwmon_chip_names",
    "Annotation metric for human-readable chip names",
    HWMON_CHIP_NAME_LABEL_NAMES,
)
SENSOR_LABEL_DESC = Desc(
    "node_hwmon_sensor_label",
    "Label for given chip and sensor",
    ("chip", "sensor", "label"),
)
BEEP_ENABLED_DESC = Desc("node_hwmon_beep_enabled", "Hardware beep enabled", HWMON_LABEL_NAMES)
VRM_DESC = Desc(
    "node_hwmon_voltage_regulator_version", "Hardware voltage regulator", HWMON_LABEL_NAMES
)
UPDATE_INTERVAL_DESC = Desc(
    "node_hwmon_update_interval_seconds", "Hardware monitor update interval", HWMON_LABEL_NAMES
)

_POWER_INTERVAL_ELEMENTS = ("average_interval", "average_interval_min", "average_interval_max")
_FAN_RPM_ELEMENTS = ("input", "min", "max", "target")


def clean_metric_name(name: str) -> str:
    """Lower-case ``name``, replace invalid characters and trim underscores."""
    return _INVALID_METRIC_CHARS.sub("_", name.lower()).strip("_")


def _parse_float(raw: str) -> float:
    if not raw or raw != raw.strip() or "_" in raw:
        raise ValueError(f"invalid float: {raw!r}")
    return float(raw)


def explode_sensor_filename(filename: str) -> tuple[str, int, str] | None:
    """Split a sensor file name into (type, number, property).

    Returns None when the name does not have the sensor file form.
    """
    match = _FILENAME_FORMAT.fullmatch(filename)
    if match is None:
        return None
    sensor_id = match.group("id")
    number = 0
    if sensor_id:
        number = int(sensor_id)
        if number > _INT64_MAX:
            return None
    return match.group("type"), number, match.group("property") or ""


def sys_read_file(path: str | os.PathLike[str]) -> bytes:
    """Read at most 128 bytes with a single read call.

    Some broken drivers keep returning EAGAIN; a single read fails fast
    instead of polling forever.
    """
    fd = os.open(path, os.O_RDONLY)
    try:
        return os.read(fd, _READ_SIZE)
    finally:
        os.close(fd)


def _add_value_file(
    data: dict[str, dict[str, str]], sensor: str, prop: str, path: str
) -> None:
    try:
        raw = sys_read_file(path)
    except OSError:
        return
    value = raw.decode("utf-8", errors="replace").strip("\n")
    data.setdefault(sensor, {})[prop] = value


def collect_sensor_data(
    directory: str | os.PathLike[str], data: dict[str, dict[str, str]]
) -> dict[str, dict[str, str]]:
    """Add the values of all sensor files in ``directory`` to ``data``.

    ``data`` maps a sensor such as ``temp1`` to its properties; it is
    updated in place and also returned.
    """
    for filename in sorted(os.listdir(directory)):
        exploded = explode_sensor_filename(filename)
        if exploded is None:
            continue
        sensor_type, sensor_num, sensor_property = exploded
        if sensor_type in HWMON_SENSOR_TYPES:
            _add_value_file(
                data,
                f"{sensor_type}{sensor_num}",
                sensor_property,
                os.path.join(directory, filename),
            )
    return data


def _element_metric(
    name: str,
    sensor_type: str,
    element: str,
    value: float,
    labels: tuple[str, str],
) -> Metric:
    gauge = ValueType.GAUGE

    def make(metric_name: str, help_text: str, scaled: float, kind: ValueType = gauge) -> Metric:
        return new_const_metric(Desc(metric_name, help_text, HWMON_LABEL_NAMES), kind, scaled, *labels)

    # Fault, alarm and beep carry no unit.
    if element in ("fault", "alarm"):
        return make(name, f"Hardware sensor {element} status ({sensor_type})", value)
    if element == "beep":
        return make(name + "_enabled", "Hardware monitor sensor has beeping enabled", value)

    if sensor_type in ("in", "cpu"):
        return make(name + "_volts", f"Hardware monitor for voltage ({element})", value * 0.001)
    if sensor_type == "temp" and element != "type":
        shown = element or "input"
        return make(
            name + "_celsius", f"Hardware monitor for temperature ({shown})", value * 0.001
        )
    if sensor_type == "curr":
        return make(name + "_amps", f"Hardware monitor for current ({element})", value * 0.001)
    if sensor_type == "energy":
        return make(
            name + "_joule_total",
            f"Hardware monitor for joules used so far ({element})",
            value / 1000000.0,
            ValueType.COUNTER,
        )
    if sensor_type == "power" and element == "accuracy":
        return make(name, "Hardware monitor power meter accuracy, as a ratio", value / 1000000.0)
    if sensor_type == "power" and element in _POWER_INTERVAL_ELEMENTS:
        return make(
            name + "_seconds",
            f"Hardware monitor power usage update interval ({element})",
            value * 0.001,
        )
    if sensor_type == "power":
        return make(
            name + "_watt",
            f"Hardware monitor for power usage in watts ({element})",
            value / 1000000.0,
        )
    if sensor_type == "humidity":
        return make(
            name,
            "Hardware monitor for humidity, as a ratio (multiply with 100.0 to get the "
            f"humidity as a percentage) ({element})",
            value / 1000000.0,
        )
    if sensor_type == "fan" and element in _FAN_RPM_ELEMENTS:
        return make(
            name + "_rpm", f"Hardware monitor for fan revolutions per minute ({element})", value
        )
    return make(name, f"Hardware monitor {sensor_type} element {element}", value)


def _read_text(path: str) -> str:
    with open(path, "rb") as handle:
        return handle.read().decode("utf-8", errors="replace")


@register_collector("hwmon", True)
class HwMonCollector(Collector):
    """Exposes sensor readings from the hwmon sysfs class."""

    def hwmon_name(self, directory: str | os.PathLike[str]) -> str:
        """Derive a stable name for a hwmon directory."""
        directory = os.fspath(directory)
        # Preference 1: the device path, which is stable and unique.
        try:
            device_path = Path(directory, "device").resolve(strict=True)
        except (OSError, RuntimeError):
            device_path = None
        if device_path is not None:
            clean_dev_name = clean_metric_name(device_path.name)
            clean_dev_type = clean_metric_name(device_path.parent.name)
            if clean_dev_type and clean_dev_name:
                return f"{clean_dev_type}_{clean_dev_name}"
            if clean_dev_name:
                return clean_dev_name

        # Preference 2: the name file.
        try:
            sysname = _read_text(os.path.join(directory, "name"))
        except OSError:
            sysname = ""
        if sysname:
            clean_name = clean_metric_name(sysname)
            if clean_name:
                return clean_name

        # Last resort: the hwmonX directory name itself.
        real_dir = Path(directory).resolve(strict=True)
        clean_name = clean_metric_name(real_dir.name)
        if clean_name:
            return clean_name
        raise CollectorError(f"Could not derive a monitoring name for {directory}")

    def hwmon_human_readable_chip_name(self, directory: str | os.PathLike[str]) -> str:
        """Return the cleaned content of the chip's name file."""
        directory = os.fspath(directory)
        sysname = _read_text(os.path.join(directory, "name"))
        if sysname:
            clean_name = clean_metric_name(sysname)
            if clean_name:
                return clean_name
        raise CollectorError(f"Could not derive a human-readable chip type for {directory}")

    def update_hwmon(self, directory: str | os.PathLike[str]) -> Iterator[Metric]:
        """Yield the metrics of one hwmon directory."""
        directory = os.fspath(directory)
        hwmon_name = self.hwmon_name(directory)

        data: dict[str, dict[str, str]] = {}
        collect_sensor_data(directory, data)
        device_dir = os.path.join(directory, "device")
        if os.path.exists(device_dir):
            collect_sensor_data(device_dir, data)

        try:
            chip_name = self.hwmon_human_readable_chip_name(directory)
        except (OSError, CollectorError):
            pass
        else:
            yield new_const_metric(CHIP_NAMES_DESC, ValueType.GAUGE, 1.0, hwmon_name, chip_name)

        for sensor, sensor_data in data.items():
            exploded = explode_sensor_filename(sensor)
            sensor_type = exploded[0] if exploded is not None else ""
            labels = (hwmon_name, sensor)

            label_text = sensor_data.get("label")
            if label_text is not None:
                label = clean_metric_name(label_text)
                if label:
                    yield new_const_metric(
                        SENSOR_LABEL_DESC, ValueType.GAUGE, 1.0, hwmon_name, sensor, label
                    )

            if sensor_type == "beep_enable":
                value = 1.0 if sensor_data.get("") == "1" else 0.0
                yield new_const_metric(BEEP_ENABLED_DESC, ValueType.GAUGE, value, *labels)
                continue
            if sensor_type == "vrm":
                try:
                    value = _parse_float(sensor_data.get("", ""))
                except ValueError:
                    continue
                yield new_const_metric(VRM_DESC, ValueType.GAUGE, value, *labels)
                continue
            if sensor_type == "update_interval":
                try:
                    value = _parse_float(sensor_data.get("", ""))
                except ValueError:
                    continue
                yield new_const_metric(
                    UPDATE_INTERVAL_DESC, ValueType.GAUGE, value * 0.001, *labels
                )
                continue

            prefix = "node_hwmon_" + sensor_type
            for element, raw in sensor_data.items():
                if element == "label":
                    continue
                name = prefix
                if element == "input":
                    # input is the value itself
                    if "" in sensor_data:
                        name += "_input"
                elif element:
                    name += "_" + clean_metric_name(element)
                try:
                    value = _parse_float(raw)
                except ValueError:
                    continue
                yield _element_metric(name, sensor_type, element, value, labels)

    def update(self) -> Iterator[Metric]:
        hwmon_path = os.path.join(self.settings.sys_file_path("class"), "hwmon")
        try:
            entries = sorted(os.listdir(hwmon_path))
        except FileNotFoundError:
            log.debug("hwmon collector metrics are not available for this system")
            return

        last_error: Exception | None = None
        for entry in entries:
            path = os.path.join(hwmon_path, entry)
            if not os.path.isdir(path):
                continue
            try:
                for metric in self.update_hwmon(path):
                    yield metric
            except (OSError, CollectorError) as err:
                last_error = err
        if last_error is not None:
            raise last_error