"""CPU time per mode and thermal throttle counters."""

from __future__ import annotations

import glob
import logging
import os
import re
from dataclasses import dataclass, fields
from typing import Iterable, Iterator

from .helper import read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, register_collector

log = logging.getLogger(__name__)

CPU_COLLECTOR_SUBSYSTEM = "cpu"
USER_HZ = 100

NODE_CPU_SECONDS_DESC = Desc(
    build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, "seconds_total"),
    "Seconds the cpus spent in each mode.",
    ("cpu", "mode"),
)

_CPU_ID_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class CpuStat:
    """Seconds one CPU spent in each mode."""

    user: float = 0.0
    nice: float = 0.0
    system: float = 0.0
    idle: float = 0.0
    iowait: float = 0.0
    irq: float = 0.0
    softirq: float = 0.0
    steal: float = 0.0
    guest: float = 0.0
    guest_nice: float = 0.0


_FIELD_COUNT = len(fields(CpuStat))


def _parse_cpu_line(line: str, parts: list[str]) -> CpuStat:
    values = []
    for raw in parts[1 : 1 + _FIELD_COUNT]:
        try:
            values.append(float(raw) / USER_HZ)
        except ValueError as err:
            raise ValueError(f"couldn't parse {line.strip()} (cpu): {err}") from err
    return CpuStat(*values)


def parse_proc_stat(stream: Iterable[str]) -> list[CpuStat]:
    """Return per-CPU times from a /proc/stat listing, indexed by CPU number."""
    cpus: list[CpuStat] = []
    for line in stream:
        parts = line.split()
        if not parts or not parts[0].startswith("cpu"):
            continue
        stat = _parse_cpu_line(line, parts)
        if parts[0] == "cpu":
            continue
        cpu_id = parts[0][3:]
        if not _CPU_ID_RE.fullmatch(cpu_id):
            raise ValueError(f"couldn't parse {line.strip()} (cpu/cpuid): invalid cpu id")
        index = int(cpu_id)
        while len(cpus) <= index:
            cpus.append(CpuStat())
        cpus[index] = stat
    return cpus


@register_collector("cpu", True)
class CpuCollector(Collector):
    """Exposes CPU times from /proc/stat and throttle counters from sysfs."""

    CPU = NODE_CPU_SECONDS_DESC
    CPU_GUEST = Desc(
        build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, "guest_seconds_total"),
        "Seconds the cpus spent in guests (VMs) for each mode.",
        ("cpu", "mode"),
    )
    CPU_CORE_THROTTLE = Desc(
        build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, "core_throttles_total"),
        "Number of times this cpu core has been throttled.",
        ("package", "core"),
    )
    CPU_PACKAGE_THROTTLE = Desc(
        build_fq_name(NAMESPACE, CPU_COLLECTOR_SUBSYSTEM, "package_throttles_total"),
        "Number of times this cpu package has been throttled.",
        ("package",),
    )

    def update(self) -> Iterator[Metric]:
        yield from self.update_stat()
        yield from self.update_thermal_throttle()

    def update_thermal_throttle(self) -> Iterator[Metric]:
        """Expose thermal throttle counts from the sysfs cpu directories."""
        cpu_root = self.settings.sys_file_path("devices/system/cpu")
        cpus = sorted(glob.glob(os.path.join(glob.escape(cpu_root), "cpu[0-9]*")))

        package_throttles: dict[int, int] = {}
        package_core_throttles: dict[int, dict[int, int]] = {}

        for cpu in cpus:
            try:
                package_id = read_uint_from_file(os.path.join(cpu, "topology", "physical_package_id"))
            except (OSError, ValueError):
                log.debug("CPU %s is missing physical_package_id", cpu)
                continue
            try:
                core_id = read_uint_from_file(os.path.join(cpu, "topology", "core_id"))
            except (OSError, ValueError):
                log.debug("CPU %s is missing core_id", cpu)
                continue

            # Core throttles come first: some systems expose them without
            # any package throttles.
            cores = package_core_throttles.setdefault(package_id, {})
            if core_id not in cores:
                try:
                    cores[core_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "core_throttle_count")
                    )
                except (OSError, ValueError):
                    log.debug("CPU %s is missing core_throttle_count", cpu)

            if package_id not in package_throttles:
                try:
                    package_throttles[package_id] = read_uint_from_file(
                        os.path.join(cpu, "thermal_throttle", "package_throttle_count")
                    )
                except (OSError, ValueError):
                    log.debug("CPU %s is missing package_throttle_count", cpu)

        for package_id, count in package_throttles.items():
            yield new_const_metric(
                self.CPU_PACKAGE_THROTTLE, ValueType.COUNTER, count, str(package_id)
            )
        for package_id, cores in package_core_throttles.items():
            for core_id, count in cores.items():
                yield new_const_metric(
                    self.CPU_CORE_THROTTLE, ValueType.COUNTER, count, str(package_id), str(core_id)
                )

    def update_stat(self) -> Iterator[Metric]:
        """Expose per-CPU mode times from /proc/stat."""
        with open(self.settings.proc_file_path("stat"), encoding="utf-8") as handle:
            stats = parse_proc_stat(handle)

        for cpu_id, stat in enumerate(stats):
            cpu = str(cpu_id)
            for mode, value in (
                ("user", stat.user),
                ("nice", stat.nice),
                ("system", stat.system),
                ("idle", stat.idle),
                ("iowait", stat.iowait),
                ("irq", stat.irq),
                ("softirq", stat.softirq),
                ("steal", stat.steal),
            ):
                yield new_const_metric(self.CPU, ValueType.COUNTER, value, cpu, mode)
            # Guest time is also counted in user and nice; expose it separately.
            yield new_const_metric(self.CPU_GUEST, ValueType.COUNTER, stat.guest, cpu, "user")
            yield new_const_metric(self.CPU_GUEST, ValueType.COUNTER, stat.guest_nice, cpu, "nice")