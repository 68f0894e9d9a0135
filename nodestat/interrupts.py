"""Interrupt counts per CPU."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from .helper import Settings
from .metrics import NAMESPACE, Desc, Metric, TypedDesc, ValueType
from .registry import Collector, CollectorError, register_collector

INTERRUPT_LABEL_NAMES = ("cpu", "type", "info", "devices")

_NUMERIC_RE = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Interrupt:
    """One interrupt source with its raw per-CPU counts."""

    info: str
    devices: str = ""
    values: tuple[str, ...] = field(default=())


def parse_interrupts(stream: Iterable[str]) -> dict[str, Interrupt]:
    """Parse an interrupts listing keyed by interrupt name."""
    lines = iter(stream)
    try:
        header = next(lines)
    except StopIteration:
        raise ValueError("interrupts empty") from None
    cpu_num = len(header.split())  # one header per cpu

    interrupts: dict[str, Interrupt] = {}
    for line in lines:
        parts = line.split()
        if len(parts) < cpu_num + 2:
            continue  # ERR and MIS carry no per-CPU columns
        name = parts[0][:-1]  # drop the trailing colon
        values = tuple(parts[1 : cpu_num + 1])
        if _NUMERIC_RE.fullmatch(name):
            interrupts[name] = Interrupt(
                info=parts[cpu_num + 1],
                devices=" ".join(parts[cpu_num + 2 :]),
                values=values,
            )
        else:
            interrupts[name] = Interrupt(info=" ".join(parts[cpu_num + 1 :]), values=values)
    return interrupts


def get_interrupts(settings: Settings) -> dict[str, Interrupt]:
    with open(settings.proc_file_path("interrupts"), encoding="utf-8") as handle:
        return parse_interrupts(handle)


@register_collector("interrupts", False)
class InterruptsCollector(Collector):
    """Exposes interrupt counts by CPU and interrupt source."""

    DESC = TypedDesc(
        Desc(f"{NAMESPACE}_interrupts_total", "Interrupt details.", INTERRUPT_LABEL_NAMES),
        ValueType.COUNTER,
    )

    def update(self) -> Iterator[Metric]:
        try:
            interrupts = get_interrupts(self.settings)
        except (OSError, ValueError) as err:
            raise CollectorError(f"couldn't get interrupts: {err}") from err
        for name, interrupt in interrupts.items():
            for cpu_no, raw in enumerate(interrupt.values):
                try:
                    value = float(raw)
                except ValueError as err:
                    raise CollectorError(f"invalid value {raw} in interrupts: {err}") from err
                yield self.DESC.metric(
                    value, str(cpu_no), name, interrupt.info, interrupt.devices
                )