"""Configured and active slave counts of bonding interfaces."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from .metrics import NAMESPACE, Desc, Metric, TypedDesc, ValueType, build_fq_name
from .registry import Collector, register_collector

log = logging.getLogger(__name__)


def _read_slave_state(master_dir: Path, slave: str) -> str:
    try:
        return (master_dir / f"lower_{slave}" / "bonding_slave" / "mii_status").read_text()
    except FileNotFoundError:
        # Some older kernels use the slave_ prefix instead.
        return (master_dir / f"slave_{slave}" / "bonding_slave" / "mii_status").read_text()


def read_bonding_stats(root: str | os.PathLike[str]) -> dict[str, tuple[int, int]]:
    """Map each bonding master to its (configured, active) slave counts."""
    base = Path(root)
    status: dict[str, tuple[int, int]] = {}
    masters = (base / "bonding_masters").read_text()
    for master in masters.split():
        master_dir = base / master
        slaves = (master_dir / "bonding" / "slaves").read_text()
        configured = 0
        active = 0
        for slave in slaves.split():
            state = _read_slave_state(master_dir, slave)
            configured += 1
            if state.strip() == "up":
                active += 1
        status[master] = (configured, active)
    return status


@register_collector("bonding", True)
class BondingCollector(Collector):
    """Exposes the number of configured and active slaves per bonding interface."""

    SLAVES = TypedDesc(
        Desc(
            build_fq_name(NAMESPACE, "bonding", "slaves"),
            "Number of configured slaves per bonding interface.",
            ("master",),
        ),
        ValueType.GAUGE,
    )
    ACTIVE = TypedDesc(
        Desc(
            build_fq_name(NAMESPACE, "bonding", "active"),
            "Number of active slaves per bonding interface.",
            ("master",),
        ),
        ValueType.GAUGE,
    )

    def update(self) -> Iterator[Metric]:
        status_path = self.settings.sys_file_path("class/net")
        try:
            stats = read_bonding_stats(status_path)
        except FileNotFoundError:
            log.debug("Not collecting bonding, file does not exist: %s", status_path)
            return
        for master, (configured, active) in stats.items():
            yield self.SLAVES.metric(configured, master)
            yield self.ACTIVE.metric(active, master)