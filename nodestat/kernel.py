"""Entropy pool, connection tracking and file descriptor statistics."""

from __future__ import annotations

import os
from typing import Iterator

from .helper import read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

FILE_FD_SUBSYSTEM = "filefd"


@register_collector("entropy", True)
class EntropyCollector(Collector):
    """Exposes the available entropy of the kernel random pool."""

    ENTROPY_AVAIL = Desc(
        build_fq_name(NAMESPACE, "", "entropy_available_bits"),
        "Bits of available entropy.",
    )

    def update(self) -> Iterator[Metric]:
        path = self.settings.proc_file_path("sys/kernel/random/entropy_avail")
        try:
            value = read_uint_from_file(path)
        except (OSError, ValueError) as err:
            raise CollectorError(f"couldn't get entropy_avail: {err}") from err
        yield new_const_metric(self.ENTROPY_AVAIL, ValueType.GAUGE, value)


@register_collector("conntrack", True)
class ConntrackCollector(Collector):
    """Exposes the netfilter connection tracking table size and limit."""

    CURRENT = Desc(
        build_fq_name(NAMESPACE, "", "nf_conntrack_entries"),
        "Number of currently allocated flow entries for connection tracking.",
    )
    LIMIT = Desc(
        build_fq_name(NAMESPACE, "", "nf_conntrack_entries_limit"),
        "Maximum size of connection tracking table.",
    )

    def update(self) -> Iterator[Metric]:
        # Missing files mean conntrack is not loaded; that is not an error.
        try:
            current = read_uint_from_file(
                self.settings.proc_file_path("sys/net/netfilter/nf_conntrack_count")
            )
        except (OSError, ValueError):
            return
        yield new_const_metric(self.CURRENT, ValueType.GAUGE, current)

        try:
            limit = read_uint_from_file(
                self.settings.proc_file_path("sys/net/netfilter/nf_conntrack_max")
            )
        except (OSError, ValueError):
            return
        yield new_const_metric(self.LIMIT, ValueType.GAUGE, limit)


def parse_file_fd_stats(filename: str | os.PathLike[str]) -> dict[str, str]:
    """Read the allocated and maximum counts from a file-nr style file."""
    with open(filename, encoding="utf-8") as handle:
        content = handle.read()
    parts = content.strip().split("\t")
    if len(parts) < 3:
        raise ValueError(f"unexpected number of file stats in {str(filename)!r}")
    # The middle value is always zero on current kernels and is skipped.
    return {"allocated": parts[0], "maximum": parts[2]}


@register_collector(FILE_FD_SUBSYSTEM, True)
class FileFDCollector(Collector):
    """Exposes file descriptor allocation statistics."""

    def update(self) -> Iterator[Metric]:
        try:
            stats = parse_file_fd_stats(self.settings.proc_file_path("sys/fs/file-nr"))
        except (OSError, ValueError) as err:
            raise CollectorError(f"couldn't get file-nr: {err}") from err
        for name, raw in stats.items():
            try:
                value = float(raw)
            except ValueError as err:
                raise CollectorError(f"invalid value {raw} in file-nr: {err}") from err
            desc = Desc(
                build_fq_name(NAMESPACE, FILE_FD_SUBSYSTEM, name),
                f"File descriptor statistics: {name}.",
            )
            yield new_const_metric(desc, ValueType.GAUGE, value)