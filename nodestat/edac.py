"""Memory controller error counters from the EDAC subsystem."""

from __future__ import annotations

import glob
import os
import re
from typing import Iterator

from .helper import read_uint_from_file
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, CollectorError, register_collector

EDAC_SUBSYSTEM = "edac"

_MEM_CONTROLLER_RE = re.compile(r".*devices/system/edac/mc/mc([0-9]*)")
_MEM_CSROW_RE = re.compile(r".*devices/system/edac/mc/mc[0-9]*/csrow([0-9]*)")


def _read_count(path: str, description: str) -> int:
    try:
        return read_uint_from_file(path)
    except (OSError, ValueError) as err:
        raise CollectorError(f"couldn't get {description}: {err}") from err


def _as_posix(path: str) -> str:
    return path.replace(os.sep, "/")


@register_collector("edac", True)
class EdacCollector(Collector):
    """Exposes correctable and uncorrectable memory error counts."""

    CE_COUNT = Desc(
        build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "correctable_errors_total"),
        "Total correctable memory errors.",
        ("controller",),
    )
    UE_COUNT = Desc(
        build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "uncorrectable_errors_total"),
        "Total uncorrectable memory errors.",
        ("controller",),
    )
    CSROW_CE_COUNT = Desc(
        build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_correctable_errors_total"),
        "Total correctable memory errors for this csrow.",
        ("controller", "csrow"),
    )
    CSROW_UE_COUNT = Desc(
        build_fq_name(NAMESPACE, EDAC_SUBSYSTEM, "csrow_uncorrectable_errors_total"),
        "Total uncorrectable memory errors for this csrow.",
        ("controller", "csrow"),
    )

    def update(self) -> Iterator[Metric]:
        mc_root = self.settings.sys_file_path("devices/system/edac/mc")
        controllers = sorted(glob.glob(os.path.join(glob.escape(mc_root), "mc[0-9]*")))
        for controller in controllers:
            match = _MEM_CONTROLLER_RE.search(_as_posix(controller))
            if match is None:
                raise CollectorError(f"controller string didn't match regexp: {controller}")
            number = match.group(1)

            value = _read_count(
                os.path.join(controller, "ce_count"), f"ce_count for controller {number}"
            )
            yield new_const_metric(self.CE_COUNT, ValueType.COUNTER, value, number)

            value = _read_count(
                os.path.join(controller, "ce_noinfo_count"),
                f"ce_noinfo_count for controller {number}",
            )
            yield new_const_metric(
                self.CSROW_CE_COUNT, ValueType.COUNTER, value, number, "unknown"
            )

            value = _read_count(
                os.path.join(controller, "ue_count"), f"ue_count for controller {number}"
            )
            yield new_const_metric(self.UE_COUNT, ValueType.COUNTER, value, number)

            value = _read_count(
                os.path.join(controller, "ue_noinfo_count"),
                f"ue_noinfo_count for controller {number}",
            )
            yield new_const_metric(
                self.CSROW_UE_COUNT, ValueType.COUNTER, value, number, "unknown"
            )

            csrows = sorted(glob.glob(os.path.join(glob.escape(controller), "csrow[0-9]*")))
            for csrow in csrows:
                csrow_match = _MEM_CSROW_RE.search(_as_posix(csrow))
                if csrow_match is None:
                    raise CollectorError(f"csrow string didn't match regexp: {csrow}")
                csrow_number = csrow_match.group(1)

                value = _read_count(
                    os.path.join(csrow, "ce_count"),
                    f"ce_count for controller/csrow {number}/{csrow_number}",
                )
                yield new_const_metric(
                    self.CSROW_CE_COUNT, ValueType.COUNTER, value, number, csrow_number
                )

                value = _read_count(
                    os.path.join(csrow, "ue_count"),
                    f"ue_count for controller/csrow {number}/{csrow_number}",
                )
                yield new_const_metric(
                    self.CSROW_UE_COUNT, ValueType.COUNTER, value, number, csrow_number
                )