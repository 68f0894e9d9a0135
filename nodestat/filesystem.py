"""Filesystem size, free space and inode statistics per mount point."""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator

from .helper import Settings
from .metrics import NAMESPACE, Desc, Metric, ValueType, build_fq_name, new_const_metric
from .registry import Collector, register_collector

log = logging.getLogger(__name__)

FILESYSTEM_SUBSYSTEM = "filesystem"
DEFAULT_IGNORED_MOUNT_POINTS = r"^/(dev|proc|sys|var/lib/docker/.+)($|/)"
DEFAULT_IGNORED_FS_TYPES = (
    r"^(autofs|binfmt_misc|bpf|cgroup2?|configfs|debugfs|devpts|devtmpfs|fusectl|"
    r"hugetlbfs|iso9660|mqueue|nsfs|overlay|proc|procfs|pstore|rpc_pipefs|securityfs|"
    r"selinuxfs|squashfs|sysfs|tracefs)$"
)
MOUNT_TIMEOUT = 30.0

FILESYSTEM_LABEL_NAMES = ("device", "mountpoint", "fstype")

_stuck_mounts: set[str] = set()
_stuck_mounts_lock = threading.Lock()


@dataclass(frozen=True)
class FilesystemLabels:
    """Identity of one mounted filesystem."""

    device: str
    mount_point: str
    fs_type: str
    options: str = ""


@dataclass(frozen=True)
class FilesystemStats:
    """Space and inode figures of one mounted filesystem."""

    labels: FilesystemLabels
    size: float = 0.0
    free: float = 0.0
    avail: float = 0.0
    files: float = 0.0
    files_free: float = 0.0
    ro: float = 0.0
    device_error: float = 0.0


def parse_filesystem_labels(stream: Iterable[str], settings: Settings) -> list[FilesystemLabels]:
    """Parse a mounts listing into filesystem labels."""
    filesystems: list[FilesystemLabels] = []
    for line in stream:
        parts = line.split()
        if len(parts) < 4:
            raise ValueError(f"malformed mount point information: {line.rstrip(chr(10))!r}")
        # Octal escapes for space and tab, as described in fstab(5).
        mount_point = parts[1].replace("\\040", " ").replace("\\011", "\t")
        filesystems.append(
            FilesystemLabels(
                device=parts[0],
                mount_point=settings.rootfs_strip_prefix(mount_point),
                fs_type=parts[2],
                options=parts[3],
            )
        )
    return filesystems


def mount_point_details(settings: Settings) -> list[FilesystemLabels]:
    """Read the mount table of process 1, falling back to the system one."""
    try:
        handle = open(settings.proc_file_path("1/mounts"), encoding="utf-8")
    except FileNotFoundError as err:
        # Process 1 may be hidden by hidepid.
        log.debug("Got %r reading root mounts, falling back to system mounts", err)
        handle = open(settings.proc_file_path("mounts"), encoding="utf-8")
    with handle:
        return parse_filesystem_labels(handle, settings)


def _mark_stuck(mount_point: str, success: threading.Event) -> None:
    with _stuck_mounts_lock:
        if success.is_set():
            # Success came in just after the timeout was reached.
            return
        log.debug(
            "Mount point %r timed out, it is being labeled as stuck and will not be monitored",
            mount_point,
        )
        _stuck_mounts.add(mount_point)


@register_collector("filesystem", True)
class FilesystemCollector(Collector):
    """Exposes filesystem fullness per mount point."""

    SIZE = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "size_bytes"),
        "Filesystem size in bytes.",
        FILESYSTEM_LABEL_NAMES,
    )
    FREE = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "free_bytes"),
        "Filesystem free space in bytes.",
        FILESYSTEM_LABEL_NAMES,
    )
    AVAIL = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "avail_bytes"),
        "Filesystem space available to non-root users in bytes.",
        FILESYSTEM_LABEL_NAMES,
    )
    FILES = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "files"),
        "Filesystem total file nodes.",
        FILESYSTEM_LABEL_NAMES,
    )
    FILES_FREE = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "files_free"),
        "Filesystem total free file nodes.",
        FILESYSTEM_LABEL_NAMES,
    )
    RO = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "readonly"),
        "Filesystem read-only status.",
        FILESYSTEM_LABEL_NAMES,
    )
    DEVICE_ERROR = Desc(
        build_fq_name(NAMESPACE, FILESYSTEM_SUBSYSTEM, "device_error"),
        "Whether an error occurred while getting statistics for the given device.",
        FILESYSTEM_LABEL_NAMES,
    )

    def __init__(
        self,
        settings: Settings | None = None,
        ignored_mount_points: str = DEFAULT_IGNORED_MOUNT_POINTS,
        ignored_fs_types: str = DEFAULT_IGNORED_FS_TYPES,
        mount_timeout: float = MOUNT_TIMEOUT,
    ) -> None:
        super().__init__(settings)
        self.ignored_mount_points_pattern = re.compile(ignored_mount_points)
        self.ignored_fs_types_pattern = re.compile(ignored_fs_types)
        self.mount_timeout = mount_timeout

    def _statfs(self, labels: FilesystemLabels) -> os.statvfs_result:
        success = threading.Event()
        watcher = threading.Timer(self.mount_timeout, _mark_stuck, (labels.mount_point, success))
        watcher.daemon = True
        watcher.start()
        try:
            return os.statvfs(self.settings.rootfs_file_path(labels.mount_point))
        finally:
            with _stuck_mounts_lock:
                success.set()
                watcher.cancel()
                if labels.mount_point in _stuck_mounts:
                    log.debug(
                        "Mount point %r has recovered, monitoring will resume",
                        labels.mount_point,
                    )
                    _stuck_mounts.discard(labels.mount_point)

    def get_stats(self) -> list[FilesystemStats]:
        """Return statistics for every mount point that is not ignored."""
        stats: list[FilesystemStats] = []
        for labels in mount_point_details(self.settings):
            if self.ignored_mount_points_pattern.search(labels.mount_point):
                log.debug("Ignoring mount point: %s", labels.mount_point)
                continue
            if self.ignored_fs_types_pattern.search(labels.fs_type):
                log.debug("Ignoring fs type: %s", labels.fs_type)
                continue
            with _stuck_mounts_lock:
                stuck = labels.mount_point in _stuck_mounts
            if stuck:
                log.debug("Mount point %r is in an unresponsive state", labels.mount_point)
                stats.append(FilesystemStats(labels, device_error=1.0))
                continue

            try:
                buf = self._statfs(labels)
            except OSError as err:
                log.debug(
                    "Error on statfs() system call for %r: %s",
                    self.settings.rootfs_file_path(labels.mount_point),
                    err,
                )
                stats.append(FilesystemStats(labels, device_error=1.0))
                continue

            ro = 1.0 if "ro" in labels.options.split(",") else 0.0
            stats.append(
                FilesystemStats(
                    labels,
                    size=float(buf.f_blocks) * float(buf.f_bsize),
                    free=float(buf.f_bfree) * float(buf.f_bsize),
                    avail=float(buf.f_bavail) * float(buf.f_bsize),
                    files=float(buf.f_files),
                    files_free=float(buf.f_ffree),
                    ro=ro,
                )
            )
        return stats

    def update(self) -> Iterator[Metric]:
        seen: set[FilesystemLabels] = set()
        for stat in self.get_stats():
            # Expose each filesystem once, even when mounted several times.
            if stat.labels in seen:
                continue
            seen.add(stat.labels)
            label_values = (stat.labels.device, stat.labels.mount_point, stat.labels.fs_type)

            yield new_const_metric(
                self.DEVICE_ERROR, ValueType.GAUGE, stat.device_error, *label_values
            )
            if stat.device_error > 0:
                continue
            for desc, value in (
                (self.SIZE, stat.size),
                (self.FREE, stat.free),
                (self.AVAIL, stat.avail),
                (self.FILES, stat.files),
                (self.FILES_FREE, stat.files_free),
                (self.RO, stat.ro),
            ):
                yield new_const_metric(desc, ValueType.GAUGE, value, *label_values)