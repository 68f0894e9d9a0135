"""Filesystem location settings and small file-reading helpers."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass

_UINT_RE = re.compile(r"[0-9]+")
_UINT64_MAX = 2**64 - 1


def _join(base: str, name: str) -> str:
    return os.path.normpath(os.path.join(base, name.lstrip("/")))


@dataclass(frozen=True)
class Settings:
    """Mount points of procfs, sysfs and the root filesystem."""

    proc_path: str = "/proc"
    sys_path: str = "/sys"
    rootfs_path: str = "/"

    def proc_file_path(self, name: str) -> str:
        return _join(str(self.proc_path), name)

    def sys_file_path(self, name: str) -> str:
        return _join(str(self.sys_path), name)

    def rootfs_file_path(self, name: str) -> str:
        return _join(str(self.rootfs_path), name)

    def rootfs_strip_prefix(self, path: str) -> str:
        """Remove the rootfs mount point from the front of ``path``."""
        rootfs = str(self.rootfs_path)
        if rootfs == "/":
            return path
        stripped = path.removeprefix(rootfs)
        return stripped or "/"


def read_uint_from_file(path: str | os.PathLike[str]) -> int:
    """Read a file holding one unsigned 64-bit decimal integer."""
    with open(path, encoding="utf-8", errors="replace") as handle:
        text = handle.read().strip()
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f'parsing "{text}": invalid syntax')
    value = int(text)
    if value > _UINT64_MAX:
        raise ValueError(f'parsing "{text}": value out of range')
    return value