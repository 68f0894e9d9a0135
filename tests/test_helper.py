from pathlib import Path

import pytest

from nodestat.helper import Settings, read_uint_from_file


def test_proc_file_path_joins(tmp_path):
    settings = Settings(proc_path=str(tmp_path))
    assert Path(settings.proc_file_path("net/arp")) == tmp_path / "net" / "arp"


def test_sys_file_path_joins(tmp_path):
    settings = Settings(sys_path=str(tmp_path))
    assert Path(settings.sys_file_path("class/net")) == tmp_path / "class" / "net"


def test_rootfs_file_path_keeps_absolute_name_under_root():
    settings = Settings(rootfs_path="/host")
    assert settings.rootfs_file_path("/media") == "/host/media"


def test_rootfs_strip_prefix_default_root_is_identity():
    assert Settings().rootfs_strip_prefix("/host/media") == "/host/media"


def test_rootfs_strip_prefix_removes_root():
    settings = Settings(rootfs_path="/host")
    assert settings.rootfs_strip_prefix("/host/media/volume1") == "/media/volume1"


def test_rootfs_strip_prefix_of_root_itself_is_slash():
    settings = Settings(rootfs_path="/host")
    assert settings.rootfs_strip_prefix("/host") == "/"


def test_rootfs_strip_prefix_leaves_other_paths():
    settings = Settings(rootfs_path="/host")
    assert settings.rootfs_strip_prefix("/dev/shm") == "/dev/shm"


def test_read_uint_round_trip(tmp_path):
    path = tmp_path / "value"
    path.write_text("4096\n")
    assert read_uint_from_file(path) == 4096


def test_read_uint_max_value(tmp_path):
    path = tmp_path / "value"
    path.write_text(str(2**64 - 1))
    assert read_uint_from_file(path) == 2**64 - 1


@pytest.mark.parametrize("content", ["-1", "abc", "", "1.5", "+3", "1_000", str(2**64)])
def test_read_uint_rejects_bad_content(tmp_path, content):
    path = tmp_path / "value"
    path.write_text(content)
    with pytest.raises(ValueError):
        read_uint_from_file(path)


def test_read_uint_error_mentions_content(tmp_path):
    path = tmp_path / "value"
    path.write_text("N/A (no PMA)\n")
    with pytest.raises(ValueError) as excinfo:
        read_uint_from_file(path)
    assert "N/A (no PMA)" in str(excinfo.value)


def test_read_uint_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_uint_from_file(tmp_path / "missing")