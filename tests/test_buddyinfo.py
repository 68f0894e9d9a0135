from pathlib import Path

import pytest

from nodestat.buddyinfo import BuddyinfoCollector, parse_buddyinfo
from nodestat.helper import Settings
from nodestat.registry import CollectorError

SAMPLE = [
    "Node 0, zone      DMA      1      0      4\n",
    "Node 0, zone    DMA32    759    572    791\n",
    "Node 1, zone   Normal   4381   1093    185\n",
]


def test_parse_entries():
    entries = parse_buddyinfo(SAMPLE)
    assert [(e.node, e.zone) for e in entries] == [("0", "DMA"), ("0", "DMA32"), ("1", "Normal")]
    assert entries[1].sizes == (759.0, 572.0, 791.0)
    assert all(len(e.sizes) == len(entries[0].sizes) for e in entries)


def test_too_few_fields():
    with pytest.raises(ValueError, match="invalid number of fields"):
        parse_buddyinfo(["Node 0, zone\n"])


def test_bucket_mismatch():
    with pytest.raises(ValueError, match="mismatch"):
        parse_buddyinfo([SAMPLE[0], "Node 0, zone DMA32 1 2\n"])


def test_invalid_value():
    with pytest.raises(ValueError):
        parse_buddyinfo(["Node 0, zone DMA 1 x 3\n"])


def test_collector_update(tmp_path: Path):
    (tmp_path / "buddyinfo").write_text("".join(SAMPLE))
    collector = BuddyinfoCollector(Settings(proc_path=str(tmp_path)))
    metrics = list(collector.update())
    labelled = {(m.labels["node"], m.labels["zone"], m.labels["size"]): m.value for m in metrics}
    assert labelled[("1", "Normal", "0")] == 4381
    assert labelled[("0", "DMA", "2")] == 4
    assert {m.name for m in metrics} == {"node_buddyinfo_blocks"}
    assert len(labelled) == len(metrics)


def test_collector_missing_file(tmp_path: Path):
    collector = BuddyinfoCollector(Settings(proc_path=str(tmp_path)))
    with pytest.raises(CollectorError, match="couldn't get buddyinfo"):
        list(collector.update())