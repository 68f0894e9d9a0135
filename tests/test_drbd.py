import pytest

from nodestat.drbd import DrbdCollector, parse_drbd
from nodestat.helper import Settings
from nodestat.registry import CollectorError

SAMPLE = """version: 8.4.3 (api:1/proto:86-101)
 0: cs:Connected ro:Primary/Secondary ds:UpToDate/Diskless C r-----
    ns:2 nr:5 dw:0 dr:0 al:0 bm:0 lo:0 pe:0 ua:0 ap:0 ep:1 wo:f oos:0
"""


def _index(metrics):
    return {(m.name, m.label_values): m.value for m in metrics}


def test_parse_sample():
    metrics = _index(parse_drbd(SAMPLE.splitlines()))
    assert metrics[("node_drbd_connected", ("drbd0",))] == 1.0
    assert metrics[("node_drbd_node_role_is_primary", ("drbd0", "local"))] == 1.0
    assert metrics[("node_drbd_node_role_is_primary", ("drbd0", "remote"))] == 0.0
    assert metrics[("node_drbd_disk_state_is_up_to_date", ("drbd0", "local"))] == 1.0
    assert metrics[("node_drbd_disk_state_is_up_to_date", ("drbd0", "remote"))] == 0.0
    assert metrics[("node_drbd_network_received_bytes_total", ("drbd0",))] == 5.0
    assert metrics[("node_drbd_network_sent_bytes_total", ("drbd0",))] == 2048.0
    assert metrics[("node_drbd_epochs", ("drbd0",))] == 1.0


def test_every_metric_has_a_device():
    metrics = list(parse_drbd(SAMPLE.splitlines()))
    assert all(m.labels["device"] == "drbd0" for m in metrics)


def test_unknown_device_before_id():
    metrics = list(parse_drbd(["cs:StandAlone"]))
    assert [m.label_values for m in metrics] == [("unknown",)]
    assert metrics[0].value == 0.0


def test_invalid_number():
    with pytest.raises(ValueError):
        list(parse_drbd(["0: ns:abc"]))


def test_collector_missing_file(tmp_path):
    collector = DrbdCollector(Settings(proc_path=str(tmp_path)))
    assert list(collector.update()) == []


def test_collector_reads_file(tmp_path):
    (tmp_path / "drbd").write_text(SAMPLE)
    collector = DrbdCollector(Settings(proc_path=str(tmp_path)))
    assert _index(collector.update()) == _index(parse_drbd(SAMPLE.splitlines()))


def test_collector_bad_value(tmp_path):
    (tmp_path / "drbd").write_text("0: nr:x\n")
    collector = DrbdCollector(Settings(proc_path=str(tmp_path)))
    with pytest.raises(CollectorError):
        list(collector.update())