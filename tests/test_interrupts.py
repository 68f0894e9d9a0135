import io

import pytest

from nodestat.helper import Settings
from nodestat.interrupts import InterruptsCollector, get_interrupts, parse_interrupts
from nodestat.registry import CollectorError

INTERRUPTS = """\
           CPU0       CPU1       CPU2       CPU3
  0:         18          0          0          0   IO-APIC-edge      timer
  1:      17960        105         28         28   IO-APIC-edge      i8042
 40:         10          0          0          0   PCI-MSI-edge      PCIe PME, pciehp
NMI:         15       5031       6211       4968   Non-maskable interrupts
LOC:    1748578    1611212    1529043    1539052   Local timer interrupts
ERR:          0
MIS:          0
"""


def test_interrupts():
    interrupts = parse_interrupts(io.StringIO(INTERRUPTS))
    assert interrupts["NMI"].values[1] == "5031"
    assert interrupts["NMI"].values[3] == "4968"


def test_numeric_and_named_interrupts():
    interrupts = parse_interrupts(io.StringIO(INTERRUPTS))
    assert set(interrupts) == {"0", "1", "40", "NMI", "LOC"}
    assert interrupts["40"].info == "PCI-MSI-edge"
    assert interrupts["40"].devices == "PCIe PME, pciehp"
    assert interrupts["NMI"].info == "Non-maskable interrupts"
    assert interrupts["NMI"].devices == ""
    assert interrupts["0"].values == ("18", "0", "0", "0")


def test_empty_interrupts():
    with pytest.raises(ValueError, match="interrupts empty"):
        parse_interrupts(io.StringIO(""))


def test_get_interrupts_and_update(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "interrupts").write_text(INTERRUPTS)
    settings = Settings(proc_path=str(proc))
    assert get_interrupts(settings)["1"].devices == "i8042"

    metrics = list(InterruptsCollector(settings).update())
    assert len(metrics) == 20
    assert {m.name for m in metrics} == {"node_interrupts_total"}
    nmi = [m for m in metrics if m.labels["type"] == "NMI" and m.labels["cpu"] == "2"]
    assert len(nmi) == 1
    assert nmi[0].value == 6211.0
    assert nmi[0].labels == {
        "cpu": "2",
        "type": "NMI",
        "info": "Non-maskable interrupts",
        "devices": "",
    }


def test_update_invalid_value(tmp_path):
    proc = tmp_path / "proc"
    proc.mkdir()
    (proc / "interrupts").write_text("  CPU0\n  0:  abc  IO-APIC-edge  timer\n")
    with pytest.raises(CollectorError, match="invalid value abc"):
        list(InterruptsCollector(Settings(proc_path=str(proc))).update())


def test_update_missing_file(tmp_path):
    with pytest.raises(CollectorError, match="couldn't get interrupts"):
        list(InterruptsCollector(Settings(proc_path=str(tmp_path))).update())