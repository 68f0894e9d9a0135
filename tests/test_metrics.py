import pytest

from nodestat.metrics import (
    Desc,
    Metric,
    TypedDesc,
    ValueType,
    build_fq_name,
    new_const_metric,
)


def test_build_fq_name_joins_all_parts():
    assert build_fq_name("node", "arp", "entries") == "node_arp_entries"


def test_build_fq_name_skips_empty_subsystem():
    assert build_fq_name("node", "", "entropy_available_bits") == "node_entropy_available_bits"


def test_build_fq_name_empty_name_gives_empty():
    assert build_fq_name("node", "arp", "") == ""


def test_build_fq_name_skips_empty_namespace():
    assert build_fq_name("", "", "solo") == "solo"


def test_new_const_metric_keeps_inputs():
    desc = Desc("x_total", "help text", ("device",))
    metric = new_const_metric(desc, ValueType.COUNTER, 3, "eth0")
    assert metric.desc is desc
    assert metric.value_type is ValueType.COUNTER
    assert metric.value == 3.0
    assert isinstance(metric.value, float)
    assert metric.label_values == ("eth0",)
    assert metric.labels == {"device": "eth0"}
    assert metric.name == "x_total"


def test_new_const_metric_rejects_wrong_label_count():
    desc = Desc("x", "help", ("a", "b"))
    with pytest.raises(ValueError):
        new_const_metric(desc, ValueType.GAUGE, 1.0, "only-one")


def test_new_const_metric_rejects_extra_labels():
    desc = Desc("x", "help")
    with pytest.raises(ValueError):
        new_const_metric(desc, ValueType.GAUGE, 1.0, "extra")


def test_typed_desc_metric_uses_its_type():
    desc = Desc("g", "help", ("cpu", "mode"))
    typed = TypedDesc(desc, ValueType.GAUGE)
    metric = typed.metric(1.5, "0", "user")
    assert metric == Metric(desc, ValueType.GAUGE, 1.5, ("0", "user"))


def test_desc_labels_are_tuple():
    desc = Desc("g", "help", ["a", "b"])
    assert desc.variable_labels == ("a", "b")