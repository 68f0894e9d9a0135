import pytest

from nodestat.metrics import Desc, ValueType, new_const_metric
from nodestat.registry import (
    REGISTRY,
    SCRAPE_DURATION_DESC,
    SCRAPE_SUCCESS_DESC,
    Collector,
    CollectorRegistry,
    NodeCollector,
    execute,
    register_collector,
)

SAMPLE_DESC = Desc("sample_value", "Sample.", ("device",))


class GoodCollector(Collector):
    def update(self):
        yield new_const_metric(SAMPLE_DESC, ValueType.GAUGE, 7.0, "a")


class FailingCollector(Collector):
    def update(self):
        yield new_const_metric(SAMPLE_DESC, ValueType.GAUGE, 1.0, "b")
        raise OSError("boom")


def _success_of(metrics, name):
    return [
        m.value for m in metrics
        if m.desc == SCRAPE_SUCCESS_DESC and m.label_values == (name,)
    ]


def test_register_uses_default_state():
    registry = CollectorRegistry()
    registry.register("one", True, GoodCollector)
    registry.register("two", False, GoodCollector)
    assert registry.is_enabled("one") is True
    assert registry.is_enabled("two") is False
    assert list(registry) == ["one", "two"]
    assert registry["one"] is GoodCollector
    assert "one" in registry


def test_set_enabled_toggles():
    registry = CollectorRegistry()
    registry.register("one", False, GoodCollector)
    registry.set_enabled("one", True)
    assert registry.is_enabled("one") is True


def test_unknown_collector_raises():
    registry = CollectorRegistry()
    with pytest.raises(KeyError):
        registry.set_enabled("nope", True)
    with pytest.raises(KeyError):
        registry.is_enabled("nope")


def test_duplicate_registration_raises():
    registry = CollectorRegistry()
    registry.register("one", True, GoodCollector)
    with pytest.raises(ValueError):
        registry.register("one", False, GoodCollector)


def test_register_collector_decorator_adds_to_default_registry():
    @register_collector("registry_test_dummy", False)
    class Dummy(GoodCollector):
        pass

    assert REGISTRY["registry_test_dummy"] is Dummy
    assert REGISTRY.is_enabled("registry_test_dummy") is False


def test_execute_success_appends_scrape_metrics():
    metrics = execute("good", GoodCollector())
    assert metrics[0].value == 7.0
    assert metrics[1].desc == SCRAPE_DURATION_DESC
    assert metrics[1].value >= 0.0
    assert metrics[2].desc == SCRAPE_SUCCESS_DESC
    assert _success_of(metrics, "good") == [1.0]


def test_execute_failure_keeps_earlier_metrics():
    metrics = execute("bad", FailingCollector())
    assert metrics[0].label_values == ("b",)
    assert _success_of(metrics, "bad") == [0.0]
    assert len(metrics) == 3


def test_describe_yields_scrape_descs():
    node = NodeCollector({})
    assert list(node.describe()) == [SCRAPE_DURATION_DESC, SCRAPE_SUCCESS_DESC]


def test_collect_runs_every_collector():
    node = NodeCollector({"good": GoodCollector(), "bad": FailingCollector()})
    metrics = list(node.collect())
    assert _success_of(metrics, "good") == [1.0]
    assert _success_of(metrics, "bad") == [0.0]
    assert len(metrics) == 6


def test_collect_with_no_collectors_is_empty():
    assert list(NodeCollector({}).collect()) == []