"""Metric descriptors and constant metric samples."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

NAMESPACE = "node"


class ValueType(enum.Enum):
    """Kind of value a metric carries."""

    COUNTER = 1
    GAUGE = 2
    UNTYPED = 3


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts of a metric name with underscores.

    An empty ``name`` yields an empty string.
    """
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class Desc:
    """Describes a metric: its full name, help text and label names."""

    fq_name: str
    help: str
    variable_labels: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "variable_labels", tuple(self.variable_labels))


@dataclass(frozen=True)
class Metric:
    """A single sample bound to a descriptor and a set of label values."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = field(default=())

    @property
    def name(self) -> str:
        return self.desc.fq_name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.variable_labels, self.label_values))


def new_const_metric(desc: Desc, value_type: ValueType, value: float, *args: str) -> Metric:
    """Create a metric, checking that one value is given per label name."""
    expected = len(desc.variable_labels)
    if len(args) != expected:
        raise ValueError(
            f"inconsistent label cardinality: expected {expected} label values "
            f"but got {len(args)} in {list(args)!r}"
        )
    return Metric(desc, value_type, float(value), tuple(args))


@dataclass(frozen=True)
class TypedDesc:
    """A descriptor paired with the value type of the metrics it produces."""

    desc: Desc
    value_type: ValueType

    def metric(self, value: float, *args: str) -> Metric:
        return new_const_metric(self.desc, self.value_type, value, *args)