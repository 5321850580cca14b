"""Canonical, format-agnostic metric model."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple, Union
import math

from promwalk.util import convert_float_to_string


class MetricType(str, Enum):
    """The four metric kinds a family can have."""
    COUNTER = "COUNTER"
    GAUGE = "GAUGE"
    SUMMARY = "SUMMARY"
    HISTOGRAM = "HISTOGRAM"

    @classmethod
    def from_name(cls, name: str) -> "MetricType":
        """Look up a type by its case-insensitive name."""
        try:
            return cls(name.upper())
        except ValueError:
            raise ValueError(f"Unknown metric type: {name!r}") from None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Quantile:
    quantile: float
    value: float

    def __str__(self) -> str:
        return f"{convert_float_to_string(self.quantile)}:{convert_float_to_string(self.value)}"


@dataclass(frozen=True)
class Bucket:
    upper_bound: float
    cumulative_count: int

    def __str__(self) -> str:
        return f"{convert_float_to_string(self.upper_bound)}:{self.cumulative_count}"


@dataclass(frozen=True)
class Counter:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    value: float = math.nan


@dataclass(frozen=True)
class Gauge:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    value: float = math.nan


@dataclass(frozen=True)
class Summary:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    sample_count: int = 0
    sample_sum: float = math.nan
    quantiles: Tuple[Quantile, ...] = ()

    def __post_init__(self):
        if "quantile" in self.labels:
            raise ValueError(f"Summary '{self.name}' labels must not contain 'quantile'")


@dataclass(frozen=True)
class Histogram:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    sample_count: int = 0
    sample_sum: float = math.nan
    buckets: Tuple[Bucket, ...] = ()

    def __post_init__(self):
        if "le" in self.labels:
            raise ValueError(f"Histogram '{self.name}' labels must not contain 'le'")


Metric = Union[Counter, Gauge, Summary, Histogram]

METRIC_CLASSES = {
    MetricType.COUNTER: Counter,
    MetricType.GAUGE: Gauge,
    MetricType.SUMMARY: Summary,
    MetricType.HISTOGRAM: Histogram,
}


@dataclass(frozen=True)
class MetricFamily:
    """All metrics sharing one name; every metric is of the family's type."""
    name: str
    type: MetricType
    help: str = ""
    metrics: Tuple[Metric, ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ValueError("Metric family needs a name")
        if not isinstance(self.type, MetricType):
            raise ValueError(f"Metric family '{self.name}' has invalid type {self.type!r}")

        expected = METRIC_CLASSES[self.type]
        for metric in self.metrics:
            if not isinstance(metric, expected):
                raise ValueError(
                    f"Metric type is [{self.type}] so instances of [{expected.__name__}] are expected, "
                    f"but got metric object of type [{type(metric).__name__}]"
                )


def metric_to_dict(metric: Metric) -> Dict[str, Any]:
    """Plain-data form of a metric with string-rendered numbers."""
    data: Dict[str, Any] = {"labels": dict(metric.labels)}

    match metric:
        case Counter(value=value) | Gauge(value=value):
            data["value"] = convert_float_to_string(value)
        case Summary():
            data["quantiles"] = {
                convert_float_to_string(q.quantile): convert_float_to_string(q.value)
                for q in metric.quantiles
            }
            data["count"] = metric.sample_count
            data["sum"] = convert_float_to_string(metric.sample_sum)
        case Histogram():
            data["buckets"] = {
                convert_float_to_string(b.upper_bound): b.cumulative_count
                for b in metric.buckets
            }
            data["count"] = metric.sample_count
            data["sum"] = convert_float_to_string(metric.sample_sum)

    return data


def family_to_dict(family: MetricFamily) -> Dict[str, Any]:
    """Plain-data form of a family, suitable for JSON."""
    return {
        "name": family.name,
        "help": family.help,
        "type": family.type.value,
        "metrics": [metric_to_dict(m) for m in family.metrics],
    }
