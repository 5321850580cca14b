"""Tests for numeric conversion, label helpers and the metric model."""
import math

import pytest

from promwalk.errors import ExpositionSyntaxError
from promwalk.metrics import (
    Bucket,
    Counter,
    Gauge,
    Histogram,
    MetricFamily,
    MetricType,
    Quantile,
    Summary,
    family_to_dict,
)
from promwalk.util import (
    build_label_list_string,
    convert_float_to_string,
    convert_string_to_float,
    label_key,
)


def test_special_literals_case_insensitive():
    assert math.isnan(convert_string_to_float("nan"))
    assert math.isnan(convert_string_to_float("NaN"))
    assert convert_string_to_float("+Inf") == math.inf
    assert convert_string_to_float("+INF") == math.inf
    assert convert_string_to_float("-Inf") == -math.inf


def test_decimal_and_scientific():
    assert convert_string_to_float("42") == 42.0
    assert convert_string_to_float("-0.5") == -0.5
    assert convert_string_to_float("1.5e3") == 1500.0
    assert convert_string_to_float("2E-2") == 0.02


@pytest.mark.parametrize("literal", ["abc", "", "1_000", "inf", "Infinity", "1.2.3"])
def test_invalid_literals(literal):
    with pytest.raises(ExpositionSyntaxError):
        convert_string_to_float(literal)


def test_format_special_values_round_trip():
    for value in (math.inf, -math.inf):
        text = convert_float_to_string(value)
        assert text in ("+Inf", "-Inf")
        assert convert_string_to_float(text) == value

    assert convert_float_to_string(math.nan) == "NaN"
    assert math.isnan(convert_string_to_float(convert_float_to_string(math.nan)))


def test_format_fixed_point():
    assert convert_float_to_string(5.0) == "5.000000"
    assert convert_float_to_string(-0.25) == "-0.250000"


def test_label_key_ignores_order():
    assert label_key({"a": "1", "b": "2"}) == label_key({"b": "2", "a": "1"})


def test_build_label_list_string():
    assert build_label_list_string({"b": "2", "a": "1"}, "{", "}") == "{b=2,a=1}"
    assert build_label_list_string({}, "{", "}") == "{}"
    assert build_label_list_string(None) == ""


def test_family_rejects_mismatched_metric():
    with pytest.raises(ValueError):
        MetricFamily(name="foo", type=MetricType.COUNTER, metrics=(Gauge(name="foo", value=1.0),))


def test_family_accepts_matching_metrics():
    family = MetricFamily(
        name="foo",
        type=MetricType.COUNTER,
        metrics=(Counter(name="foo", value=1.0), Counter(name="foo", labels={"a": "b"}, value=2.0)),
    )
    assert len(family.metrics) == 2


def test_synthetic_labels_rejected_by_model():
    with pytest.raises(ValueError):
        Summary(name="s", labels={"quantile": "0.5"})
    with pytest.raises(ValueError):
        Histogram(name="h", labels={"le": "1"})


def test_metric_type_from_name():
    assert MetricType.from_name("counter") is MetricType.COUNTER
    assert MetricType.from_name("Histogram") is MetricType.HISTOGRAM
    with pytest.raises(ValueError):
        MetricType.from_name("untyped")


def test_family_to_dict():
    family = MetricFamily(
        name="rpc",
        type=MetricType.SUMMARY,
        help="RPC latency",
        metrics=(Summary(name="rpc", labels={"svc": "a"}, sample_count=2, sample_sum=1.5,
                         quantiles=(Quantile(0.5, 0.7),)),),
    )
    data = family_to_dict(family)

    assert data["name"] == "rpc"
    assert data["type"] == "SUMMARY"
    assert data["metrics"] == [{
        "labels": {"svc": "a"},
        "quantiles": {"0.500000": "0.700000"},
        "count": 2,
        "sum": "1.500000",
    }]


def test_bucket_and_quantile_strings():
    assert str(Bucket(math.inf, 4)) == "+Inf:4"
    assert str(Quantile(0.5, 1.0)) == "0.500000:1.000000"
