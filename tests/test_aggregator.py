"""Tests for folding raw samples into typed metrics."""
import itertools
import math

from promwalk.aggregator import aggregate_family
from promwalk.errors import AggregationError
from promwalk.metrics import Bucket, Counter, Gauge, Histogram, MetricType, Quantile, Summary
from promwalk.tokenizer import parse_sample_line


def samples(*lines):
    return [parse_sample_line(line) for line in lines]


def test_counter_samples_map_one_to_one():
    family = aggregate_family(
        "requests_total", "Total requests", MetricType.COUNTER,
        samples('requests_total{code="200"} 10', 'requests_total{code="500"} 2')
    )

    assert family.name == "requests_total"
    assert family.help == "Total requests"
    assert family.metrics == (
        Counter(name="requests_total", labels={"code": "200"}, value=10.0),
        Counter(name="requests_total", labels={"code": "500"}, value=2.0),
    )


def test_gauge_duplicate_label_sets_are_kept():
    family = aggregate_family("temp", "", MetricType.GAUGE, samples("temp 1", "temp 2"))
    assert [m.value for m in family.metrics] == [1.0, 2.0]
    assert all(isinstance(m, Gauge) for m in family.metrics)


def test_bad_value_skips_only_that_sample(diagnostics):
    family = aggregate_family(
        "temp", "", MetricType.GAUGE,
        samples('temp{room="a"} warm', 'temp{room="b"} 21.5'),
        diagnostics=diagnostics
    )

    assert family.metrics == (Gauge(name="temp", labels={"room": "b"}, value=21.5),)
    error, line = diagnostics.collected[0]
    assert isinstance(error, AggregationError)
    assert line == 'temp{room="a"} warm'


def test_summary_grouped_by_labels():
    family = aggregate_family(
        "rpc", "", MetricType.SUMMARY,
        samples(
            'rpc{service="a",quantile="0.5"} 1',
            'rpc{service="b",quantile="0.5"} 5',
            'rpc{service="a",quantile="0.9"} 2',
            'rpc_sum{service="a"} 30',
            'rpc_count{service="a"} 12',
            'rpc_count{service="b"} 3',
        )
    )

    assert len(family.metrics) == 2
    first, second = family.metrics
    assert first.labels == {"service": "a"}
    assert first.sample_count == 12
    assert first.sample_sum == 30.0
    assert first.quantiles == (Quantile(0.5, 1.0), Quantile(0.9, 2.0))
    assert second.labels == {"service": "b"}
    assert second.sample_count == 3
    assert math.isnan(second.sample_sum)


def test_summary_order_independent():
    rows = ['foo_sum{a="x"} 10', 'foo_count{a="x"} 2', 'foo{a="x",quantile="0.5"} 7']
    results = set()
    for permutation in itertools.permutations(rows):
        family = aggregate_family("foo", "", MetricType.SUMMARY, samples(*permutation))
        assert len(family.metrics) == 1
        metric = family.metrics[0]
        results.add((metric.sample_count, metric.sample_sum, metric.quantiles, tuple(metric.labels.items())))
    assert len(results) == 1


def test_label_order_does_not_split_metric():
    family = aggregate_family(
        "foo", "", MetricType.SUMMARY,
        samples('foo_count{a="1",b="2"} 4', 'foo_sum{b="2",a="1"} 8')
    )
    assert len(family.metrics) == 1
    assert family.metrics[0].sample_count == 4
    assert family.metrics[0].sample_sum == 8.0


def test_histogram_buckets():
    family = aggregate_family(
        "latency", "", MetricType.HISTOGRAM,
        samples(
            'latency_bucket{le="0.1"} 3',
            'latency_bucket{le="1"} 7',
            'latency_bucket{le="+Inf"} 9',
            "latency_sum 4.2",
            "latency_count 9",
        )
    )

    assert len(family.metrics) == 1
    histogram = family.metrics[0]
    assert isinstance(histogram, Histogram)
    assert histogram.labels == {}
    assert histogram.buckets == (Bucket(0.1, 3), Bucket(1.0, 7), Bucket(math.inf, 9))
    assert histogram.sample_count == 9
    assert histogram.sample_sum == 4.2


def test_histogram_bucket_without_le_is_dropped(diagnostics):
    family = aggregate_family(
        "latency", "", MetricType.HISTOGRAM,
        samples('latency_bucket{path="/"} 3', 'latency_count{path="/"} 3'),
        diagnostics=diagnostics
    )

    assert len(family.metrics) == 1
    assert family.metrics[0].buckets == ()
    assert family.metrics[0].sample_count == 3
    assert len(diagnostics.collected) == 1


def test_summary_quantile_without_label_is_dropped(diagnostics):
    family = aggregate_family("foo", "", MetricType.SUMMARY, samples("foo 1"), diagnostics=diagnostics)
    assert family.metrics[0].quantiles == ()
    assert isinstance(diagnostics.collected[0][0], AggregationError)


def test_non_finite_count_is_rejected(diagnostics):
    family = aggregate_family(
        "foo", "", MetricType.SUMMARY,
        samples("foo_count NaN", "foo_sum 1"),
        diagnostics=diagnostics
    )
    assert family.metrics[0].sample_count == 0
    assert family.metrics[0].sample_sum == 1.0
    assert len(diagnostics.collected) == 1


def test_family_with_no_metrics_is_still_returned(diagnostics):
    family = aggregate_family("foo", "docs", MetricType.COUNTER, samples("foo bad"), diagnostics=diagnostics)
    assert family.name == "foo"
    assert family.metrics == ()


def test_synthetic_labels_never_survive():
    summary = aggregate_family("s", "", MetricType.SUMMARY, samples('s{quantile="0.99",x="1"} 1')).metrics[0]
    histogram = aggregate_family("h", "", MetricType.HISTOGRAM, samples('h_bucket{le="1",x="1"} 1')).metrics[0]
    assert isinstance(summary, Summary)
    assert "quantile" not in summary.labels
    assert "le" not in histogram.labels
