"""Tests for the collector, logging, simple, JSON and XML walkers."""
import io
import json
import logging
import xml.etree.ElementTree as ET

from promwalk.processor import TextMetricsProcessor
from promwalk.walkers import (
    CollectorMetricsWalker,
    JSONMetricsWalker,
    LoggingMetricsWalker,
    SimpleMetricsWalker,
    XMLMetricsWalker,
)

from conftest import stream_of

TEXT = """\
# HELP jobs_total Jobs run.
# TYPE jobs_total counter
jobs_total{queue="fast"} 3
jobs_total{queue="slow"} +Inf
# TYPE rpc summary
rpc{quantile="0.5"} 0.2
rpc_sum 4
rpc_count 8
# TYPE latency histogram
latency_bucket{le="1"} 2
latency_bucket{le="+Inf"} 5
latency_sum 3.5
latency_count 5
"""


def walk(walker, text=TEXT):
    TextMetricsProcessor(stream_of(text), walker).walk()
    return walker


def test_collector_only_returns_after_finish():
    collector = CollectorMetricsWalker()
    assert collector.all_metric_families is None

    walk(collector)

    assert collector.finished
    assert [f.name for f in collector.all_metric_families] == ["jobs_total", "rpc", "latency"]


def test_simple_walker_output():
    out = io.StringIO()
    walk(SimpleMetricsWalker("http://localhost:9090/metrics", out=out))
    lines = out.getvalue().splitlines()

    assert lines[0] == "Scraping metrics from Prometheus protocol endpoint: http://localhost:9090/metrics"
    assert lines[1] == "* jobs_total (COUNTER): Jobs run."
    assert lines[2] == "  + 0. jobs_total{queue=fast} [3.000000]"
    assert lines[3] == "  + 1. jobs_total{queue=slow} [+Inf]"
    assert lines[5] == "  + 0. rpc{} [8/4.000000] {0.500000:0.200000}"
    assert lines[7] == "  + 0. latency{} [5/3.500000] {1.000000:2, +Inf:5}"


def test_simple_walker_without_metrics():
    out = io.StringIO()
    walk(SimpleMetricsWalker(out=out), text="")
    assert out.getvalue() == "There are no metrics\n"


def test_json_walker_document():
    out = io.StringIO()
    walk(JSONMetricsWalker(out=out))
    document = json.loads(out.getvalue())

    print(json.dumps(document, indent=2))
    assert [f["name"] for f in document] == ["jobs_total", "rpc", "latency"]
    assert document[0]["type"] == "COUNTER"
    assert document[0]["metrics"][1] == {"labels": {"queue": "slow"}, "value": "+Inf"}
    assert document[1]["metrics"][0]["count"] == 8
    assert document[2]["metrics"][0]["buckets"] == {"1.000000": 2, "+Inf": 5}


def test_json_walker_empty_document():
    out = io.StringIO()
    walk(JSONMetricsWalker(out=out), text="")
    assert json.loads(out.getvalue()) == []


def test_xml_walker_document():
    out = io.StringIO()
    walk(XMLMetricsWalker("http://host/metrics", out=out))
    root = ET.fromstring(out.getvalue())

    assert root.tag == "metricFamilies"
    assert root.find("url").text == "http://host/metrics"
    families = root.findall("metricFamily")
    assert [f.find("name").text for f in families] == ["jobs_total", "rpc", "latency"]

    counter = families[0].findall("metric")[0]
    assert counter.find("labels").text == "queue=fast"
    assert counter.find("value").text == "3.000000"

    histogram = families[2].find("metric")
    assert [b.text for b in histogram.find("buckets")] == ["1.000000:2", "+Inf:5"]


def test_logging_walker(caplog):
    with caplog.at_level(logging.INFO, logger="promwalk.walkers"):
        walk(LoggingMetricsWalker(logging.INFO))

    messages = [record.getMessage() for record in caplog.records]
    assert "Metric Family [jobs_total] of type [COUNTER] has [2] metrics: Jobs run." in messages
    assert "COUNTER: jobs_total{queue=fast}=3.000000" in messages
    assert any(m.startswith("HISTOGRAM: latency{}: count=5") for m in messages)
