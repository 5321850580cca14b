"""Walkers: consumers notified of metric families and metrics in traversal order."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, TextIO
import json
import logging
import sys
import xml.etree.ElementTree as ET

from promwalk.metrics import (
    Counter,
    Gauge,
    Histogram,
    MetricFamily,
    MetricType,
    Summary,
    family_to_dict,
    metric_to_dict,
)
from promwalk.util import build_label_list_string, convert_float_to_string

logger = logging.getLogger(__name__)


class MetricsWalker(ABC):
    """Base class for consumers of a metric traversal."""

    @abstractmethod
    def walk_start(self):
        """Called once before any family."""

    @abstractmethod
    def walk_finish(self, families_processed: int, metrics_processed: int):
        """Called last, even when the traversal was cut short."""

    @abstractmethod
    def walk_metric_family(self, family: MetricFamily, index: int):
        """Called when a new family is about to be traversed; index is 0-based."""

    @abstractmethod
    def walk_counter_metric(self, family: MetricFamily, counter: Counter, index: int):
        pass

    @abstractmethod
    def walk_gauge_metric(self, family: MetricFamily, gauge: Gauge, index: int):
        pass

    @abstractmethod
    def walk_summary_metric(self, family: MetricFamily, summary: Summary, index: int):
        pass

    @abstractmethod
    def walk_histogram_metric(self, family: MetricFamily, histogram: Histogram, index: int):
        pass

    def build_label_list_string(
        self,
        labels: Optional[Dict[str, str]],
        prefix: Optional[str] = None,
        suffix: Optional[str] = None
    ) -> str:
        return build_label_list_string(labels, prefix, suffix)


class CollectorMetricsWalker(MetricsWalker):
    """Collects every metric family it is shown."""

    def __init__(self):
        self.finished = False
        self._families: List[MetricFamily] = []

    @property
    def all_metric_families(self) -> Optional[List[MetricFamily]]:
        """The collected families, or None until the walk has finished."""
        return self._families if self.finished else None

    def walk_start(self):
        self.finished = False
        self._families = []

    def walk_finish(self, families_processed: int, metrics_processed: int):
        self.finished = True

    def walk_metric_family(self, family: MetricFamily, index: int):
        self._families.append(family)

    def walk_counter_metric(self, family, counter, index):
        pass

    def walk_gauge_metric(self, family, gauge, index):
        pass

    def walk_summary_metric(self, family, summary, index):
        pass

    def walk_histogram_metric(self, family, histogram, index):
        pass


class LoggingMetricsWalker(MetricsWalker):
    """Logs each family and metric at the given level."""

    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def walk_start(self):
        pass

    def walk_finish(self, families_processed: int, metrics_processed: int):
        pass

    def walk_metric_family(self, family: MetricFamily, index: int):
        logger.log(
            self.level,
            f"Metric Family [{family.name}] of type [{family.type}] "
            f"has [{len(family.metrics)}] metrics: {family.help}"
        )

    def walk_counter_metric(self, family, counter, index):
        logger.log(
            self.level,
            f"COUNTER: {counter.name}{self.build_label_list_string(counter.labels, '{', '}')}"
            f"={convert_float_to_string(counter.value)}"
        )

    def walk_gauge_metric(self, family, gauge, index):
        logger.log(
            self.level,
            f"GAUGE: {gauge.name}{self.build_label_list_string(gauge.labels, '{', '}')}"
            f"={convert_float_to_string(gauge.value)}"
        )

    def walk_summary_metric(self, family, summary, index):
        quantiles = ", ".join(str(q) for q in summary.quantiles)
        logger.log(
            self.level,
            f"SUMMARY: {summary.name}{self.build_label_list_string(summary.labels, '{', '}')}: "
            f"count={summary.sample_count}, sum={convert_float_to_string(summary.sample_sum)}, "
            f"quantiles=[{quantiles}]"
        )

    def walk_histogram_metric(self, family, histogram, index):
        buckets = ", ".join(str(b) for b in histogram.buckets)
        logger.log(
            self.level,
            f"HISTOGRAM: {histogram.name}{self.build_label_list_string(histogram.labels, '{', '}')}: "
            f"count={histogram.sample_count}, sum={convert_float_to_string(histogram.sample_sum)}, "
            f"buckets=[{buckets}]"
        )


class SimpleMetricsWalker(MetricsWalker):
    """Prints a plain-text listing of the metrics."""

    def __init__(self, url: Optional[str] = None, out: Optional[TextIO] = None):
        self.url = url
        self.out = out or sys.stdout

    def _print(self, text: str):
        print(text, file=self.out)

    def walk_start(self):
        if self.url:
            self._print(f"Scraping metrics from Prometheus protocol endpoint: {self.url}")

    def walk_finish(self, families_processed: int, metrics_processed: int):
        if metrics_processed == 0:
            self._print("There are no metrics")

    def walk_metric_family(self, family: MetricFamily, index: int):
        self._print(f"* {family.name} ({family.type}): {family.help}")

    def _print_value(self, metric, index: int):
        labels = self.build_label_list_string(metric.labels, "{", "}")
        self._print(f"  +{index:2d}. {metric.name}{labels} [{convert_float_to_string(metric.value)}]")

    def walk_counter_metric(self, family, counter, index):
        self._print_value(counter, index)

    def walk_gauge_metric(self, family, gauge, index):
        self._print_value(gauge, index)

    def walk_summary_metric(self, family, summary, index):
        labels = self.build_label_list_string(summary.labels, "{", "}")
        quantiles = ", ".join(str(q) for q in summary.quantiles)
        self._print(
            f"  +{index:2d}. {summary.name}{labels} "
            f"[{summary.sample_count}/{convert_float_to_string(summary.sample_sum)}] {{{quantiles}}}"
        )

    def walk_histogram_metric(self, family, histogram, index):
        labels = self.build_label_list_string(histogram.labels, "{", "}")
        buckets = ", ".join(str(b) for b in histogram.buckets)
        self._print(
            f"  +{index:2d}. {histogram.name}{labels} "
            f"[{histogram.sample_count}/{convert_float_to_string(histogram.sample_sum)}] {{{buckets}}}"
        )


class JSONMetricsWalker(MetricsWalker):
    """Writes the traversal as a JSON array of families when the walk finishes."""

    def __init__(self, out: Optional[TextIO] = None, indent: Optional[int] = 2):
        self.out = out or sys.stdout
        self.indent = indent
        self.families: List[Dict[str, Any]] = []

    def walk_start(self):
        self.families = []

    def walk_finish(self, families_processed: int, metrics_processed: int):
        json.dump(self.families, self.out, indent=self.indent)
        self.out.write("\n")

    def walk_metric_family(self, family: MetricFamily, index: int):
        entry = family_to_dict(family)
        # metrics are appended as they are walked
        entry["metrics"] = []
        self.families.append(entry)

    def _add(self, metric):
        self.families[-1]["metrics"].append(metric_to_dict(metric))

    def walk_counter_metric(self, family, counter, index):
        self._add(counter)

    def walk_gauge_metric(self, family, gauge, index):
        self._add(gauge)

    def walk_summary_metric(self, family, summary, index):
        self._add(summary)

    def walk_histogram_metric(self, family, histogram, index):
        self._add(histogram)


class XMLMetricsWalker(MetricsWalker):
    """Writes a ``<metricFamilies>`` XML document when the walk finishes."""

    def __init__(self, url: Optional[str] = None, out: Optional[TextIO] = None):
        self.url = url
        self.out = out or sys.stdout
        self.root: Optional[ET.Element] = None
        self._family: Optional[ET.Element] = None

    def walk_start(self):
        self.root = ET.Element("metricFamilies")
        self._family = None
        if self.url:
            ET.SubElement(self.root, "url").text = self.url

    def walk_finish(self, families_processed: int, metrics_processed: int):
        ET.indent(self.root)
        self.out.write(ET.tostring(self.root, encoding="unicode"))
        self.out.write("\n")

    def walk_metric_family(self, family: MetricFamily, index: int):
        self._family = ET.SubElement(self.root, "metricFamily")
        ET.SubElement(self._family, "name").text = family.name
        ET.SubElement(self._family, "type").text = family.type.value
        ET.SubElement(self._family, "help").text = family.help

    def _metric_element(self, family: MetricFamily, metric, metric_type: MetricType) -> ET.Element:
        element = ET.SubElement(self._family, "metric")
        ET.SubElement(element, "name").text = family.name
        ET.SubElement(element, "type").text = metric_type.value
        ET.SubElement(element, "labels").text = self.build_label_list_string(metric.labels)
        return element

    def walk_counter_metric(self, family, counter, index):
        element = self._metric_element(family, counter, MetricType.COUNTER)
        ET.SubElement(element, "value").text = convert_float_to_string(counter.value)

    def walk_gauge_metric(self, family, gauge, index):
        element = self._metric_element(family, gauge, MetricType.GAUGE)
        ET.SubElement(element, "value").text = convert_float_to_string(gauge.value)

    def walk_summary_metric(self, family, summary, index):
        element = self._metric_element(family, summary, MetricType.SUMMARY)
        ET.SubElement(element, "count").text = str(summary.sample_count)
        ET.SubElement(element, "sum").text = convert_float_to_string(summary.sample_sum)
        if summary.quantiles:
            quantiles = ET.SubElement(element, "quantiles")
            for quantile in summary.quantiles:
                ET.SubElement(quantiles, "quantile").text = str(quantile)

    def walk_histogram_metric(self, family, histogram, index):
        element = self._metric_element(family, histogram, MetricType.HISTOGRAM)
        ET.SubElement(element, "count").text = str(histogram.sample_count)
        ET.SubElement(element, "sum").text = convert_float_to_string(histogram.sample_sum)
        if histogram.buckets:
            buckets = ET.SubElement(element, "buckets")
            for bucket in histogram.buckets:
                ET.SubElement(buckets, "bucket").text = str(bucket)
