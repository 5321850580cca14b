"""Traversal of parsed metric families, notifying a walker in order."""
from abc import ABC, abstractmethod
from typing import BinaryIO, Generic, Optional, TypeVar
import logging

from promwalk.binary_parser import BinaryMetricDataParser, convert_metric_family
from promwalk.errors import DiagnosticSink, log_diagnostic
from promwalk.metrics import Counter, Gauge, Histogram, MetricFamily, Summary
from promwalk.text_parser import TextMetricDataParser
from promwalk.walkers import MetricsWalker

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MetricsProcessor(ABC, Generic[T]):
    """
    Iterates the metric families a format-specific parser produces and
    notifies the walker of each family and metric.

    The stream is owned by the caller and is never closed here.
    """

    def __init__(
        self,
        stream: BinaryIO,
        walker: MetricsWalker,
        diagnostics: Optional[DiagnosticSink] = None
    ):
        self.stream = stream
        self.walker = walker
        self.diagnostics = diagnostics or log_diagnostic
        self.families_processed = 0
        self.metrics_processed = 0

    @abstractmethod
    def create_parser(self):
        """Return a parser whose parse() yields one family per call, then None."""

    @abstractmethod
    def convert(self, family: T) -> MetricFamily:
        """Convert the parser's family object into the common model."""

    def walk(self):
        """
        Walk every metric family in the stream.

        walk_finish is always called, with the counts reached so far, even
        when a fatal error cuts the traversal short. The error is re-raised
        afterwards.
        """
        self.walker.walk_start()
        self.families_processed = 0
        self.metrics_processed = 0

        try:
            parser = self.create_parser()
            raw_family = parser.parse()

            while raw_family is not None:
                family = self.convert(raw_family)
                self.walker.walk_metric_family(family, self.families_processed)
                self.families_processed += 1

                for index, metric in enumerate(family.metrics):
                    match metric:
                        case Counter():
                            self.walker.walk_counter_metric(family, metric, index)
                        case Gauge():
                            self.walker.walk_gauge_metric(family, metric, index)
                        case Summary():
                            self.walker.walk_summary_metric(family, metric, index)
                        case Histogram():
                            self.walker.walk_histogram_metric(family, metric, index)

                self.metrics_processed += len(family.metrics)
                raw_family = parser.parse()

        except Exception as e:
            logger.error(
                f"Traversal aborted after {self.families_processed} families "
                f"and {self.metrics_processed} metrics: {e}"
            )
            raise
        finally:
            self.walker.walk_finish(self.families_processed, self.metrics_processed)


class TextMetricsProcessor(MetricsProcessor[MetricFamily]):
    """Walks metric families given as text exposition data."""

    def create_parser(self) -> TextMetricDataParser:
        return TextMetricDataParser(self.stream, diagnostics=self.diagnostics)

    def convert(self, family: MetricFamily) -> MetricFamily:
        # the text parser already produces the common model
        return family


class BinaryMetricsProcessor(MetricsProcessor):
    """Walks metric families given as delimited protocol buffer data."""

    def create_parser(self) -> BinaryMetricDataParser:
        return BinaryMetricDataParser(self.stream)

    def convert(self, family) -> MetricFamily:
        return convert_metric_family(family)
