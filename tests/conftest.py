"""Shared fixtures: a walker that records every callback it receives."""
import io

import pytest

from promwalk.walkers import MetricsWalker


class RecordingWalker(MetricsWalker):
    """Keeps an ordered log of walker callbacks."""

    def __init__(self):
        self.events = []
        self.families = []
        self.metrics = []

    def walk_start(self):
        self.events.append(("start",))

    def walk_finish(self, families_processed, metrics_processed):
        self.events.append(("finish", families_processed, metrics_processed))

    def walk_metric_family(self, family, index):
        self.events.append(("family", family.name, index))
        self.families.append(family)

    def walk_counter_metric(self, family, counter, index):
        self.events.append(("counter", family.name, index))
        self.metrics.append(counter)

    def walk_gauge_metric(self, family, gauge, index):
        self.events.append(("gauge", family.name, index))
        self.metrics.append(gauge)

    def walk_summary_metric(self, family, summary, index):
        self.events.append(("summary", family.name, index))
        self.metrics.append(summary)

    def walk_histogram_metric(self, family, histogram, index):
        self.events.append(("histogram", family.name, index))
        self.metrics.append(histogram)


@pytest.fixture
def recording_walker():
    return RecordingWalker()


@pytest.fixture
def diagnostics():
    """A sink that collects recovered errors as (error, line) pairs."""
    collected = []

    def sink(error, line):
        collected.append((error, line))

    sink.collected = collected
    return sink


def stream_of(text):
    return io.BytesIO(text.encode("utf-8"))
