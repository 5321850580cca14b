"""Folds the raw samples of a finished family into typed metrics."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import logging
import math

from promwalk.errors import (
    AggregationError,
    DiagnosticSink,
    ExpositionSyntaxError,
    log_diagnostic,
)
from promwalk.metrics import (
    Bucket,
    Counter,
    Gauge,
    Histogram,
    Metric,
    MetricFamily,
    MetricType,
    Quantile,
    Summary,
)
from promwalk.series import Sample
from promwalk.util import convert_string_to_float, label_key

logger = logging.getLogger(__name__)

# label that identifies the contributing row rather than the series
SYNTHETIC_LABELS = {
    MetricType.SUMMARY: "quantile",
    MetricType.HISTOGRAM: "le",
}


@dataclass
class _PartialMetric:
    """In-progress summary or histogram for one label set."""
    labels: Dict[str, str]
    sample_count: int = 0
    sample_sum: float = math.nan
    rows: List[Tuple[float, float]] = field(default_factory=list)


def _to_float(raw: str, sample: Sample) -> float:
    try:
        return convert_string_to_float(raw)
    except ExpositionSyntaxError as e:
        raise AggregationError(str(e), sample.line) from None


def _to_count(raw: str, sample: Sample) -> int:
    value = _to_float(raw, sample)
    if math.isnan(value) or math.isinf(value):
        raise AggregationError(f"Count must be finite, got {raw!r}", sample.line)
    return int(value)


def _build_simple(
    family_name: str,
    metric_type: MetricType,
    samples: Sequence[Sample],
    diagnostics: DiagnosticSink
) -> List[Metric]:
    metric_class = Counter if metric_type is MetricType.COUNTER else Gauge
    metrics: List[Metric] = []
    for sample in samples:
        try:
            value = _to_float(sample.raw_value, sample)
        except AggregationError as e:
            diagnostics(e, sample.line)
            continue
        metrics.append(metric_class(name=family_name, labels=dict(sample.labels), value=value))
    return metrics


def _build_grouped(
    family_name: str,
    metric_type: MetricType,
    samples: Sequence[Sample],
    diagnostics: DiagnosticSink
) -> List[Metric]:
    synthetic = SYNTHETIC_LABELS[metric_type]
    count_name = f"{family_name}_count"
    sum_name = f"{family_name}_sum"

    # insertion order is first-seen label set order
    partials: Dict[tuple, _PartialMetric] = {}

    for sample in samples:
        labels = dict(sample.labels)
        row_key = labels.pop(synthetic, None)

        key = label_key(labels)
        partial = partials.get(key)
        if partial is None:
            partial = _PartialMetric(labels=labels)
            partials[key] = partial

        try:
            if sample.name == count_name:
                partial.sample_count = _to_count(sample.raw_value, sample)
            elif sample.name == sum_name:
                partial.sample_sum = _to_float(sample.raw_value, sample)
            elif row_key is None:
                raise AggregationError(
                    f"{metric_type.value.title()} sample is missing the '{synthetic}' label",
                    sample.line
                )
            elif metric_type is MetricType.SUMMARY:
                partial.rows.append(
                    (_to_float(row_key, sample), _to_float(sample.raw_value, sample))
                )
            else:
                partial.rows.append(
                    (_to_float(row_key, sample), _to_count(sample.raw_value, sample))
                )
        except AggregationError as e:
            diagnostics(e, sample.line)

    metrics: List[Metric] = []
    for partial in partials.values():
        if metric_type is MetricType.SUMMARY:
            metrics.append(Summary(
                name=family_name,
                labels=partial.labels,
                sample_count=partial.sample_count,
                sample_sum=partial.sample_sum,
                quantiles=tuple(Quantile(q, v) for q, v in partial.rows),
            ))
        else:
            metrics.append(Histogram(
                name=family_name,
                labels=partial.labels,
                sample_count=partial.sample_count,
                sample_sum=partial.sample_sum,
                buckets=tuple(Bucket(le, int(c)) for le, c in partial.rows),
            ))
    return metrics


def aggregate_family(
    name: str,
    help_text: str,
    metric_type: MetricType,
    samples: Sequence[Sample],
    diagnostics: Optional[DiagnosticSink] = None
) -> MetricFamily:
    """
    Convert the buffered samples of one family into a MetricFamily.

    Counter and gauge samples map one-to-one onto metrics. Summary and
    histogram samples are merged by label set (without ``quantile``/``le``).
    Samples that fail are reported to ``diagnostics`` and skipped; a family
    with no surviving metrics is still returned.
    """
    diagnostics = diagnostics or log_diagnostic

    if metric_type in (MetricType.COUNTER, MetricType.GAUGE):
        metrics = _build_simple(name, metric_type, samples, diagnostics)
    else:
        metrics = _build_grouped(name, metric_type, samples, diagnostics)

    logger.debug(f"Aggregated {len(samples)} samples into {len(metrics)} metrics for '{name}'")

    return MetricFamily(name=name, type=metric_type, help=help_text, metrics=tuple(metrics))
