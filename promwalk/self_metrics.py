"""Self-monitoring metrics for the scraper, exported with prometheus_client."""
from typing import Optional
from prometheus_client import (
    Counter, Histogram,
    CollectorRegistry, start_http_server
)
import logging

from promwalk.config import SelfMetricsConfig

logger = logging.getLogger(__name__)


class ScrapeSelfMetrics:
    """Counters and timings describing the scraper's own work."""

    def __init__(self, registry: Optional[CollectorRegistry] = None, prefix: str = ""):
        if registry is None:
            registry = CollectorRegistry()
        self.registry = registry

        self.scrapes_total = Counter(
            f"{prefix}scrapes_total",
            "Total number of scrapes performed",
            ["target", "format"],
            registry=registry
        )

        self.families_total = Counter(
            f"{prefix}families_total",
            "Total number of metric families walked",
            ["target"],
            registry=registry
        )

        self.metrics_total = Counter(
            f"{prefix}metrics_total",
            "Total number of metrics walked",
            ["target"],
            registry=registry
        )

        self.recovered_errors_total = Counter(
            f"{prefix}recovered_errors_total",
            "Lines or samples dropped while parsing",
            ["target", "error"],
            registry=registry
        )

        self.fatal_errors_total = Counter(
            f"{prefix}fatal_errors_total",
            "Scrapes cut short by a fatal error",
            ["target", "error"],
            registry=registry
        )

        self.scrape_duration_seconds = Histogram(
            f"{prefix}scrape_duration_seconds",
            "Duration of each scrape in seconds",
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry
        )

    def record_scrape(self, target: str, data_format: str, families: int, metrics: int, duration: float):
        """Record a finished (possibly truncated) scrape."""
        self.scrapes_total.labels(target=target, format=data_format).inc()
        self.families_total.labels(target=target).inc(families)
        self.metrics_total.labels(target=target).inc(metrics)
        self.scrape_duration_seconds.observe(duration)

    def record_recovered_error(self, target: str, error: Exception):
        self.recovered_errors_total.labels(target=target, error=type(error).__name__).inc()

    def record_fatal_error(self, target: str, error: Exception):
        self.fatal_errors_total.labels(target=target, error=type(error).__name__).inc()


def start_self_metrics_server(config: SelfMetricsConfig, registry: CollectorRegistry):
    """Start the HTTP server exposing self-metrics."""
    try:
        start_http_server(
            config.port,
            addr=config.bind_address,
            registry=registry
        )
        logger.info(
            f"Self-metrics listening on "
            f"{config.bind_address}:{config.port}/metrics"
        )
    except Exception as e:
        logger.error(f"Failed to start self-metrics HTTP server: {e}")
        raise
