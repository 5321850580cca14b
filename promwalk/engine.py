"""Periodic scrape engine over the configured targets."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging
import threading
import time

from promwalk.config import Config
from promwalk.metrics import MetricFamily
from promwalk.scraper import DataFormat, Scraper
from promwalk.self_metrics import ScrapeSelfMetrics
from promwalk.walkers import CollectorMetricsWalker

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of the latest scrape of one target."""
    families: List[MetricFamily] = field(default_factory=list)
    metric_count: int = 0
    error: Optional[str] = None
    duration_s: float = 0.0
    timestamp: float = 0.0

    @property
    def family_count(self) -> int:
        return len(self.families)

    def summary(self) -> Dict:
        return {
            "families": self.family_count,
            "metrics": self.metric_count,
            "error": self.error,
            "duration_s": round(self.duration_s, 4),
            "timestamp": self.timestamp,
        }


class ScrapeEngine:
    """Scrapes every target once per interval and keeps the latest results."""

    def __init__(self, config: Config, self_metrics: Optional[ScrapeSelfMetrics] = None):
        self.config = config
        self.self_metrics = self_metrics
        self.scrapers: Dict[str, Scraper] = {}
        self.results: Dict[str, ScrapeResult] = {}
        self.running = False
        self.tick_count = 0
        self.start_time = time.time()
        self._stop_event = threading.Event()
        self._results_lock = threading.Lock()

        self._initialize_scrapers()

        logger.info("Scrape engine initialized")

    def _initialize_scrapers(self):
        """Create one scraper per configured target."""
        for target in self.config.targets:
            self.scrapers[target.name] = Scraper(
                target.url,
                data_format=DataFormat.from_name(target.data_format),
                authorization=target.authorization,
                timeout_s=target.timeout_s,
                self_metrics=self.self_metrics,
                target_name=target.name
            )
            logger.info(f"Target '{target.name}': {target.url}")

        logger.info(f"Initialized {len(self.scrapers)} scrape targets")

    def scrape_target(self, name: str) -> ScrapeResult:
        """Scrape one target and store its result; errors are recorded, not raised."""
        scraper = self.scrapers[name]
        collector = CollectorMetricsWalker()
        result = ScrapeResult(timestamp=time.time())
        start = time.time()

        try:
            scraper.scrape(collector)
        except Exception as e:
            logger.error(f"Error scraping target '{name}': {e}")
            result.error = f"{type(e).__name__}: {e}"

        # a fatal parse error still leaves the families walked before it
        result.families = list(collector.all_metric_families or [])
        result.metric_count = sum(len(f.metrics) for f in result.families)
        result.duration_s = time.time() - start

        with self._results_lock:
            self.results[name] = result
        return result

    def get_result(self, name: str) -> Optional[ScrapeResult]:
        with self._results_lock:
            return self.results.get(name)

    def tick(self):
        """Scrape every target once."""
        tick_start = time.time()
        total_metrics = 0

        for name in self.scrapers:
            result = self.scrape_target(name)
            total_metrics += result.metric_count

        self.tick_count += 1
        tick_duration = time.time() - tick_start

        logger.info(
            f"Tick {self.tick_count}: scraped {len(self.scrapers)} targets, "
            f"{total_metrics} metrics in {tick_duration:.3f}s"
        )

    def run(self):
        """Run the scrape loop until stop() is called."""
        self.running = True
        self.start_time = time.time()
        self._stop_event.clear()

        logger.info("Starting scrape engine")

        interval = self.config.global_.scrape_interval_s

        while self.running:
            tick_start = time.time()

            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in tick: {e}", exc_info=True)

            # Sleep for remaining time in the interval
            tick_duration = time.time() - tick_start
            sleep_time = max(0, interval - tick_duration)

            if sleep_time > 0:
                self._stop_event.wait(sleep_time)
            else:
                logger.warning(
                    f"Tick took {tick_duration:.3f}s, longer than interval {interval}s"
                )

    def stop(self):
        """Stop the scrape engine."""
        logger.info("Stopping scrape engine")
        self.running = False
        self._stop_event.set()


def run_engine_thread(engine: ScrapeEngine):
    """Run engine in a separate thread."""
    try:
        engine.run()
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
        engine.stop()
    except Exception as e:
        logger.error(f"Engine thread error: {e}", exc_info=True)
        engine.stop()
