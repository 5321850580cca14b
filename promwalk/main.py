"""Command line entry point: scrape an endpoint once, or run the scrape service."""
import argparse
import logging
import signal
import sys
import threading

import httpx
from pythonjsonlogger.json import JsonFormatter

from promwalk.config import load_config
from promwalk.control_api import ControlAPI
from promwalk.engine import ScrapeEngine, run_engine_thread
from promwalk.errors import PromwalkError
from promwalk.scraper import DataFormat, Scraper
from promwalk.self_metrics import ScrapeSelfMetrics, start_self_metrics_server
from promwalk.walkers import (
    JSONMetricsWalker,
    LoggingMetricsWalker,
    MetricsWalker,
    SimpleMetricsWalker,
    XMLMetricsWalker,
)

WALKER_TYPES = ["simple", "json", "xml", "log"]


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_formatter(log_format: str = "text") -> logging.Formatter:
    """Formatter for the configured log format; "json" writes one object per record."""
    if log_format == "json":
        return JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "time", "levelname": "level", "name": "logger"},
            datefmt=LOG_DATE_FORMAT
        )
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def setup_logging(log_level: str, log_format: str = "text"):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(log_format))
    logging.basicConfig(level=level, handlers=[handler])

    # Reduce noise from some libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def create_walker(walker_type: str, url: str) -> MetricsWalker:
    """Build the renderer selected on the command line."""
    if walker_type == "json":
        return JSONMetricsWalker()
    if walker_type == "xml":
        return XMLMetricsWalker(url)
    if walker_type == "log":
        return LoggingMetricsWalker(logging.INFO)
    return SimpleMetricsWalker(url)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="promwalk",
        description="Scrape a Prometheus metrics endpoint and print the metric data found there"
    )
    parser.add_argument(
        "url",
        nargs="?",
        help="URL of the Prometheus endpoint (e.g. http://localhost:9090/metrics) or a file path"
    )

    renderers = parser.add_mutually_exclusive_group()
    for walker_type in WALKER_TYPES:
        renderers.add_argument(
            f"--{walker_type}",
            dest="walker",
            action="store_const",
            const=walker_type,
            help=f"Render the metrics with the {walker_type} walker"
        )
    parser.set_defaults(walker="simple")

    parser.add_argument(
        "--format",
        choices=["text", "binary"],
        help="Data format to assume when the endpoint reports no content type"
    )
    parser.add_argument("--authorization", help="Authorization header value")
    parser.add_argument("--log-level", default="WARNING", help="Log level for one-shot scrapes")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to a configuration YAML file; runs the periodic scrape service"
    )
    return parser


def scrape_once(args) -> int:
    """Scrape a single endpoint with the chosen renderer."""
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    scraper = Scraper(
        args.url,
        data_format=DataFormat.from_name(args.format),
        authorization=args.authorization
    )
    walker = create_walker(args.walker, args.url)

    try:
        scraper.scrape(walker)
    except (PromwalkError, httpx.HTTPError, OSError) as e:
        logger.error(f"Scrape of {args.url} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def serve(args) -> int:
    """Run the scrape engine with self-metrics and the control API."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(config.global_.log_level, config.global_.log_format)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("promwalk scrape service")
    logger.info("=" * 60)
    logger.info(f"Configuration loaded from: {args.config}")
    logger.info(f"Scrape interval: {config.global_.scrape_interval_s}s")
    logger.info(f"Targets configured: {len(config.targets)}")

    self_metrics = None
    if config.self_metrics.enabled:
        self_metrics = ScrapeSelfMetrics(prefix=config.self_metrics.prefix)
        start_self_metrics_server(config.self_metrics, self_metrics.registry)

    engine = ScrapeEngine(config, self_metrics=self_metrics)
    control_api = ControlAPI(engine)

    engine_thread = threading.Thread(
        target=run_engine_thread,
        args=(engine,),
        daemon=True
    )
    engine_thread.start()
    logger.info("Scrape engine started")

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        engine.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Run control API (blocking)
    logger.info(f"Starting control API on port {config.global_.control_api_port}")
    try:
        control_api.run(
            host="0.0.0.0",
            port=config.global_.control_api_port
        )
    except Exception as e:
        logger.error(f"Control API error: {e}", exc_info=True)
        engine.stop()
        return 1

    return 0


def main(argv=None) -> int:
    """Main function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config:
        return serve(args)
    if not args.url:
        parser.error("Specify the URL of the Prometheus protocol endpoint.")
    return scrape_once(args)


if __name__ == "__main__":
    sys.exit(main())
