"""Fetches metric data from an endpoint or file and walks it in whichever format it arrives."""
from enum import Enum
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple
from urllib.parse import unquote, urlparse
import io
import logging
import time

import httpx

from promwalk.errors import DiagnosticSink, PromwalkError, log_diagnostic
from promwalk.metrics import MetricFamily
from promwalk.processor import BinaryMetricsProcessor, MetricsProcessor, TextMetricsProcessor
from promwalk.self_metrics import ScrapeSelfMetrics
from promwalk.walkers import CollectorMetricsWalker, MetricsWalker

logger = logging.getLogger(__name__)


class DataFormat(Enum):
    """The supported exposition formats and their content types."""
    TEXT = "text/plain"
    BINARY = "application/vnd.google.protobuf; proto=io.prometheus.client.MetricFamily; encoding=delimited"

    @property
    def content_type(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: Optional[str]) -> Optional["DataFormat"]:
        if name is None:
            return None
        return cls[name.upper()]


def processor_for_content_type(
    content_type: Optional[str],
    stream: BinaryIO,
    walker: MetricsWalker,
    known_format: Optional[DataFormat] = None,
    diagnostics: Optional[DiagnosticSink] = None
) -> MetricsProcessor:
    """
    Pick the processor for the data's content type.

    A missing or "unknown" content type falls back to ``known_format``, and
    to text when that is not given either.
    """
    if not content_type or "unknown" in content_type:
        content_type = (known_format or DataFormat.TEXT).content_type

    if "application/vnd.google.protobuf" in content_type:
        return BinaryMetricsProcessor(stream, walker, diagnostics=diagnostics)
    if "text/plain" not in content_type:
        # all endpoints are required to support text
        logger.debug(f"Unknown content type [{content_type}], trying text format")
    return TextMetricsProcessor(stream, walker, diagnostics=diagnostics)


class Scraper:
    """
    Scrapes one metrics endpoint.

    HTTP(S) URLs are fetched with httpx, asking for the binary format first;
    ``file://`` URLs and plain paths are read from disk, where ``data_format``
    decides the format since there is no content type.
    """

    def __init__(
        self,
        url: str,
        data_format: Optional[DataFormat] = None,
        authorization: Optional[str] = None,
        timeout_s: float = 10.0,
        self_metrics: Optional[ScrapeSelfMetrics] = None,
        target_name: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.url = url
        self.data_format = data_format
        self.authorization = authorization
        self.timeout_s = timeout_s
        self.transport = transport
        self.self_metrics = self_metrics
        self.target_name = target_name or url
        logger.debug(
            f"Will scrape Prometheus data from [{self.url}] with data format "
            f"[{self.data_format.name if self.data_format else '<TBD>'}]"
        )

    @classmethod
    def from_host(
        cls,
        host: Optional[str] = None,
        port: int = 0,
        context: Optional[str] = None,
        authorization: Optional[str] = None
    ) -> "Scraper":
        """Build a scraper for http://host:port/context with the usual defaults."""
        host = host or "127.0.0.1"
        port = port or 9090
        context = context or "/metrics"
        if not context.startswith("/"):
            context = f"/{context}"
        return cls(f"http://{host}:{port}{context}", authorization=authorization)

    @classmethod
    def from_file(cls, path: str, data_format: DataFormat) -> "Scraper":
        return cls(Path(path).absolute().as_uri(), data_format=data_format)

    def _is_http(self) -> bool:
        return urlparse(self.url).scheme in ("http", "https")

    def _file_path(self) -> Path:
        parsed = urlparse(self.url)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        return Path(self.url)

    def open_connection(self) -> Tuple[BinaryIO, Optional[str]]:
        """
        Open the endpoint.

        Returns:
            The data stream and the content type reported by the transport
            (None for files).
        """
        if not self._is_http():
            return open(self._file_path(), "rb"), None

        headers = {"Accept": DataFormat.BINARY.content_type}
        if self.authorization:
            headers["Authorization"] = self.authorization

        with httpx.Client(timeout=self.timeout_s, transport=self.transport) as client:
            response = client.get(self.url, headers=headers)
            response.raise_for_status()

        return io.BytesIO(response.content), response.headers.get("content-type")

    def scrape(self, walker: Optional[MetricsWalker] = None) -> Optional[List[MetricFamily]]:
        """
        Scrape the endpoint.

        With no walker, every metric family is collected and returned.
        Otherwise the given walker is driven and None is returned.

        Raises:
            httpx.HTTPError: if the endpoint could not be fetched
            PromwalkError: if the data is unreadable in its format
        """
        collector = None
        if walker is None:
            collector = CollectorMetricsWalker()
            walker = collector

        stream, content_type = self.open_connection()
        start = time.time()
        processor = processor_for_content_type(
            content_type,
            stream,
            walker,
            known_format=self.data_format,
            diagnostics=self._diagnostics
        )
        data_format = "binary" if isinstance(processor, BinaryMetricsProcessor) else "text"

        try:
            processor.walk()
        except PromwalkError as e:
            if self.self_metrics:
                self.self_metrics.record_fatal_error(self.target_name, e)
            raise
        finally:
            stream.close()
            if self.self_metrics:
                self.self_metrics.record_scrape(
                    self.target_name,
                    data_format,
                    processor.families_processed,
                    processor.metrics_processed,
                    time.time() - start
                )

        if collector is not None:
            return collector.all_metric_families
        return None

    def _diagnostics(self, error: Exception, line: str):
        log_diagnostic(error, line)
        if self.self_metrics:
            self.self_metrics.record_recovered_error(self.target_name, error)
