"""Text exposition format reader: line reading and metric family accumulation."""
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Set
import logging
import re

from promwalk.aggregator import aggregate_family
from promwalk.errors import (
    DiagnosticSink,
    ExpositionSyntaxError,
    FormatMismatchError,
    UnexpectedSampleError,
    log_diagnostic,
)
from promwalk.metrics import MetricFamily, MetricType
from promwalk.series import Sample
from promwalk.tokenizer import parse_sample_line, unescape_help

logger = logging.getLogger(__name__)

_DIRECTIVE_SPLIT = re.compile(r"[ \t]+")


class LineReader:
    """
    Pulls newline-terminated records from a byte stream.

    The stream belongs to the caller and is never closed here.
    """

    def __init__(self, stream: BinaryIO):
        self.stream = stream

    def read_line(self) -> Optional[str]:
        """Return the next line without its newline, or None at end of stream."""
        raw = self.stream.readline()
        if not raw:
            return None
        if raw.endswith(b"\n"):
            raw = raw[:-1]
        return raw.decode("utf-8", errors="replace")


def allowed_sample_names(name: str, metric_type: MetricType) -> Set[str]:
    """Sample names that belong to a family of the given type."""
    if metric_type in (MetricType.COUNTER, MetricType.GAUGE):
        return {name}
    if metric_type is MetricType.SUMMARY:
        return {name, f"{name}_count", f"{name}_sum"}
    return {f"{name}_count", f"{name}_sum", f"{name}_bucket"}


@dataclass
class _FamilyState:
    """The metric family currently being built up."""
    name: str = ""
    help: str = ""
    type: MetricType = MetricType.GAUGE
    allowed_names: Set[str] = field(default_factory=set)
    samples: List[Sample] = field(default_factory=list)

    def open(self, name: str):
        self.name = name
        self.help = ""
        self.type = MetricType.GAUGE
        self.allowed_names = allowed_sample_names(name, MetricType.GAUGE)
        self.samples = []

    def set_type(self, metric_type: MetricType):
        self.type = metric_type
        self.allowed_names = allowed_sample_names(self.name, metric_type)


class TextMetricDataParser:
    """
    Produces one MetricFamily per call to parse() from text exposition data.

    A line that starts the next family is held in ``pending_line`` and is the
    first line processed by the following call.
    """

    def __init__(self, stream: BinaryIO, diagnostics: Optional[DiagnosticSink] = None):
        self.reader = LineReader(stream)
        self.diagnostics = diagnostics or log_diagnostic
        self.pending_line: Optional[str] = None
        self._first_line_checked = False

    def parse(self) -> Optional[MetricFamily]:
        """
        Read the next complete metric family.

        Returns:
            The family, or None once the stream holds no more families.

        Raises:
            FormatMismatchError: if the data does not look like text format
        """
        if self.pending_line is not None:
            line = self.pending_line
            self.pending_line = None
        else:
            line = self.reader.read_line()

        if line is None:
            return None

        if not self._first_line_checked:
            self._first_line_checked = True
            if line and not line[0].isascii():
                raise FormatMismatchError("Doesn't look like the metric data is in text format")

        state = _FamilyState()

        while line is not None:
            line = line.strip()
            try:
                if line and self._process_line(line, state):
                    self.pending_line = line
                    break
            except ExpositionSyntaxError as e:
                self.diagnostics(e, line)

            line = self.reader.read_line()

        if not state.name:
            return None

        return aggregate_family(
            state.name, state.help, state.type, state.samples, diagnostics=self.diagnostics
        )

    def _process_line(self, line: str, state: _FamilyState) -> bool:
        """Apply one trimmed line; True means it starts a new family."""
        if line.startswith("#"):
            return self._process_directive(line, state)

        sample = parse_sample_line(line)
        if sample.name not in state.allowed_names:
            if state.name:
                return True
            raise UnexpectedSampleError(f"Ignoring an unexpected metric '{sample.name}'", line)

        state.samples.append(sample)
        return False

    def _process_directive(self, line: str, state: _FamilyState) -> bool:
        # 0 is '#', 1 is HELP or TYPE, 2 is the metric name, 3 is the payload
        parts = _DIRECTIVE_SPLIT.split(line, maxsplit=3)
        if len(parts) < 2 or parts[1] not in ("HELP", "TYPE"):
            # plain comment
            return False
        if len(parts) < 3:
            raise ExpositionSyntaxError(f"{parts[1]} directive has no metric name", line)

        name = parts[2]
        if parts[1] == "HELP":
            if name != state.name:
                if state.name:
                    return True
                state.open(name)
            state.help = unescape_help(parts[3]) if len(parts) == 4 else ""
            return False

        if len(parts) < 4:
            raise ExpositionSyntaxError(f"TYPE directive for '{name}' has no type", line)
        try:
            metric_type = MetricType.from_name(parts[3].strip())
        except ValueError as e:
            raise ExpositionSyntaxError(str(e), line) from None

        if name != state.name:
            if state.name:
                return True
            state.open(name)
        state.set_type(metric_type)
        return False
