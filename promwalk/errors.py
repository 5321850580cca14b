"""Error taxonomy and the diagnostic sink for recovered parse errors."""
from typing import Callable, Optional
import logging

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[Exception, str], None]


class PromwalkError(Exception):
    """Base class for all errors raised while reading metric data."""


class ExpositionSyntaxError(PromwalkError, ValueError):
    """A malformed sample, label, quote or directive in the text format."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


class UnexpectedSampleError(ExpositionSyntaxError):
    """A sample line that does not belong to any open metric family."""


class FormatMismatchError(PromwalkError):
    """The stream does not look like text exposition data."""


class AggregationError(PromwalkError, ValueError):
    """A sample could not be folded into its metric."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


class DecodeError(PromwalkError):
    """The binary stream could not be decoded."""


def log_diagnostic(error: Exception, line: str) -> None:
    """Default sink: log the recovered error with the offending raw line."""
    logger.warning(f"Ignoring line ({error}): {line}")
