"""Numeric literal conversion and label helpers."""
from typing import Dict, Optional, Tuple
import math

from promwalk.errors import ExpositionSyntaxError


def convert_string_to_float(value: str) -> float:
    """
    Parse a sample value.

    ``NaN``, ``+Inf`` and ``-Inf`` are matched case-insensitively; anything
    else must be a decimal or scientific float literal.
    """
    lowered = value.lower()
    if lowered == "nan":
        return math.nan
    if lowered == "+inf":
        return math.inf
    if lowered == "-inf":
        return -math.inf

    # float() would also take "inf", "infinity" and digit separators
    if "_" in value or "inf" in lowered or "nan" in lowered:
        raise ExpositionSyntaxError(f"Invalid numeric literal: {value!r}")
    try:
        return float(value)
    except ValueError:
        raise ExpositionSyntaxError(f"Invalid numeric literal: {value!r}") from None


def convert_float_to_string(value: float) -> str:
    """Render a value; infinities use the exposition spelling."""
    if math.isinf(value):
        return "-Inf" if value < 0 else "+Inf"
    if math.isnan(value):
        return "NaN"
    return "%f" % value


def label_key(labels: Dict[str, str]) -> Tuple[Tuple[str, str], ...]:
    """Order-independent identity of a label set."""
    return tuple(sorted(labels.items()))


def build_label_list_string(
    labels: Optional[Dict[str, str]],
    prefix: Optional[str] = None,
    suffix: Optional[str] = None
) -> str:
    """Render labels as ``name1=value1,name2=value2`` between prefix and suffix."""
    prefix = prefix or ""
    suffix = suffix or ""
    if not labels:
        return f"{prefix}{suffix}"

    pairs = ",".join(f"{k}={v}" for k, v in labels.items())
    return f"{prefix}{pairs}{suffix}"
