"""Data structures for raw exposition samples."""
from dataclasses import dataclass, field
from typing import Dict


@dataclass
class Sample:
    """One sample line before it is aggregated into a typed metric."""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    raw_value: str = ""
    line: str = ""
