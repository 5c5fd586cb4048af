"""Metric data structures produced by the extractor."""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class MetricSample:
    """Flat metric values extracted from one node status payload."""

    values: Dict[str, float] = field(default_factory=dict)
    node: str = ""  # Self-reported node identity, empty if unknown

    def get(self, key: str, default: float = 0.0) -> float:
        """Return the value for key, or default when the key was not extracted."""
        return self.values.get(key, default)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_empty(self) -> bool:
        return not self.values and not self.node
