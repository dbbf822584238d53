"""
Vital (metric) identifiers and reading normalization.
"""

import math
from enum import Enum
from typing import Any


class MetricKind(Enum):
    """
    Monitored vital.

    The value doubles as the settings key stem, e.g. ``show-temp`` and
    ``temp-update-interval``.
    """

    CPU = "cpu"
    RAM = "ram"
    STORAGE = "storage"
    TEMPERATURE = "temp"
    GPU = "gpu"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def visibility_key(self) -> str:
        return f"show-{self.value}"

    @property
    def interval_key(self) -> str:
        return f"{self.value}-update-interval"

    @classmethod
    def from_name(cls, name: str) -> "MetricKind":
        """Resolve a metric from its key stem or a common alias."""
        lowered = name.strip().lower()
        if lowered in _ALIASES:
            return _ALIASES[lowered]
        return cls(lowered)


_DISPLAY_NAMES = {
    MetricKind.CPU: "CPU",
    MetricKind.RAM: "RAM",
    MetricKind.STORAGE: "Storage",
    MetricKind.TEMPERATURE: "Temperature",
    MetricKind.GPU: "GPU",
}

_ALIASES = {
    "temperature": MetricKind.TEMPERATURE,
    "memory": MetricKind.RAM,
    "disk": MetricKind.STORAGE,
}


def clamp_reading(value: Any) -> float:
    """
    Normalize a raw value into a reading in [0, 100].

    None, NaN and anything that is not a number become 0.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return max(0.0, min(100.0, number))
