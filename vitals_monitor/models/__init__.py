"""
Data models for vitals and readings.
"""

from .vital import MetricKind, clamp_reading

__all__ = [
    "MetricKind",
    "clamp_reading",
]
