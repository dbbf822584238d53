"""
Consumers of vital readings.

A sink receives (metric, value) pairs on the event loop thread and must
not block.
"""

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from .logging import get_logger
from .models.vital import MetricKind

if TYPE_CHECKING:
    from .mqtt.client import MQTTClient

logger = get_logger("sink")


class ReadingSink(Protocol):
    """Receives normalized readings from the scheduler."""

    def on_reading(self, metric: MetricKind, value: float) -> None: ...


class LogSink:
    """Writes each reading to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def on_reading(self, metric: MetricKind, value: float) -> None:
        logger.log(self.level, f"{metric.display_name}: {value:.1f}%")


class MQTTSink:
    """
    Publishes readings to {topic_prefix}/{metric}.

    Messages are queued on the MQTT client; publishing happens in its
    background task.
    """

    def __init__(self, client: "MQTTClient"):
        self.client = client

    def topic(self, metric: MetricKind) -> str:
        return f"{self.client.topic_prefix}/{metric.value}"

    def on_reading(self, metric: MetricKind, value: float) -> None:
        self.client.enqueue(self.topic(metric), round(value, 1))


class MultiSink:
    """Forwards each reading to several sinks; one failing sink does not affect the rest."""

    def __init__(self, sinks: Iterable[ReadingSink]):
        self.sinks = list(sinks)

    def on_reading(self, metric: MetricKind, value: float) -> None:
        for sink in self.sinks:
            try:
                sink.on_reading(metric, value)
            except Exception as e:
                logger.error(f"Sink {sink.__class__.__name__} failed for {metric.display_name}: {e}")
