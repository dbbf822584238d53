"""
MQTT output for vital readings.
"""

from .client import MQTTClient

__all__ = ["MQTTClient"]
