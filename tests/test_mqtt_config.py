"""
Tests for MQTT configuration retain behavior.
"""

from vitals_monitor.config.loader import ConfigLoader
from vitals_monitor.config.schema import MQTTConfig, RetainMode


def test_should_retain_status_defaults_to_online() -> None:
    config = MQTTConfig()

    assert config.should_retain() is False
    assert config.should_retain_status() is True


def test_should_retain_respects_off() -> None:
    config = MQTTConfig(retain=RetainMode.OFF)

    assert config.should_retain() is False
    assert config.should_retain_status() is False


def test_should_retain_full() -> None:
    config = MQTTConfig(retain=RetainMode.FULL)

    assert config.should_retain() is True
    assert config.should_retain_status() is True


def test_mqtt_block_parsing() -> None:
    config = ConfigLoader().load_string(
        """
        mqtt {
            host "broker.lan";
            port 8883;
            topic_prefix "home/desk/";
            retain on;
            qos 1;
        }
        """
    )

    assert config.mqtt is not None
    assert config.mqtt.host == "broker.lan"
    assert config.mqtt.port == 8883
    assert config.mqtt.topic_prefix == "home/desk"
    assert config.mqtt.retain is RetainMode.FULL
    assert config.mqtt.qos == 1


def test_mqtt_disabled_without_block() -> None:
    assert ConfigLoader().load_string("cpu { show on; }").mqtt is None
