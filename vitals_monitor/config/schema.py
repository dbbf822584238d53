"""
Configuration schema with dataclasses for validation and type safety.

Defines every configuration block, its fields and defaults, and the
conversion into live settings keys.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..const import (
    DEFAULT_COMMAND_TIMEOUT,
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_STORAGE_UPDATE_INTERVAL,
    DEFAULT_TOPIC_PREFIX,
    DEFAULT_UPDATE_INTERVAL,
    MAX_UPDATE_INTERVAL,
    MIN_UPDATE_INTERVAL,
)
from ..models.vital import MetricKind
from .lexer import Lexer
from .parser import Block, ConfigDocument
from .settings import GENERIC_INTERVAL_KEY


def clamp_interval(value: int, interval_range: tuple[int, int] = (MIN_UPDATE_INTERVAL, MAX_UPDATE_INTERVAL)) -> int:
    """Clamp an interval in milliseconds to the allowed range."""
    low, high = interval_range
    return max(low, min(high, int(value)))


def _millis(value: Any) -> int | None:
    """Directive value (number or duration, both ms) as int, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _seconds(value: Any, default: float) -> float:
    """Directive value in milliseconds converted to seconds."""
    millis = _millis(value)
    return default if millis is None else millis / 1000


def parse_flag(value: Any, default: bool) -> bool:
    """
    Directive value as a boolean.

    Accepts real booleans and the on/off keywords also written as strings
    (e.g. show "off";); anything else yields default.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return Lexer.BOOLEAN_KEYWORDS.get(value.strip().lower(), default)
    return default


def is_flag(value: Any) -> bool:
    """Whether parse_flag understands value."""
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in Lexer.BOOLEAN_KEYWORDS


class RetainMode(Enum):
    """MQTT retain message modes."""

    OFF = "off"  # Don't retain any messages
    ONLINE = "online"  # Only retain availability (LWT) status
    FULL = "full"  # Retain all messages


@dataclass
class MQTTConfig:
    """MQTT connection configuration (optional reading output)."""

    host: str = "localhost"
    port: int = DEFAULT_MQTT_PORT
    username: str | None = None
    password: str | None = None
    client_id: str | None = None
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    qos: int = 0
    retain: RetainMode = RetainMode.ONLINE
    keepalive: int = DEFAULT_MQTT_KEEPALIVE

    @classmethod
    def from_block(cls, block: Block) -> "MQTTConfig":
        """Create MQTTConfig from a parsed 'mqtt' block."""
        retain_val = block.get_value("retain", "online")
        if isinstance(retain_val, bool):
            retain_mode = RetainMode.FULL if retain_val else RetainMode.OFF
        else:
            try:
                retain_mode = RetainMode(str(retain_val).lower())
            except ValueError:
                retain_mode = RetainMode.ONLINE

        return cls(
            host=str(block.get_value("host", "localhost")),
            port=int(block.get_value("port", DEFAULT_MQTT_PORT)),
            username=block.get_value("username"),
            password=block.get_value("password"),
            client_id=block.get_value("client_id"),
            topic_prefix=str(block.get_value("topic_prefix", DEFAULT_TOPIC_PREFIX)).rstrip("/"),
            qos=int(block.get_value("qos", 0)),
            retain=retain_mode,
            keepalive=int(block.get_value("keepalive", DEFAULT_MQTT_KEEPALIVE)),
        )

    def should_retain(self) -> bool:
        """Check if reading messages should be retained."""
        return self.retain == RetainMode.FULL

    def should_retain_status(self) -> bool:
        """Check if availability messages should be retained."""
        return self.retain in (RetainMode.FULL, RetainMode.ONLINE)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    file: str | None = None
    file_level: str = "debug"
    file_max_size: int = 10  # MB
    file_keep: int = 5
    colors: bool = True
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @classmethod
    def from_block(cls, block: Block | None) -> "LoggingConfig":
        """Create LoggingConfig from a parsed 'logging' block."""
        if block is None:
            return cls()

        defaults = cls()
        return cls(
            level=str(block.get_value("level", defaults.level)),
            file=block.get_value("file"),
            file_level=str(block.get_value("file_level", defaults.file_level)),
            file_max_size=int(block.get_value("file_max_size", defaults.file_max_size)),
            file_keep=int(block.get_value("file_keep", defaults.file_keep)),
            colors=parse_flag(block.get_value("colors"), defaults.colors),
            format=str(block.get_value("format", defaults.format)),
        )


@dataclass
class DefaultsConfig:
    """Settings inherited by every vital."""

    update_interval: int = DEFAULT_UPDATE_INTERVAL

    @classmethod
    def from_block(cls, block: Block | None) -> "DefaultsConfig":
        if block is None:
            return cls()
        interval = _millis(block.get_value("update_interval"))
        return cls(update_interval=DEFAULT_UPDATE_INTERVAL if interval is None else interval)


@dataclass
class VitalConfig:
    """Per-vital configuration; update_interval None means inherit the default."""

    kind: MetricKind
    show: bool = True
    update_interval: int | None = None

    @classmethod
    def from_block(cls, kind: MetricKind, block: Block | None, **extra: Any) -> "VitalConfig":
        default = cls(kind, **extra)
        if block is None:
            return default
        interval = _millis(block.get_value("update_interval"))
        return cls(
            kind,
            show=parse_flag(block.get_value("show"), True),
            update_interval=default.update_interval if interval is None else interval,
            **extra,
        )


@dataclass
class StorageConfig(VitalConfig):
    """Storage vital: filesystem path and df timeout (seconds)."""

    kind: MetricKind = MetricKind.STORAGE
    update_interval: int | None = DEFAULT_STORAGE_UPDATE_INTERVAL
    path: str = "/"
    timeout: float = DEFAULT_COMMAND_TIMEOUT


@dataclass
class GpuConfig(VitalConfig):
    """GPU vital: external tool timeout (seconds)."""

    kind: MetricKind = MetricKind.GPU
    timeout: float = DEFAULT_COMMAND_TIMEOUT


def _vital_from_block(kind: MetricKind, block: Block | None) -> VitalConfig:
    if kind is MetricKind.STORAGE:
        extra: dict[str, Any] = {}
        if block is not None:
            extra["path"] = str(block.get_value("path", "/"))
            extra["timeout"] = _seconds(block.get_value("timeout"), DEFAULT_COMMAND_TIMEOUT)
        return StorageConfig.from_block(kind, block, **extra)

    if kind is MetricKind.GPU:
        extra = {}
        if block is not None:
            extra["timeout"] = _seconds(block.get_value("timeout"), DEFAULT_COMMAND_TIMEOUT)
        return GpuConfig.from_block(kind, block, **extra)

    return VitalConfig.from_block(kind, block)


@dataclass
class Config:
    """Root configuration."""

    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    vitals: dict[MetricKind, VitalConfig] = field(
        default_factory=lambda: {kind: _vital_from_block(kind, None) for kind in MetricKind}
    )
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    mqtt: MQTTConfig | None = None

    @classmethod
    def from_document(cls, doc: ConfigDocument) -> "Config":
        """Build Config from a parsed document."""
        mqtt_block = doc.get_block("mqtt")
        return cls(
            defaults=DefaultsConfig.from_block(doc.get_block("defaults")),
            vitals={kind: _vital_from_block(kind, doc.get_block(kind.value)) for kind in MetricKind},
            logging=LoggingConfig.from_block(doc.get_block("logging")),
            mqtt=MQTTConfig.from_block(mqtt_block) if mqtt_block is not None else None,
        )

    @property
    def storage(self) -> StorageConfig:
        config = self.vitals[MetricKind.STORAGE]
        if not isinstance(config, StorageConfig):
            raise TypeError(f"storage vital has unexpected config type {type(config).__name__}")
        return config

    @property
    def gpu(self) -> GpuConfig:
        config = self.vitals[MetricKind.GPU]
        if not isinstance(config, GpuConfig):
            raise TypeError(f"gpu vital has unexpected config type {type(config).__name__}")
        return config

    def to_settings(
        self,
        interval_range: tuple[int, int] = (MIN_UPDATE_INTERVAL, MAX_UPDATE_INTERVAL),
    ) -> dict[str, Any]:
        """
        Flatten into settings keys, clamping intervals to interval_range.

        Every vital gets both keys so a reload can revert an override back
        to inheriting the generic interval (None).
        """
        values: dict[str, Any] = {
            GENERIC_INTERVAL_KEY: clamp_interval(self.defaults.update_interval, interval_range),
        }
        for kind, vital in self.vitals.items():
            values[kind.visibility_key] = vital.show
            values[kind.interval_key] = (
                None if vital.update_interval is None else clamp_interval(vital.update_interval, interval_range)
            )
        return values
