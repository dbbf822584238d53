"""
Configuration loader with file reading and validation.
"""

from pathlib import Path

from ..const import MAX_UPDATE_INTERVAL, MIN_UPDATE_INTERVAL
from .lexer import LexerError
from .parser import Block, ConfigDocument, ParseError, parse_config, parse_config_file
from .schema import Config, is_flag


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


_VITAL_DIRECTIVES = {"show", "update_interval"}


class ConfigLoader:
    """
    Loads and validates configuration from files or strings.

    Usage:
        loader = ConfigLoader()
        config = loader.load_file("/etc/vitals-monitor/vitals.conf")
        # or
        config = loader.load_string(config_text)
    """

    # Known directives for each block type
    KNOWN_DIRECTIVES = {
        "defaults": {"update_interval"},
        "cpu": _VITAL_DIRECTIVES,
        "ram": _VITAL_DIRECTIVES,
        "temp": _VITAL_DIRECTIVES,
        "storage": _VITAL_DIRECTIVES | {"path", "timeout"},
        "gpu": _VITAL_DIRECTIVES | {"timeout"},
        "logging": {
            "level",
            "file",
            "file_level",
            "file_max_size",
            "file_keep",
            "colors",
            "format",
        },
        "mqtt": {
            "host",
            "port",
            "username",
            "password",
            "client_id",
            "topic_prefix",
            "qos",
            "retain",
            "keepalive",
        },
    }

    # Directives taking an on/off value
    FLAG_DIRECTIVES = {"show", "colors"}

    def __init__(self) -> None:
        self.last_document: ConfigDocument | None = None

    def load_file(self, path: str | Path) -> Config:
        """
        Load configuration from a file.

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        path = Path(path)

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")
        if not path.is_file():
            raise ConfigError(f"Not a file: {path}")

        try:
            document = parse_config_file(path)
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration: {e}") from e

        return self._build(document)

    def load_string(
        self,
        source: str,
        filename: str = "<string>",
        base_path: str | Path | None = None,
    ) -> Config:
        """
        Load configuration from a string.

        Raises:
            ConfigError: If the configuration cannot be parsed
        """
        try:
            document = parse_config(source, filename, Path(base_path) if base_path is not None else None)
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read included file: {e}") from e

        return self._build(document)

    def _build(self, document: ConfigDocument) -> Config:
        self.last_document = document
        try:
            return Config.from_document(document)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def validate(self, config: Config) -> list[str]:
        """
        Validate configuration and return list of warnings.

        Returns:
            List of warning messages (empty if no issues)
        """
        warnings = []

        if self.last_document:
            warnings.extend(self._check_unknown_directives(self.last_document))

        def check_interval(where: str, value: int | None) -> None:
            if value is not None and not MIN_UPDATE_INTERVAL <= value <= MAX_UPDATE_INTERVAL:
                warnings.append(
                    f"{where} update_interval {value}ms is outside "
                    f"[{MIN_UPDATE_INTERVAL}, {MAX_UPDATE_INTERVAL}] and will be clamped"
                )

        check_interval("defaults", config.defaults.update_interval)
        for kind, vital in config.vitals.items():
            check_interval(kind.value, vital.update_interval)

        if not any(vital.show for vital in config.vitals.values()):
            warnings.append("All vitals are hidden; nothing will be sampled")

        if config.storage.timeout <= 0:
            warnings.append("storage timeout must be positive")
        if config.gpu.timeout <= 0:
            warnings.append("gpu timeout must be positive")

        if config.mqtt is not None and not config.mqtt.host:
            warnings.append("MQTT host is not configured")

        return warnings

    def _check_unknown_directives(self, document: ConfigDocument) -> list[str]:
        """Report unknown blocks and directives in the parsed document."""
        warnings = []

        def check_block(block: Block) -> None:
            known = self.KNOWN_DIRECTIVES.get(block.type)
            if known is None:
                warnings.append(f"Unknown block '{block.type}' (line {block.line})")
                return
            for directive in block.directives:
                if directive.name not in known:
                    warnings.append(
                        f"Unknown directive '{directive.name}' in {block.type} block (line {directive.line})"
                    )
                elif directive.name in self.FLAG_DIRECTIVES and not is_flag(directive.value):
                    warnings.append(
                        f"{directive.name} in {block.type} block expects on/off, got "
                        f"'{directive.value}' (line {directive.line})"
                    )
            for nested in block.blocks:
                warnings.append(f"Unexpected nested block '{nested.type}' in {block.type} block (line {nested.line})")

        for block in document.blocks:
            check_block(block)

        for directive in document.directives:
            warnings.append(f"Unknown top-level directive '{directive.name}' (line {directive.line})")

        return warnings


def load_config(path: str | Path) -> Config:
    """Load configuration from a file."""
    return ConfigLoader().load_file(path)
