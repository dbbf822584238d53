"""
Logging configuration for Vitals Monitor.

Features:
- Console output with optional colors (only when attached to a TTY)
- File output with rotation
- Per-module log level overrides
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path

ROOT_LOGGER = "vitals_monitor"


class Colors:
    """ANSI escape sequences used by the console formatter."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BRIGHT_RED = "\033[91m"
    BRIGHT_BLUE = "\033[94m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.DIM + Colors.CYAN,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.BOLD + Colors.BRIGHT_RED,
}

# Matched as substrings of the logger name, first hit wins
COMPONENT_COLORS = {
    "config": Colors.MAGENTA,
    "mqtt": Colors.BLUE,
    "probe": Colors.CYAN,
    "scheduler": Colors.BRIGHT_BLUE,
    "sink": Colors.GREEN,
    "app": Colors.GREEN,
}


class ColoredFormatter(logging.Formatter):
    """Formatter that colors level, component name and warning/error text."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        use_colors: bool = True,
    ):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors

    def _component_color(self, name: str) -> str:
        lowered = name.lower()
        for key, color in COMPONENT_COLORS.items():
            if key in lowered:
                return color
        return ""

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)

        saved = (record.levelname, record.name, record.msg)

        level_color = LEVEL_COLORS.get(record.levelno, "")
        record.levelname = f"{level_color}{record.levelname:8}{Colors.RESET}"

        component_color = self._component_color(record.name)
        if component_color:
            record.name = f"{component_color}{record.name}{Colors.RESET}"

        if record.levelno >= logging.ERROR:
            record.msg = f"{Colors.RED}{record.msg}{Colors.RESET}"
        elif record.levelno >= logging.WARNING:
            record.msg = f"{Colors.YELLOW}{record.msg}{Colors.RESET}"

        try:
            return super().format(record)
        finally:
            record.levelname, record.name, record.msg = saved


class PlainFormatter(logging.Formatter):
    """Plain formatter with a fixed-width level column, used for files."""

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        record.levelname = f"{original:8}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


@dataclass
class LogConfig:
    """Logging configuration."""

    console_level: str = "INFO"
    console_colors: bool = True

    file_enabled: bool = False
    file_path: str = "/var/log/vitals-monitor/vitals-monitor.log"
    file_level: str = "DEBUG"
    file_max_bytes: int = 10 * 1024 * 1024  # 10 MB
    file_backup_count: int = 5

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"

    # module name (relative to vitals_monitor) -> level
    module_levels: dict[str, str] | None = None


def get_log_level(level_str: str) -> int:
    """Convert a level name (case-insensitive) to a logging constant."""
    levels = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "warn": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }
    return levels.get(level_str.lower(), logging.INFO)


def setup_logging(config: LogConfig | None = None) -> None:
    """
    Configure the vitals_monitor logger hierarchy.

    Args:
        config: Logging configuration (defaults if None)
    """
    if config is None:
        config = LogConfig()

    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(logging.DEBUG)  # handlers do the filtering
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(get_log_level(config.console_level))
    use_colors = config.console_colors and hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    console_handler.setFormatter(
        ColoredFormatter(fmt=config.format, datefmt=config.date_format, use_colors=use_colors)
    )
    root_logger.addHandler(console_handler)

    if config.file_enabled:
        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=config.file_max_bytes,
            backupCount=config.file_backup_count,
        )
        file_handler.setLevel(get_log_level(config.file_level))
        file_handler.setFormatter(PlainFormatter(fmt=config.format, datefmt=config.date_format))
        root_logger.addHandler(file_handler)

    if config.module_levels:
        for module_name, level_str in config.module_levels.items():
            get_logger(module_name).setLevel(get_log_level(level_str))

    # Reduce noise from external libraries
    logging.getLogger("aiomqtt").setLevel(logging.WARNING)
    logging.getLogger("paho").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for a component.

    Args:
        name: Component name (prefixed with vitals_monitor unless already)

    Returns:
        Logger instance
    """
    if name.startswith(ROOT_LOGGER):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
