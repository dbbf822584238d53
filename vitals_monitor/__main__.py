"""
Entry point for Vitals Monitor.

Usage:
    python -m vitals_monitor /path/to/vitals.conf
    python -m vitals_monitor --once
    python -m vitals_monitor --help
"""

import argparse
import asyncio
import sys
from pathlib import Path

from . import __version__
from .app import DEFAULT_CONFIG_PATH, load_config_or_defaults, run_app, sample_once
from .config.loader import ConfigError
from .logging import LogConfig, get_logger, setup_logging
from .models.vital import MetricKind
from .probes import create_probes
from .utils.host import get_host_info

logger = get_logger("main")


def validate_config(config_path: str) -> int:
    """Validate configuration file and print warnings."""
    try:
        config, loader = load_config_or_defaults(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if not Path(config_path).exists():
        print(f"Configuration file not found: {config_path}, checking built-in defaults")

    warnings = loader.validate(config)
    if warnings:
        print(f"Configuration warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  - {warning}")

    print("\nConfiguration summary:")
    print(f"  Host: {get_host_info().describe()}")
    print(f"  Default interval: {config.defaults.update_interval}ms")
    for kind, vital in config.vitals.items():
        interval = f"{vital.update_interval}ms" if vital.update_interval is not None else "default"
        print(f"  {kind.display_name}: {'shown' if vital.show else 'hidden'}, every {interval}")
    print(f"  Storage path: {config.storage.path}")
    if config.mqtt is not None:
        print(f"  MQTT: {config.mqtt.host}:{config.mqtt.port} ({config.mqtt.topic_prefix})")
    else:
        print("  MQTT: disabled")
    print(f"  Logging level: {config.logging.level}")
    if config.logging.file:
        print(f"  Log file: {config.logging.file}")

    print("\nConfiguration is valid!")
    return 0


def print_once(config_path: str) -> int:
    """Sample every vital once and print the readings."""
    try:
        config, _ = load_config_or_defaults(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    probes = create_probes(config)
    sources = {metric: probe.describe() for metric, probe in probes.items()}
    readings = asyncio.run(sample_once(config, probes))

    for metric in MetricKind:
        if metric in readings:
            print(f"{metric.display_name + ':':13} {readings[metric]:5.1f}%  [{sources[metric]}]")
    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="vitals-monitor",
        description="Periodic CPU, RAM, storage, temperature and GPU utilization monitor",
    )

    parser.add_argument(
        "config",
        nargs="?",
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH}; built-in defaults if missing)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (INFO level)",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="Enable debug logging (DEBUG level)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Quiet mode (only errors)",
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write logs to file",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Sample every vital once, print the readings and exit",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args()

    # Reconfigured by run_app() unless given on the command line
    log_config = LogConfig()
    cli_logging = args.debug or args.verbose or args.quiet or args.no_color or args.log_file

    if args.debug:
        log_config.console_level = "debug"
    elif args.verbose:
        log_config.console_level = "info"
    elif args.quiet:
        log_config.console_level = "error"
    else:
        log_config.console_level = "warning"

    if args.no_color:
        log_config.console_colors = False

    if args.log_file:
        log_config.file_enabled = True
        log_config.file_path = args.log_file

    setup_logging(log_config)

    if args.validate:
        return validate_config(args.config)

    if args.once:
        return print_once(args.config)

    try:
        asyncio.run(run_app(args.config, cli_log_config=log_config if cli_logging else None))
        return 0
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
