"""
Main application orchestrator.

Handles:
- Configuration loading and SIGHUP reload
- Probe, sink and scheduler wiring
- Graceful shutdown
"""

import asyncio
import signal
from collections.abc import Mapping
from pathlib import Path

from .config.loader import ConfigError, ConfigLoader
from .config.schema import Config, LoggingConfig
from .config.settings import Settings
from .logging import LogConfig, get_logger, setup_logging
from .models.vital import MetricKind
from .mqtt.client import MQTTClient
from .probes import CpuProbe, GpuProbe, Probe, create_probes
from .scheduler import Scheduler
from .sinks import LogSink, MQTTSink, MultiSink, ReadingSink
from .utils.host import get_host_info

logger = get_logger("app")

DEFAULT_CONFIG_PATH = "/etc/vitals-monitor/vitals.conf"

# Delay between the two CPU samples of a one-shot run
ONCE_CPU_DELAY = 0.5


class Application:
    """
    Main application class.

    Owns the settings store, probes, sinks and scheduler for one run.
    """

    def __init__(
        self,
        config: Config,
        config_path: str | Path | None = None,
        probes: Mapping[MetricKind, Probe] | None = None,
        sink: ReadingSink | None = None,
    ):
        """
        Initialize application.

        Args:
            config: Application configuration
            config_path: File re-read on SIGHUP (None disables reload)
            probes: Probes to use instead of the default set
            sink: Sink to use instead of the configured ones
        """
        self.config = config
        self.config_path = Path(config_path) if config_path is not None else None
        self.settings = Settings(config.to_settings())

        self.mqtt = MQTTClient(config.mqtt) if config.mqtt is not None else None
        self.sink = sink or self._create_sink()
        self.probes = dict(probes) if probes is not None else create_probes(config)
        self.scheduler = Scheduler(self.probes, self.settings, self.sink)

        self._shutdown_event = asyncio.Event()

    def _create_sink(self) -> ReadingSink:
        sinks: list[ReadingSink] = [LogSink()]
        if self.mqtt is not None:
            sinks.append(MQTTSink(self.mqtt))
        return sinks[0] if len(sinks) == 1 else MultiSink(sinks)

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.request_shutdown)
        if self.config_path is not None:
            loop.add_signal_handler(signal.SIGHUP, self.reload)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT, signal.SIGHUP):
            loop.remove_signal_handler(sig)

    def request_shutdown(self) -> None:
        """Ask the running application to stop."""
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    def reload(self) -> bool:
        """
        Re-read the configuration file and apply it to the live settings.

        Also clears a latched GPU probe and re-runs its backend detection.
        Probe parameters (storage path, timeouts) only change on restart.

        Returns:
            True if the new configuration was applied
        """
        if self.config_path is None:
            return False

        logger.info(f"Reloading configuration from {self.config_path}")
        loader = ConfigLoader()
        try:
            config = loader.load_file(self.config_path)
            changed = self.settings.update(config.to_settings(self.settings.interval_range))
        except (ConfigError, ValueError) as e:
            logger.error(f"Reload failed, keeping previous settings: {e}")
            return False

        for warning in loader.validate(config):
            logger.warning(f"Config warning: {warning}")

        self.config = config

        gpu = self.probes.get(MetricKind.GPU)
        if isinstance(gpu, GpuProbe):
            gpu.reset()

        logger.info(f"Configuration reloaded, changed: {', '.join(changed) or 'nothing'}")
        return True

    async def start(self) -> None:
        """Start sampling and run until shutdown is requested."""
        logger.info(f"Starting Vitals Monitor on {get_host_info().describe()}")
        for metric, probe in self.probes.items():
            logger.debug(f"{metric.display_name} source: {probe.describe()}")

        if self.mqtt is not None:
            await self.mqtt.start()

        self._setup_signal_handlers()
        self.scheduler.start()
        logger.info("Vitals Monitor started successfully")

        try:
            await self._shutdown_event.wait()
        finally:
            self._remove_signal_handlers()
            await self.stop()

    async def stop(self) -> None:
        """Stop timers, wait for running samples, release probes."""
        logger.info("Stopping Vitals Monitor")

        self.scheduler.stop()
        await self.scheduler.drain()

        for probe in self.probes.values():
            probe.close()

        if self.mqtt is not None:
            await self.mqtt.stop()

        logger.info("Vitals Monitor stopped")

    async def run(self) -> None:
        """Run the application until shutdown."""
        try:
            await self.start()
        except Exception as e:
            logger.error(f"Application error: {e}")
            raise


def log_config_from(logging_config: LoggingConfig) -> LogConfig:
    """Translate the config file's logging block into a LogConfig."""
    log_config = LogConfig(
        console_level=logging_config.level,
        console_colors=logging_config.colors,
        file_enabled=logging_config.file is not None,
        file_level=logging_config.file_level,
        file_max_bytes=logging_config.file_max_size * 1024 * 1024,
        file_backup_count=logging_config.file_keep,
        format=logging_config.format,
    )
    if logging_config.file:
        log_config.file_path = logging_config.file
    return log_config


def load_config_or_defaults(config_path: str | Path | None) -> tuple[Config, ConfigLoader]:
    """
    Load the configuration file, falling back to built-in defaults if it does not exist.

    Raises:
        ConfigError: If the file exists but cannot be parsed
    """
    loader = ConfigLoader()
    if config_path is None or not Path(config_path).exists():
        return Config(), loader
    return loader.load_file(config_path), loader


async def run_app(config_path: str | None, cli_log_config: LogConfig | None = None) -> None:
    """
    Load configuration and run the application.

    Args:
        config_path: Path to configuration file (defaults are used if missing)
        cli_log_config: Logging config from CLI args (overrides file config)
    """
    config, loader = load_config_or_defaults(config_path)

    if cli_log_config is None:
        setup_logging(log_config_from(config.logging))
    else:
        # CLI args override file config, but keep the file's log file if none was given
        if not cli_log_config.file_enabled and config.logging.file:
            file_config = log_config_from(config.logging)
            cli_log_config.file_enabled = True
            cli_log_config.file_path = file_config.file_path
            cli_log_config.file_level = file_config.file_level
            cli_log_config.file_max_bytes = file_config.file_max_bytes
            cli_log_config.file_backup_count = file_config.file_backup_count
        setup_logging(cli_log_config)

    if config_path is not None and Path(config_path).exists():
        logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.info(f"No configuration file at {config_path}, using built-in defaults")
        config_path = None

    for warning in loader.validate(config):
        logger.warning(f"Config warning: {warning}")

    app = Application(config, config_path=config_path)
    await app.run()


async def sample_once(
    config: Config,
    probes: Mapping[MetricKind, Probe] | None = None,
    cpu_delay: float = ONCE_CPU_DELAY,
) -> dict[MetricKind, float]:
    """
    Take a single reading of every vital.

    The CPU probe is sampled twice, cpu_delay seconds apart, so the
    result reflects current load instead of the average since boot.
    """
    probes = dict(probes) if probes is not None else create_probes(config)
    try:
        cpu = probes.get(MetricKind.CPU)
        if isinstance(cpu, CpuProbe):
            await cpu.sample()
            await asyncio.sleep(cpu_delay)

        values = await asyncio.gather(*(probe.sample() for probe in probes.values()))
        return dict(zip(probes, values))
    finally:
        for probe in probes.values():
            probe.close()
