"""
Tests for application wiring, configuration reload and one-shot sampling.
"""

import asyncio
from pathlib import Path

import pytest

from vitals_monitor.app import Application, load_config_or_defaults, log_config_from, sample_once
from vitals_monitor.config.loader import ConfigError, ConfigLoader
from vitals_monitor.config.schema import Config, LoggingConfig
from vitals_monitor.models.vital import MetricKind
from vitals_monitor.probes.base import Probe
from vitals_monitor.probes.gpu import GpuBackendDetector, GpuProbe
from vitals_monitor.sinks import LogSink, MultiSink


class StaticProbe(Probe):
    def __init__(self, kind: MetricKind, value: float):
        self.KIND = kind
        super().__init__()
        self.value = value
        self.reads = 0
        self.closed = False

    async def read(self) -> float:
        self.reads += 1
        return self.value

    def close(self) -> None:
        self.closed = True


def static_probes() -> dict[MetricKind, Probe]:
    return {kind: StaticProbe(kind, 10.0 * (i + 1)) for i, kind in enumerate(MetricKind)}


def test_load_config_or_defaults_missing_file(tmp_path: Path) -> None:
    config, loader = load_config_or_defaults(tmp_path / "absent.conf")

    assert isinstance(config, Config)
    assert isinstance(loader, ConfigLoader)
    assert config.defaults.update_interval == 2000


def test_load_config_or_defaults_bad_file(tmp_path: Path) -> None:
    path = tmp_path / "bad.conf"
    path.write_text("cpu {")

    with pytest.raises(ConfigError):
        load_config_or_defaults(path)


def test_log_config_from_logging_block() -> None:
    log_config = log_config_from(LoggingConfig(level="debug", file="/tmp/v.log", file_max_size=2, colors=False))

    assert log_config.console_level == "debug"
    assert log_config.file_enabled
    assert log_config.file_path == "/tmp/v.log"
    assert log_config.file_max_bytes == 2 * 1024 * 1024
    assert not log_config.console_colors


def test_application_uses_log_sink_without_mqtt() -> None:
    app = Application(Config(), probes=static_probes())

    assert app.mqtt is None
    assert isinstance(app.sink, LogSink)
    assert app.settings.interval_for(MetricKind.STORAGE) == 5000


def test_application_adds_mqtt_sink() -> None:
    config = ConfigLoader().load_string('mqtt { host "broker"; }')

    app = Application(config, probes=static_probes())

    assert app.mqtt is not None
    assert isinstance(app.sink, MultiSink)


def test_reload_applies_new_settings(tmp_path: Path) -> None:
    path = tmp_path / "vitals.conf"
    path.write_text("cpu { update_interval 1s; }")
    app = Application(ConfigLoader().load_file(path), config_path=path, probes=static_probes())

    path.write_text("cpu { update_interval 3s; }\ngpu { show off; }")

    assert app.reload() is True
    assert app.settings.interval_for(MetricKind.CPU) == 3000
    assert app.settings.is_visible(MetricKind.GPU) is False


async def latched_gpu(tmp_path: Path) -> tuple[GpuProbe, Path]:
    """sysfs-backed GPU probe that has already latched disabled."""
    device = tmp_path / "drm" / "card0" / "device"
    device.mkdir(parents=True)
    busy = device / "gpu_busy_percent"
    busy.write_text("garbage\n")
    detector = GpuBackendDetector(drm_root=tmp_path / "drm", which=lambda name, locations=(): None)
    gpu = GpuProbe(detector, failure_threshold=2)
    await gpu.sample()
    await gpu.sample()
    assert gpu.disabled
    return gpu, busy


@pytest.mark.asyncio
async def test_reload_clears_latched_gpu_probe(tmp_path: Path) -> None:
    gpu, busy = await latched_gpu(tmp_path)
    path = tmp_path / "vitals.conf"
    path.write_text("gpu { update_interval 1s; }")
    app = Application(Config(), config_path=path, probes={**static_probes(), MetricKind.GPU: gpu})
    busy.write_text("40\n")

    assert app.reload() is True
    assert not gpu.disabled
    assert await gpu.sample() == 40.0


@pytest.mark.asyncio
async def test_failed_reload_keeps_gpu_latch(tmp_path: Path) -> None:
    gpu, busy = await latched_gpu(tmp_path)
    path = tmp_path / "vitals.conf"
    path.write_text("gpu { update_interval ")
    app = Application(Config(), config_path=path, probes={**static_probes(), MetricKind.GPU: gpu})
    busy.write_text("40\n")

    assert app.reload() is False
    assert gpu.disabled
    assert await gpu.sample() == 0.0


def test_reload_failure_keeps_settings(tmp_path: Path) -> None:
    path = tmp_path / "vitals.conf"
    path.write_text("cpu { update_interval 1s; }")
    app = Application(ConfigLoader().load_file(path), config_path=path, probes=static_probes())

    path.write_text("cpu { update_interval ")

    assert app.reload() is False
    assert app.settings.interval_for(MetricKind.CPU) == 1000


def test_reload_without_path_is_noop() -> None:
    app = Application(Config(), probes=static_probes())

    assert app.reload() is False


@pytest.mark.asyncio
async def test_start_and_shutdown() -> None:
    probes = static_probes()
    app = Application(Config(), probes=probes)
    app.settings.set("update-interval", 500)

    task = asyncio.create_task(app.run())
    await asyncio.sleep(0.05)
    assert app.scheduler.running

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2)

    assert not app.scheduler.running
    assert all(probe.closed for probe in probes.values())


@pytest.mark.asyncio
async def test_sample_once_reads_every_vital() -> None:
    probes = static_probes()

    readings = await sample_once(Config(), probes, cpu_delay=0)

    assert list(readings) == list(MetricKind)
    assert readings[MetricKind.RAM] == 20.0
    assert all(probe.closed for probe in probes.values())
