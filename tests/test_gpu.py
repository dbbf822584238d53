"""
Tests for GPU backend detection, output parsing and the failure latch.
"""

from pathlib import Path

import pytest

from vitals_monitor.probes.base import ProbeError
from vitals_monitor.probes.gpu import (
    RADEONTOP_ARGS,
    BackendKind,
    GpuBackend,
    GpuBackendDetector,
    GpuProbe,
    parse_nvidia_output,
    parse_radeontop_output,
)
from vitals_monitor.utils.command import CommandError, CommandResult

RADEONTOP_LINE = (
    "Dumping to -, line limit 1.\n"
    "1700000000.123456: bus 03, gpu 12.50%, ee 0.00%, vgt 3.33%, ta 4.17%, "
    "vram 9.12% 745.27mb, gtt 1.03% 84.10mb, mclk 100.00% 0.875ghz, sclk 27.30% 0.355ghz\n"
)


def make_which(programs: dict[str, str]):
    """which() stand-in resolving only the given program names."""
    calls: list[str] = []

    def which(name: str, locations: tuple[str, ...] = ()) -> str | None:
        calls.append(name)
        return programs.get(name)

    which.calls = calls
    return which


def add_busy_file(drm_root: Path, card: int, content: str = "37") -> Path:
    device = drm_root / f"card{card}" / "device"
    device.mkdir(parents=True)
    busy = device / "gpu_busy_percent"
    busy.write_text(f"{content}\n")
    return busy


@pytest.fixture
def drm_root(tmp_path: Path) -> Path:
    root = tmp_path / "drm"
    root.mkdir()
    return root


# Detection


def test_nvidia_preferred_over_sysfs(drm_root: Path) -> None:
    add_busy_file(drm_root, 0)
    which = make_which({"nvidia-smi": "/usr/bin/nvidia-smi", "radeontop": "/usr/bin/radeontop"})

    backend = GpuBackendDetector(drm_root=drm_root, which=which).detect()

    assert backend.kind is BackendKind.NVIDIA
    assert backend.executable == "/usr/bin/nvidia-smi"


def test_sysfs_preferred_over_radeontop(drm_root: Path) -> None:
    busy = add_busy_file(drm_root, 1)
    which = make_which({"radeontop": "/usr/bin/radeontop"})

    backend = GpuBackendDetector(drm_root=drm_root, which=which).detect()

    assert backend.kind is BackendKind.AMD_SYSFS
    assert backend.path == busy
    assert "radeontop" not in which.calls


def test_sysfs_scan_is_bounded(drm_root: Path) -> None:
    add_busy_file(drm_root, 3)

    detector = GpuBackendDetector(drm_root=drm_root, max_cards=3, which=make_which({}))

    assert detector.find_sysfs_busy_file() is None
    assert detector.detect().kind is BackendKind.NONE


def test_radeontop_fallback(drm_root: Path) -> None:
    which = make_which({"radeontop": "/opt/radeontop/bin/radeontop"})

    backend = GpuBackendDetector(drm_root=drm_root, which=which).detect()

    assert backend.kind is BackendKind.AMD_TOOL
    assert str(backend) == "amd_tool (/opt/radeontop/bin/radeontop)"


# Parsing


def test_parse_nvidia_output() -> None:
    assert parse_nvidia_output("\n 42\n17\n") == 42.0

    with pytest.raises(ProbeError):
        parse_nvidia_output("")
    with pytest.raises(ProbeError):
        parse_nvidia_output("[N/A]")


def test_parse_radeontop_output() -> None:
    assert parse_radeontop_output(RADEONTOP_LINE) == 12.5

    with pytest.raises(ProbeError):
        parse_radeontop_output("Dumping to -, line limit 1.")


# Probe


@pytest.mark.asyncio
async def test_nvidia_reading(drm_root: Path, monkeypatch, fake_commands) -> None:
    monkeypatch.setattr("vitals_monitor.probes.gpu.run_command", fake_commands)
    fake_commands.push(CommandResult(0, "63\n", ""))
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({"nvidia-smi": "nvidia-smi"})))

    assert await probe.sample() == 63.0
    assert fake_commands.calls[0][0] == "nvidia-smi"
    assert "--query-gpu=utilization.gpu" in fake_commands.calls[0]


@pytest.mark.asyncio
async def test_sysfs_reading(drm_root: Path) -> None:
    add_busy_file(drm_root, 0, "81")
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})))

    assert await probe.sample() == 81.0


@pytest.mark.asyncio
async def test_radeontop_reading(drm_root: Path, monkeypatch, fake_commands) -> None:
    monkeypatch.setattr("vitals_monitor.probes.gpu.run_command", fake_commands)
    fake_commands.push(CommandResult(0, RADEONTOP_LINE, ""))
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({"radeontop": "/usr/bin/radeontop"})))

    assert await probe.sample() == 12.5
    assert fake_commands.calls == [("/usr/bin/radeontop", *RADEONTOP_ARGS)]


@pytest.mark.asyncio
async def test_no_backend_reads_zero_without_failures(drm_root: Path) -> None:
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})))

    for _ in range(10):
        assert await probe.sample() == 0.0

    assert probe.backend.kind is BackendKind.NONE
    assert probe.health.failure_count == 0
    assert not probe.disabled


@pytest.mark.asyncio
async def test_five_failures_latch_disabled(drm_root: Path, monkeypatch, fake_commands, caplog) -> None:
    monkeypatch.setattr("vitals_monitor.probes.gpu.run_command", fake_commands)
    fake_commands.default = CommandResult(9, "", "NVIDIA-SMI has failed")
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({"nvidia-smi": "nvidia-smi"})))

    for expected_count in range(1, 5):
        assert await probe.sample() == 0.0
        assert probe.health.failure_count == expected_count
        assert not probe.disabled

    assert await probe.sample() == 0.0
    assert probe.disabled
    assert len(fake_commands.calls) == 5

    # Sixth call performs no I/O
    assert await probe.sample() == 0.0
    assert len(fake_commands.calls) == 5

    warnings = [r for r in caplog.records if "GPU monitoring disabled" in r.getMessage()]
    assert len(warnings) == 1


@pytest.mark.asyncio
async def test_success_resets_failure_count(drm_root: Path, monkeypatch, fake_commands) -> None:
    monkeypatch.setattr("vitals_monitor.probes.gpu.run_command", fake_commands)
    for _ in range(4):
        fake_commands.push(CommandError("nvidia-smi timed out after 5.0s"))
    fake_commands.push(CommandResult(0, "20", ""))
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({"nvidia-smi": "nvidia-smi"})))

    for _ in range(4):
        await probe.sample()
    assert probe.health.failure_count == 4

    assert await probe.sample() == 20.0
    assert probe.health.failure_count == 0
    assert probe.health.last_error is None


@pytest.mark.asyncio
async def test_reset_clears_latch_and_redetects(drm_root: Path) -> None:
    busy = add_busy_file(drm_root, 0, "55")
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})), failure_threshold=2)
    busy.write_text("not a number\n")

    await probe.sample()
    await probe.sample()
    assert probe.disabled

    busy.unlink()
    add_busy_file(drm_root, 2, "44")

    backend = probe.reset()

    assert not probe.disabled
    assert probe.health.failure_count == 0
    assert backend.path == drm_root / "card2" / "device" / "gpu_busy_percent"
    assert await probe.sample() == 44.0


@pytest.mark.asyncio
async def test_failed_sample_does_not_redetect(drm_root: Path) -> None:
    busy = add_busy_file(drm_root, 0, "55")
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})))
    busy.unlink()

    await probe.sample()

    assert probe.backend.kind is BackendKind.AMD_SYSFS
    assert probe.backend.path == busy


@pytest.mark.asyncio
async def test_sysfs_backend_without_path_counts_as_failure(drm_root: Path) -> None:
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})))
    probe.backend = GpuBackend(BackendKind.AMD_SYSFS)

    assert await probe.sample() == 0.0
    assert probe.health.failure_count == 1
    assert "no busy file" in probe.health.last_error


def test_close_drops_backend(drm_root: Path) -> None:
    add_busy_file(drm_root, 0)
    probe = GpuProbe(GpuBackendDetector(drm_root=drm_root, which=make_which({})))

    probe.close()

    assert probe.backend.kind is BackendKind.NONE
