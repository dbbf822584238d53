"""
GPU utilization probe with backend detection and failure backoff.

Backends, in detection priority order:
- nvidia-smi on PATH
- amdgpu sysfs: /sys/class/drm/cardN/device/gpu_busy_percent (no privileges needed)
- radeontop on PATH or a known install location
- none

Detection runs at construction and on reset() only. After
GPU_FAILURE_THRESHOLD consecutive failed samples the probe latches
disabled and stops touching the backend until reset().
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..const import DEFAULT_COMMAND_TIMEOUT, GPU_FAILURE_THRESHOLD, GPU_SYSFS_MAX_CARDS
from ..logging import get_logger
from ..models.vital import MetricKind
from ..utils.command import find_program, run_command
from ..utils.sysfs import read_int
from .base import Probe, ProbeError

logger = get_logger("probes.gpu")

DRM_ROOT = Path("/sys/class/drm")

NVIDIA_SMI = "nvidia-smi"
NVIDIA_QUERY = ("--query-gpu=utilization.gpu", "--format=csv,noheader,nounits")

RADEONTOP = "radeontop"
RADEONTOP_ARGS = ("-d", "-", "-l", "1")
RADEONTOP_LOCATIONS = (
    "/usr/bin",
    "/usr/local/bin",
    "/usr/sbin",
    "/opt/radeontop/bin",
)

_RADEONTOP_GPU = re.compile(r"\bgpu\s+(\d+(?:\.\d+)?)%")


class BackendKind(Enum):
    """GPU tooling selected by detection."""

    NVIDIA = "nvidia"
    AMD_SYSFS = "amd_sysfs"
    AMD_TOOL = "amd_tool"
    NONE = "none"


@dataclass(frozen=True)
class GpuBackend:
    """Selected backend plus the data its reader needs."""

    kind: BackendKind
    path: Path | None = None  # gpu_busy_percent file (AMD_SYSFS)
    executable: str | None = None  # tool path (NVIDIA, AMD_TOOL)

    @classmethod
    def nvidia(cls, executable: str) -> "GpuBackend":
        return cls(BackendKind.NVIDIA, executable=executable)

    @classmethod
    def amd_sysfs(cls, path: Path) -> "GpuBackend":
        return cls(BackendKind.AMD_SYSFS, path=path)

    @classmethod
    def amd_tool(cls, executable: str) -> "GpuBackend":
        return cls(BackendKind.AMD_TOOL, executable=executable)

    @classmethod
    def none(cls) -> "GpuBackend":
        return cls(BackendKind.NONE)

    def __str__(self) -> str:
        detail = self.path or self.executable
        return f"{self.kind.value} ({detail})" if detail else self.kind.value


@dataclass
class GpuHealth:
    """Consecutive failure tracking for the GPU probe."""

    failure_count: int = 0
    disabled: bool = False
    last_error: str | None = None


class GpuBackendDetector:
    """
    Detects which GPU tooling is usable on this host.

    Only checks for the presence of programs and files; nothing is executed.
    """

    def __init__(
        self,
        drm_root: Path = DRM_ROOT,
        max_cards: int = GPU_SYSFS_MAX_CARDS,
        which: Callable[[str, tuple[str, ...]], str | None] = find_program,
        tool_locations: tuple[str, ...] = RADEONTOP_LOCATIONS,
    ):
        self.drm_root = drm_root
        self.max_cards = max_cards
        self._which = which
        self.tool_locations = tool_locations

    def find_sysfs_busy_file(self) -> Path | None:
        """First cardN (N < max_cards) exposing gpu_busy_percent."""
        for index in range(self.max_cards):
            busy = self.drm_root / f"card{index}" / "device" / "gpu_busy_percent"
            if busy.is_file():
                return busy
        return None

    def detect(self) -> GpuBackend:
        """Select a backend in priority order, stopping at the first match."""
        nvidia = self._which(NVIDIA_SMI, ())
        if nvidia:
            return GpuBackend.nvidia(nvidia)

        busy_file = self.find_sysfs_busy_file()
        if busy_file:
            return GpuBackend.amd_sysfs(busy_file)

        tool = self._which(RADEONTOP, self.tool_locations)
        if tool:
            return GpuBackend.amd_tool(tool)

        return GpuBackend.none()


def parse_nvidia_output(output: str) -> float:
    """
    Parse nvidia-smi CSV output (noheader, nounits).

    The first non-empty line holds the utilization of the first GPU.
    """
    for line in output.splitlines():
        value = line.split(",")[0].strip()
        if value:
            try:
                return float(value)
            except ValueError:
                raise ProbeError(f"unexpected nvidia-smi output: {line!r}") from None
    raise ProbeError("nvidia-smi produced no output")


def parse_radeontop_output(output: str) -> float:
    """
    Extract the "gpu NN.NN%" token from a radeontop dump line, e.g.

        1700000000.123456: bus 03, gpu 12.50%, ee 0.00%, vgt 3.33%, ...
    """
    match = _RADEONTOP_GPU.search(output)
    if not match:
        raise ProbeError("no gpu percentage in radeontop output")
    return float(match.group(1))


class GpuProbe(Probe):
    """
    Probe for GPU utilization.

    Dispatches to the detected backend. Any failed read counts toward the
    disable latch; a successful read resets the count.
    """

    KIND = MetricKind.GPU

    def __init__(
        self,
        detector: GpuBackendDetector | None = None,
        timeout: float = DEFAULT_COMMAND_TIMEOUT,
        failure_threshold: int = GPU_FAILURE_THRESHOLD,
    ):
        super().__init__()
        self.detector = detector or GpuBackendDetector()
        self.timeout = timeout
        self.failure_threshold = failure_threshold
        self.health = GpuHealth()
        self.backend = self.detector.detect()
        logger.info(f"GPU backend: {self.backend}")

    @property
    def disabled(self) -> bool:
        return self.health.disabled

    def reset(self) -> GpuBackend:
        """Clear the failure latch and re-run backend detection."""
        self.health = GpuHealth()
        self.backend = self.detector.detect()
        logger.info(f"GPU probe reset, backend: {self.backend}")
        return self.backend

    async def sample(self) -> float:
        if self.health.disabled or self.backend.kind is BackendKind.NONE:
            self._last_value = 0.0
            return 0.0

        value = await super().sample()
        if self._last_error is None:
            self.health.failure_count = 0
            self.health.last_error = None
        else:
            self._record_failure(self._last_error)
        return value

    def _record_failure(self, error: str) -> None:
        self.health.failure_count += 1
        self.health.last_error = error
        if self.health.failure_count >= self.failure_threshold and not self.health.disabled:
            self.health.disabled = True
            logger.warning(
                f"GPU monitoring disabled after {self.health.failure_count} consecutive "
                f"failures ({self.backend}): {error}"
            )

    async def read(self) -> float:
        kind = self.backend.kind
        if kind is BackendKind.NVIDIA:
            return await self._read_nvidia()
        if kind is BackendKind.AMD_SYSFS:
            return self._read_sysfs()
        if kind is BackendKind.AMD_TOOL:
            return await self._read_radeontop()
        raise ProbeError("no GPU backend")

    async def _read_nvidia(self) -> float:
        result = await run_command(self.backend.executable or NVIDIA_SMI, *NVIDIA_QUERY, timeout=self.timeout)
        if not result.ok:
            raise ProbeError(result.stderr or f"nvidia-smi exited with code {result.returncode}")
        return parse_nvidia_output(result.stdout)

    def _read_sysfs(self) -> float:
        if self.backend.path is None:
            raise ProbeError("sysfs backend has no busy file")
        try:
            return float(read_int(self.backend.path))
        except (OSError, ValueError) as e:
            raise ProbeError(f"cannot read {self.backend.path}: {e}") from e

    async def _read_radeontop(self) -> float:
        result = await run_command(self.backend.executable or RADEONTOP, *RADEONTOP_ARGS, timeout=self.timeout)
        if not result.ok:
            raise ProbeError(result.stderr or f"radeontop exited with code {result.returncode}")
        return parse_radeontop_output(result.stdout)

    def close(self) -> None:
        self.backend = GpuBackend.none()

    def describe(self) -> str:
        return str(self.backend)
