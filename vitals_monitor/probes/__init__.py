"""
Probes for sampling system vitals.

Each probe reads one vital and reports a percentage in [0, 100].
"""

from ..config.schema import Config
from ..models.vital import MetricKind
from .base import Probe, ProbeError
from .cpu import CpuProbe
from .gpu import GpuBackend, GpuBackendDetector, GpuProbe
from .ram import RamProbe
from .storage import StorageProbe
from .temperature import TemperatureProbe

__all__ = [
    "Probe",
    "ProbeError",
    "CpuProbe",
    "RamProbe",
    "StorageProbe",
    "TemperatureProbe",
    "GpuProbe",
    "GpuBackend",
    "GpuBackendDetector",
    "create_probes",
]


def create_probes(config: Config) -> dict[MetricKind, Probe]:
    """Create one probe per vital, in display order."""
    return {
        MetricKind.CPU: CpuProbe(),
        MetricKind.RAM: RamProbe(),
        MetricKind.STORAGE: StorageProbe(path=config.storage.path, timeout=config.storage.timeout),
        MetricKind.TEMPERATURE: TemperatureProbe(),
        MetricKind.GPU: GpuProbe(timeout=config.gpu.timeout),
    }
