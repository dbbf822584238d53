"""
CPU temperature probe from thermal zones.

Discovers /sys/class/thermal/thermal_zone* entries whose type names a CPU
sensor, averages their plausible readings and maps the result from the
30-90 °C range onto 0-100.
"""

from collections.abc import Sequence
from pathlib import Path
from typing import NamedTuple

from ..const import TEMP_PLAUSIBLE_MAX, TEMP_PLAUSIBLE_MIN, TEMP_RANGE_MAX, TEMP_RANGE_MIN
from ..logging import get_logger
from ..models.vital import MetricKind
from ..utils.sysfs import read_file, read_int
from .base import Probe, ProbeError

logger = get_logger("probes.temp")

THERMAL_ROOT = Path("/sys/class/thermal")

# Substrings (lowercase) of zone types that describe the CPU package or cores
CPU_ZONE_TYPES = (
    "cpu",
    "processor",
    "x86_pkg_temp",
    "package",
    "coretemp",
    "k10temp",
    "tctl",
    "tdie",
    "soc",
)

FALLBACK_PATHS = (
    Path("/sys/class/thermal/thermal_zone0/temp"),
    Path("/sys/class/hwmon/hwmon0/temp1_input"),
    Path("/sys/class/hwmon/hwmon1/temp1_input"),
)


class ThermalZone(NamedTuple):
    """Thermal zone information."""

    name: str
    path: Path
    type: str


def discover_thermal_zones(root: Path = THERMAL_ROOT) -> list[ThermalZone]:
    """
    Discover thermal zones that expose a temp file.

    Args:
        root: Thermal class directory

    Returns:
        List of ThermalZone tuples sorted by name
    """
    zones: list[ThermalZone] = []
    if not root.is_dir():
        return zones

    for zone_dir in sorted(root.glob("thermal_zone*")):
        if not (zone_dir / "temp").exists():
            continue
        zone_type = read_file(zone_dir / "type", default=zone_dir.name)
        zones.append(ThermalZone(name=zone_dir.name, path=zone_dir, type=zone_type))

    return zones


def is_cpu_zone(zone_type: str) -> bool:
    """Case-insensitive match of a zone type against the CPU vocabulary."""
    lowered = zone_type.lower()
    return any(token in lowered for token in CPU_ZONE_TYPES)


def select_thermal_sources(
    root: Path = THERMAL_ROOT,
    fallback_paths: Sequence[Path] = FALLBACK_PATHS,
) -> tuple[Path, ...]:
    """
    Build the ordered set of temperature files to read.

    CPU-typed zones win; otherwise the existing fallback paths are used.
    """
    sources = tuple(zone.path / "temp" for zone in discover_thermal_zones(root) if is_cpu_zone(zone.type))
    if sources:
        return sources

    sources = tuple(path for path in fallback_paths if path.exists())
    if sources:
        logger.debug(f"No CPU thermal zone found, using fallback sources: {[str(p) for p in sources]}")
    else:
        logger.info("No CPU temperature source found")
    return sources


def celsius_to_reading(celsius: float) -> float:
    """Map a temperature linearly from [TEMP_RANGE_MIN, TEMP_RANGE_MAX] to [0, 100]."""
    return (celsius - TEMP_RANGE_MIN) / (TEMP_RANGE_MAX - TEMP_RANGE_MIN) * 100


class TemperatureProbe(Probe):
    """
    Probe for CPU temperature.

    Sources are selected once at construction and never re-detected.
    """

    KIND = MetricKind.TEMPERATURE

    def __init__(
        self,
        thermal_root: Path = THERMAL_ROOT,
        fallback_paths: Sequence[Path] = FALLBACK_PATHS,
    ):
        super().__init__()
        self._sources = select_thermal_sources(thermal_root, fallback_paths)

    @property
    def sources(self) -> tuple[Path, ...]:
        return self._sources

    def read_celsius(self) -> list[float]:
        """Read every source, keeping only physically plausible values."""
        temps = []
        for path in self._sources:
            try:
                celsius = read_int(path) / 1000.0
            except (OSError, ValueError):
                continue
            if TEMP_PLAUSIBLE_MIN < celsius < TEMP_PLAUSIBLE_MAX:
                temps.append(celsius)
        return temps

    async def read(self) -> float:
        if not self._sources:
            raise ProbeError("no temperature source available")

        temps = self.read_celsius()
        if not temps:
            raise ProbeError("no plausible temperature reading")

        return celsius_to_reading(sum(temps) / len(temps))

    def describe(self) -> str:
        if not self._sources:
            return "none"
        return ", ".join(str(path) for path in self._sources)
