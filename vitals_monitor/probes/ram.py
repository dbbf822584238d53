"""
Memory pressure probe reading /proc/meminfo.
"""

import re
from pathlib import Path

from ..models.vital import MetricKind
from .base import Probe, ProbeError

_MEMINFO_LINE = re.compile(r"^(\w+):\s*(\d+)")


def parse_meminfo(content: str) -> dict[str, int]:
    """
    Parse "Key:   value kB" lines into a dict of integer values.

    Lines that do not match are ignored.
    """
    values: dict[str, int] = {}
    for line in content.splitlines():
        match = _MEMINFO_LINE.match(line)
        if match:
            values[match.group(1)] = int(match.group(2))
    return values


class RamProbe(Probe):
    """Probe for used memory as a share of total: (MemTotal - MemAvailable) / MemTotal."""

    KIND = MetricKind.RAM

    def __init__(self, meminfo_path: Path = Path("/proc/meminfo")):
        super().__init__()
        self.meminfo_path = meminfo_path

    async def read(self) -> float:
        try:
            content = self.meminfo_path.read_text()
        except OSError as e:
            raise ProbeError(f"cannot read {self.meminfo_path}: {e}") from e

        info = parse_meminfo(content)
        total = info.get("MemTotal", 0)
        if total <= 0:
            raise ProbeError("MemTotal missing or zero")
        if "MemAvailable" not in info:
            raise ProbeError("MemAvailable missing")

        return (total - info["MemAvailable"]) / total * 100

    def describe(self) -> str:
        return str(self.meminfo_path)
