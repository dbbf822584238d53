"""
CPU utilization probe.

Reads the aggregate "cpu " line of /proc/stat and computes busy time
as a share of total time since the previous sample.
"""

from pathlib import Path
from typing import NamedTuple

from ..models.vital import MetricKind
from .base import Probe, ProbeError

IDLE_FIELD = 3


class CpuTimes(NamedTuple):
    """Cumulative jiffy counters from one /proc/stat snapshot."""

    total: int
    idle: int


def parse_cpu_times(content: str) -> CpuTimes:
    """
    Parse the aggregate CPU line (first line) of /proc/stat.

    Args:
        content: Full /proc/stat text

    Returns:
        CpuTimes with the sum of all fields and the idle field

    Raises:
        ProbeError: If the first line is not the aggregate line or has
            fewer than four numeric fields
    """
    first_line = content.split("\n", 1)[0]
    if not first_line.startswith("cpu "):
        raise ProbeError("first line of stat is not the aggregate cpu line")

    fields = [int(token) for token in first_line.split()[1:] if token.isdigit()]
    if len(fields) <= IDLE_FIELD:
        raise ProbeError(f"expected at least {IDLE_FIELD + 1} cpu fields, got {len(fields)}")

    return CpuTimes(total=sum(fields), idle=fields[IDLE_FIELD])


class CpuProbe(Probe):
    """
    Probe for overall CPU utilization.

    Keeps the previous snapshot's counters; the first sample compares
    against zero, i.e. reports utilization since boot.
    """

    KIND = MetricKind.CPU

    def __init__(self, stat_path: Path = Path("/proc/stat")):
        super().__init__()
        self.stat_path = stat_path
        self._last = CpuTimes(total=0, idle=0)

    async def read(self) -> float:
        try:
            content = self.stat_path.read_text()
        except OSError as e:
            raise ProbeError(f"cannot read {self.stat_path}: {e}") from e

        times = parse_cpu_times(content)
        total_delta = times.total - self._last.total
        idle_delta = times.idle - self._last.idle
        self._last = times

        if total_delta <= 0:
            return 0.0
        return (total_delta - idle_delta) / total_delta * 100

    def describe(self) -> str:
        return str(self.stat_path)
