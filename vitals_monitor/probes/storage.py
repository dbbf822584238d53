"""
Disk usage probe for a mounted filesystem.

Runs ``df -P <path>`` and takes the capacity column of the first data row.
POSIX output keeps each filesystem on a single line, so the column index
is stable even for long device names:

    Filesystem     1024-blocks      Used Available Capacity Mounted on
    /dev/nvme0n1p2   479151816 181264888 273478152      40% /
"""

import re

from ..const import DEFAULT_COMMAND_TIMEOUT
from ..models.vital import MetricKind
from ..utils.command import run_command
from .base import Probe, ProbeError

CAPACITY_COLUMN = 4

_PERCENT = re.compile(r"^(\d+)%$")


def parse_df_output(output: str) -> float:
    """
    Extract the used percentage from df output.

    Raises:
        ProbeError: If there is no data row or the capacity column is malformed
    """
    lines = [line for line in output.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ProbeError("df produced no data row")

    columns = lines[1].split()
    if len(columns) <= CAPACITY_COLUMN:
        raise ProbeError(f"df data row has {len(columns)} columns")

    match = _PERCENT.match(columns[CAPACITY_COLUMN])
    if not match:
        raise ProbeError(f"unexpected capacity value: {columns[CAPACITY_COLUMN]!r}")

    return float(match.group(1))


class StorageProbe(Probe):
    """Probe for disk usage of the filesystem holding path (root by default)."""

    KIND = MetricKind.STORAGE

    def __init__(self, path: str = "/", timeout: float = DEFAULT_COMMAND_TIMEOUT):
        super().__init__()
        self.path = path
        self.timeout = timeout

    async def read(self) -> float:
        result = await run_command("df", "-P", self.path, timeout=self.timeout)
        if not result.ok:
            raise ProbeError(result.stderr or f"df exited with code {result.returncode}")
        return parse_df_output(result.stdout)

    def describe(self) -> str:
        return f"df {self.path}"
