"""
Host description used for startup logging and configuration summaries.
"""

import platform
import socket
from pathlib import Path
from typing import NamedTuple

import psutil


class HostInfo(NamedTuple):
    """Basic facts about the machine being monitored."""

    hostname: str
    os: str
    kernel: str
    cpu_count: int
    memory_total_mib: int

    def describe(self) -> str:
        return (
            f"{self.hostname} ({self.os}, kernel {self.kernel}, "
            f"{self.cpu_count} CPUs, {self.memory_total_mib} MiB RAM)"
        )


def _os_pretty_name(os_release: Path = Path("/etc/os-release")) -> str:
    """PRETTY_NAME from os-release, or platform system/release."""
    try:
        for line in os_release.read_text().splitlines():
            if line.startswith("PRETTY_NAME="):
                return line.split("=", 1)[1].strip().strip('"')
    except OSError:
        pass
    return f"{platform.system()} {platform.release()}".strip()


def get_host_info() -> HostInfo:
    """Collect host information via socket, platform and psutil."""
    try:
        hostname = socket.gethostname()
    except OSError:
        hostname = platform.node() or "linux"

    return HostInfo(
        hostname=hostname,
        os=_os_pretty_name(),
        kernel=platform.release(),
        cpu_count=psutil.cpu_count() or 0,
        memory_total_mib=int(psutil.virtual_memory().total / (1024 * 1024)),
    )
