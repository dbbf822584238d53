"""
Utility functions and helpers.
"""

from .command import CommandError, CommandResult, find_program, run_command
from .host import HostInfo, get_host_info
from .sysfs import read_file, read_int

__all__ = [
    "run_command",
    "find_program",
    "CommandResult",
    "CommandError",
    "get_host_info",
    "HostInfo",
    "read_file",
    "read_int",
]
