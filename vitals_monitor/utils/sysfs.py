"""
Helpers for reading kernel-exposed text files (/proc, /sys).
"""

from pathlib import Path


def read_file(path: Path, default: str = "") -> str:
    """Read and strip a file, returning default on any error."""
    try:
        return path.read_text().strip()
    except (OSError, UnicodeDecodeError):
        return default


def read_int(path: Path) -> int:
    """
    Read a single integer from a file.

    Raises:
        OSError: If the file cannot be read
        ValueError: If the content is not an integer
    """
    return int(path.read_text().strip())
