"""
Pytest configuration and fixtures.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from vitals_monitor.utils.command import CommandResult

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def example_config_path() -> Path:
    """Path to the example config file shipped with the project."""
    return PROJECT_ROOT / "vitals.example.conf"


@pytest.fixture
def write_stat(tmp_path: Path) -> Callable[..., Path]:
    """Write a /proc/stat stand-in whose aggregate line has the given fields."""
    path = tmp_path / "stat"

    def write(*fields: int, first_line: str | None = None) -> Path:
        line = first_line if first_line is not None else "cpu  " + " ".join(str(f) for f in fields)
        path.write_text(f"{line}\ncpu0 1 2 3 4\nintr 12345\n")
        return path

    return write


@pytest.fixture
def write_meminfo(tmp_path: Path) -> Callable[..., Path]:
    """Write a /proc/meminfo stand-in from keyword arguments (values in kB)."""
    path = tmp_path / "meminfo"

    def write(**values: int) -> Path:
        path.write_text("".join(f"{key}:{value:>16} kB\n" for key, value in values.items()))
        return path

    return write


@pytest.fixture
def thermal_root(tmp_path: Path) -> Path:
    """Empty /sys/class/thermal stand-in."""
    root = tmp_path / "thermal"
    root.mkdir()
    return root


@pytest.fixture
def add_zone(thermal_root: Path) -> Callable[[int, str, int | str], Path]:
    """Create thermal_zone<index> with the given type and temp content."""

    def add(index: int, zone_type: str, millidegrees: int | str) -> Path:
        zone = thermal_root / f"thermal_zone{index}"
        zone.mkdir()
        (zone / "type").write_text(f"{zone_type}\n")
        (zone / "temp").write_text(f"{millidegrees}\n")
        return zone

    return add


class FakeCommands:
    """Stand-in for run_command that records calls and returns canned results."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.results: list[CommandResult | Exception] = []
        self.default: CommandResult | Exception = CommandResult(0, "", "")

    def push(self, result: CommandResult | Exception) -> None:
        self.results.append(result)

    async def __call__(self, *args: str, timeout: float = 5.0) -> CommandResult:
        self.calls.append(args)
        result = self.results.pop(0) if self.results else self.default
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def fake_commands() -> FakeCommands:
    return FakeCommands()
