"""
Bounded-time execution of external commands on the event loop.
"""

import asyncio
import shutil
from pathlib import Path
from typing import NamedTuple

from ..const import DEFAULT_COMMAND_TIMEOUT


class CommandError(Exception):
    """Raised when an external command cannot be run or does not finish in time."""

    pass


class CommandResult(NamedTuple):
    """Output of a finished command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(*args: str, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> CommandResult:
    """
    Run a command without a shell and collect its output.

    The child process is always reaped before returning, including on
    timeout and task cancellation.

    Args:
        *args: Program and arguments
        timeout: Maximum run time in seconds

    Returns:
        CommandResult with decoded stdout/stderr

    Raises:
        CommandError: If the program cannot be started or times out
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(f"{args[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        raise CommandError(f"{args[0]} timed out after {timeout}s") from None
    finally:
        if proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()

    return CommandResult(
        returncode=proc.returncode or 0,
        stdout=stdout.decode(errors="replace").strip(),
        stderr=stderr.decode(errors="replace").strip(),
    )


def find_program(name: str, extra_locations: tuple[str | Path, ...] = ()) -> str | None:
    """
    Locate an executable on PATH or in a list of known install locations.

    Only checks for existence; nothing is executed.
    """
    found = shutil.which(name)
    if found:
        return found

    for location in extra_locations:
        candidate = Path(location)
        if candidate.is_dir():
            candidate = candidate / name
        found = shutil.which(str(candidate))
        if found:
            return found

    return None
