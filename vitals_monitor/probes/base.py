"""
Base probe interface for vital sampling.

Every probe inherits from the abstract Probe class and implements read().
Callers use sample(), which folds every failure into a reading of 0.
"""

from abc import ABC, abstractmethod

from ..logging import get_logger
from ..models.vital import MetricKind, clamp_reading


class ProbeError(Exception):
    """Raised inside a probe when a source cannot be read or parsed."""

    pass


class Probe(ABC):
    """
    Abstract sampling unit for one vital.

    Subclasses implement read(), which may raise. sample() never raises:
    failures surface as 0 and are kept in last_error for diagnostics.
    """

    # Vital served by this probe (override in subclasses)
    KIND: MetricKind

    def __init__(self) -> None:
        self.logger = get_logger(f"probes.{self.KIND.value}")
        self._last_error: str | None = None
        self._last_value = 0.0

    @abstractmethod
    async def read(self) -> float:
        """
        Take one raw reading.

        Returns:
            Utilization percentage (clamped by the caller)

        Raises:
            Exception: Any failure; sample() converts it to 0
        """
        pass

    async def sample(self) -> float:
        """
        Take one reading in [0, 100], returning 0 on any failure.

        Returns:
            Normalized reading
        """
        try:
            value = clamp_reading(await self.read())
        except Exception as e:
            self._last_error = str(e) or e.__class__.__name__
            self.logger.debug(f"{self.KIND.display_name} sample failed: {self._last_error}")
            value = 0.0
        else:
            self._last_error = None

        self._last_value = value
        return value

    def close(self) -> None:
        """Release resources held by the probe. Called once at teardown."""
        pass

    def describe(self) -> str:
        """Short description of the source this probe reads."""
        return self.KIND.display_name

    @property
    def last_error(self) -> str | None:
        """Error message of the most recent sample, or None if it succeeded."""
        return self._last_error

    @property
    def last_value(self) -> float:
        return self._last_value

    def __repr__(self) -> str:
        status = "OK" if self._last_error is None else f"ERROR: {self._last_error}"
        return f"{self.__class__.__name__}({self.describe()!r}, {status})"
