"""
Abstract interfaces and shared data types for the solver.

The round engine only talks to the measurement backend and to the
length-detection rule through the contracts defined here, so tests can
swap in synthetic targets without touching the engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence


@dataclass(frozen=True)
class ScoreRecord:
    """
    One scored candidate of the current round.

    Attributes:
        score: Counter reading returned for the probe
        character: The candidate character that was appended to the prefix
    """
    score: int
    character: str


class RunState(Enum):
    """Lifecycle of the shared round state."""
    PENDING = "pending"          # no round started yet
    COLLECTING = "collecting"    # candidates remain or are being measured
    RESOLVING = "resolving"      # round drained, winner being picked
    DONE = "done"                # target length reached
    ABORTED = "aborted"          # constraint mismatch or measurement failure


class RoundOutcome(Enum):
    """Result of resolving one round."""
    CONTINUE = "continue"
    DONE = "done"
    ABORT = "abort"


class IMeasurementService(ABC):
    """
    Interface for the measurement backend.

    Maps one probe to a scalar counter reading. Implementations must be
    safe to call from several worker threads at once.
    """

    @abstractmethod
    def run(self, probe: str) -> int:
        """
        Execute the target with a probe and read back the counter.

        Args:
            probe: Full input to deliver to the target

        Returns:
            Counter reading (higher is assumed to mean "more correct")

        Raises:
            MeasurementFailure: If the backend cannot produce a reading
        """
        pass


class ILengthStrategy(ABC):
    """
    Interface for the rule that spots the password length in a signal.

    The probe/measure loop lives in LengthDiscovery; strategies only look
    at the readings collected so far.
    """

    @abstractmethod
    def detect(self, scores: Sequence[int], max_length: int) -> Optional[int]:
        """
        Look for the characteristic change in the readings.

        Args:
            scores: scores[i] is the reading for a probe of length i + 1
            max_length: Upper bound of the scan

        Returns:
            The first length showing the change, or None if not (yet) seen
        """
        pass


class ISolver(ABC):
    """Interface for a complete plaintext recovery run."""

    @abstractmethod
    def solve(self) -> str:
        """
        Recover the plaintext.

        Returns:
            The discovered prefix once it reaches the target length

        Raises:
            ConstraintMismatch: If a known-plaintext constraint is violated
            MeasurementFailure: If any measurement fails
        """
        pass


class ILogger(ABC):
    """Interface for logging functionality."""

    @abstractmethod
    def debug(self, message: str) -> None:
        """Log debug message."""
        pass

    @abstractmethod
    def info(self, message: str) -> None:
        """Log info message."""
        pass

    @abstractmethod
    def warning(self, message: str) -> None:
        """Log warning message."""
        pass

    @abstractmethod
    def error(self, message: str) -> None:
        """Log error message."""
        pass
