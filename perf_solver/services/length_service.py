"""
Password length discovery.

Measures filler probes of increasing length and hands the readings to a
pluggable strategy that decides where the signal changes. The loop
itself never looks at the numbers.
"""

from typing import Dict, List, Optional, Sequence, Type

from perf_solver.core.interfaces import ILengthStrategy, IMeasurementService
from perf_solver.core.exceptions import ConfigurationError
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger
from perf_solver.utils.stats import (
    deviation, largest_step, leads_signal, spike_scores, step_changes
)


class DeviationStrategy(ILengthStrategy):
    """
    Flags the first step change that breaks the trend of earlier steps.

    Targets that check the length before comparing usually grow their
    count by a constant amount per extra input byte; the correct length
    slips past the length check and jumps off that line.
    """

    def __init__(self, threshold: float = 3.0, min_history: int = 2):
        self.threshold = threshold
        self.min_history = min_history

    def detect(self, scores: Sequence[int], max_length: int) -> Optional[int]:
        changes = step_changes(scores)
        for i in range(self.min_history, len(changes)):
            if deviation(changes[:i], changes[i]) > self.threshold:
                # changes[i] leads to scores[i + 1], the probe of length i + 2
                return i + 2
        return None


class JumpStrategy(ILengthStrategy):
    """
    Picks the length reached by the largest increase, after a full scan.

    A first reading that tops every later one means length 1.
    """

    def detect(self, scores: Sequence[int], max_length: int) -> Optional[int]:
        if len(scores) < max_length:
            return None
        return 1 if leads_signal(scores) else largest_step(scores) + 1


class PeakStrategy(ILengthStrategy):
    """Picks the length with the highest reading, after a full scan."""

    def __init__(self, threshold: float = 0.0):
        self.threshold = threshold

    def detect(self, scores: Sequence[int], max_length: int) -> Optional[int]:
        if len(scores) < max_length:
            return None

        z_scores = spike_scores(scores)
        best = int(z_scores.argmax())
        if z_scores[best] < self.threshold:
            return None
        return best + 1


STRATEGIES: Dict[str, Type[ILengthStrategy]] = {
    "deviation": DeviationStrategy,
    "jump": JumpStrategy,
    "peak": PeakStrategy,
}


def create_strategy(name: str) -> ILengthStrategy:
    """
    Instantiate a length strategy by its configuration name.

    Raises:
        ConfigurationError: If the name is unknown
    """
    try:
        return STRATEGIES[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown length strategy: {name} "
            f"(choose from {', '.join(sorted(STRATEGIES))})"
        )


class LengthDiscovery:
    """
    Probe/measure loop that infers the password length.

    Example:
        >>> discovery = LengthDiscovery(service, ProbeBuilder(), DeviationStrategy())
        >>> discovery.find_length(max_length=32)
        12
    """

    def __init__(
        self,
        measurement_service: IMeasurementService,
        probe_builder: ProbeBuilder,
        strategy: ILengthStrategy,
        logger: Optional[Logger] = None
    ):
        self.measurement_service = measurement_service
        self.probe_builder = probe_builder
        self.strategy = strategy
        self.logger = logger or Logger(name="PerfSolver.length", console=False)

    def find_length(self, max_length: int) -> int:
        """
        Measure lengths 1..max_length and return the detected length.

        Stops at the first length the strategy reports. When the strategy
        never reports one, falls back to length 1 when its reading stands
        above all later ones, otherwise to the largest step increase.

        Args:
            max_length: Largest length to probe (must be at least 1)

        Returns:
            Detected length, always within [1, max_length]
        """
        if max_length < 1:
            raise ConfigurationError(f"max_length must be at least 1, got {max_length}")

        scores: List[int] = []

        for length in range(1, max_length + 1):
            probe = self.probe_builder.prepare_filler(length)
            score = self.measurement_service.run(probe)
            scores.append(score)
            self.logger.debug(f"Length {length}: {score}")

            found = self.strategy.detect(scores, max_length)
            if found is not None:
                return self._clamp(found, max_length)

        if leads_signal(scores):
            self.logger.warning("No length change detected, the first reading stands out: using 1")
            return 1

        self.logger.warning("No length change detected, using the largest step instead")
        return self._clamp(largest_step(scores) + 1, max_length)

    @staticmethod
    def _clamp(length: int, max_length: int) -> int:
        return max(1, min(length, max_length))
