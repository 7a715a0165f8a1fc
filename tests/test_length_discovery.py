"""
Unit tests for length discovery and its signal helpers.

Run with: pytest tests/test_length_discovery.py -v
"""

import math

import pytest

from perf_solver.core.exceptions import ConfigurationError
from perf_solver.services.length_service import (
    DeviationStrategy, JumpStrategy, LengthDiscovery, PeakStrategy, create_strategy
)
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger
from perf_solver.utils.stats import (
    deviation, largest_step, leads_signal, spike_scores, step_changes
)
from tests.fakes import FakeMeasurementService


def length_checking_target(length: int) -> FakeMeasurementService:
    """Count grows 10 per byte; the right length gets past the length check."""
    def score(probe: str) -> int:
        bonus = 4000 if len(probe) >= length else 0
        return 200 + 10 * len(probe) + bonus
    return FakeMeasurementService(score)


def exact_length_target(length: int) -> FakeMeasurementService:
    """Count grows 10 per byte and spikes only at the right length."""
    def score(probe: str) -> int:
        bonus = 4000 if len(probe) == length else 0
        return 200 + 10 * len(probe) + bonus
    return FakeMeasurementService(score)


@pytest.fixture
def logger():
    """Create a silent logger for tests."""
    return Logger(console=False)


class TestStats:
    """Signal helper functions."""

    def test_step_changes(self):
        """Test differences between consecutive readings."""
        assert step_changes([100, 110, 125]).tolist() == [10, 15]
        assert step_changes([5]).size == 0

    def test_deviation_of_constant_history(self):
        """Test deviation against a history with no spread."""
        assert deviation([10, 10, 10], 10) == 0.0
        assert math.isinf(deviation([10, 10, 10], 11))

    def test_deviation_in_std_units(self):
        """Test deviation measured in standard deviations."""
        assert deviation([8, 12], 16) == pytest.approx(3.0)

    def test_largest_step(self):
        """Test locating the reading reached by the largest increase."""
        assert largest_step([1, 2, 50, 51]) == 2
        assert largest_step([7]) == 0

    def test_spike_scores_constant_signal(self):
        """Test z-scores of a flat signal."""
        assert spike_scores([3, 3, 3]).tolist() == [0.0, 0.0, 0.0]

    def test_leads_signal(self):
        """Test spotting a signal that peaks at its first reading."""
        assert leads_signal([4210, 220, 230]) is True
        assert leads_signal([210, 4220, 230]) is False
        assert leads_signal([5, 5, 5]) is False
        assert leads_signal([5]) is False


class TestStrategies:
    """Change detection rules."""

    def test_deviation_finds_first_break(self):
        """Test that the first step off the trend is reported."""
        scores = [110, 120, 130, 140, 5150, 5160, 5170]

        assert DeviationStrategy().detect(scores, 10) == 5

    def test_deviation_needs_history(self):
        """Test that no length is reported before enough steps exist."""
        assert DeviationStrategy().detect([110, 5120, 5130], 10) is None

    def test_deviation_tolerates_small_noise(self):
        """Test that small jitter in the steps is not a change."""
        scores = [110, 121, 130, 141, 150, 161]

        assert DeviationStrategy().detect(scores, 10) is None

    def test_jump_waits_for_full_scan(self):
        """Test that the jump rule only answers after a full scan."""
        strategy = JumpStrategy()

        assert strategy.detect([1, 2, 90], 4) is None
        assert strategy.detect([1, 2, 90, 91], 4) == 3

    def test_jump_reports_length_one(self):
        """Test that a peak at the first reading means length 1."""
        assert JumpStrategy().detect([4210, 220, 230, 240], 4) == 1

    def test_peak_picks_highest_reading(self):
        """Test that the peak rule picks the highest reading."""
        strategy = PeakStrategy()

        assert strategy.detect([5, 5, 40, 5, 5], 5) == 3
        assert strategy.detect([5, 5, 40], 5) is None

    def test_create_strategy(self):
        """Test building strategies by configuration name."""
        assert isinstance(create_strategy("deviation"), DeviationStrategy)
        assert isinstance(create_strategy("jump"), JumpStrategy)
        with pytest.raises(ConfigurationError):
            create_strategy("guess")


class TestLengthDiscovery:
    """The probe/measure loop."""

    @pytest.mark.parametrize("actual", [4, 7, 16])
    def test_finds_signal_change(self, logger, actual):
        """Test finding the length where the signal leaves its trend."""
        target = length_checking_target(actual)
        discovery = LengthDiscovery(target, ProbeBuilder(), DeviationStrategy(), logger)

        assert discovery.find_length(max_length=20) == actual

    @pytest.mark.parametrize("actual", [1, 2, 3, 5])
    def test_finds_single_spike(self, logger, actual):
        """Test finding a spike at the right length, including length 1."""
        target = exact_length_target(actual)
        discovery = LengthDiscovery(target, ProbeBuilder(), DeviationStrategy(), logger)

        assert discovery.find_length(max_length=10) == actual

    def test_stops_at_first_detection(self, logger):
        """Test that measuring stops once a length is detected."""
        target = length_checking_target(6)
        discovery = LengthDiscovery(target, ProbeBuilder(), DeviationStrategy(), logger)

        discovery.find_length(max_length=32)

        assert len(target.probes) == 6

    def test_probes_use_filler_and_literals(self, logger):
        """Test the shape of length probes."""
        target = FakeMeasurementService(lambda probe: 1)
        builder = ProbeBuilder(input_beg="<", input_end=">", padding="x")
        discovery = LengthDiscovery(target, builder, JumpStrategy(), logger)

        discovery.find_length(max_length=3)

        assert target.probes == ["<x>", "<xx>", "<xxx>"]

    @pytest.mark.parametrize("max_length", [1, 3, 5])
    def test_never_exceeds_max_length(self, logger, max_length):
        """Test that the result stays within [1, max_length]."""
        target = length_checking_target(9)
        discovery = LengthDiscovery(target, ProbeBuilder(), DeviationStrategy(), logger)

        found = discovery.find_length(max_length=max_length)

        assert 1 <= found <= max_length
        assert len(target.probes) == max_length

    def test_falls_back_to_largest_step(self, logger):
        """Test the fallback when the strategy never answers."""
        target = length_checking_target(3)
        discovery = LengthDiscovery(target, ProbeBuilder(), DeviationStrategy(), logger)

        assert discovery.find_length(max_length=3) == 3

    def test_rejects_empty_range(self, logger):
        """Test that max_length below 1 is a config error."""
        discovery = LengthDiscovery(
            FakeMeasurementService(lambda probe: 1), ProbeBuilder(), JumpStrategy(), logger
        )

        with pytest.raises(ConfigurationError):
            discovery.find_length(max_length=0)
