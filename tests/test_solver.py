"""
End-to-end tests for the solver and its worker threads.

Run with: pytest tests/test_solver.py -v
"""

import time
from unittest.mock import Mock

import pytest

from perf_solver.core.interfaces import RunState
from perf_solver.core.exceptions import (
    ConfigurationError, ConstraintMismatch, MeasurementFailure, SolverException
)
from perf_solver.attack.coordinator import RoundCoordinator
from perf_solver.attack.solver import SideChannelSolver, SolverConfig, DEFAULT_ALPHABET
from perf_solver.attack.worker import ProbeWorker
from perf_solver.services.length_service import DeviationStrategy, LengthDiscovery
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger
from tests.fakes import FakeMeasurementService, early_exit_target, favours


@pytest.fixture
def logger():
    """Create a silent logger for tests."""
    return Logger(console=False)


class TestSolver:
    """Full searches against synthetic targets."""

    def test_always_favoured_character(self, logger):
        """Test a target that always prefers 'z' finishes in three rounds."""
        config = SolverConfig(exe_path="target", alphabet="abcxyz", threads=4, length=3)
        solver = SideChannelSolver(config, favours('z'), logger=logger)

        assert solver.solve() == "zzz"
        assert solver.coordinator.rounds == 3
        assert solver.coordinator.state is RunState.DONE

    def test_workers_exit_after_done(self, logger):
        """Test that every worker exits once the password is complete."""
        config = SolverConfig(exe_path="target", alphabet="abcxyz", threads=3, length=2)
        solver = SideChannelSolver(config, favours('y'), logger=logger)

        solver.solve()

        assert all(not worker.is_alive() for worker in solver.workers)
        assert sum(worker.measured for worker in solver.workers) == 2 * 6

    def test_every_candidate_measured_once_per_round(self, logger):
        """Test that each candidate is measured exactly once per round."""
        service = favours('b')
        config = SolverConfig(exe_path="target", alphabet="abc", threads=2, length=2)

        SideChannelSolver(config, service, logger=logger).solve()

        assert sorted(service.probes) == sorted(["a", "b", "c", "ba", "bb", "bc"])

    def test_early_exit_comparison(self, logger):
        """Test recovery from an early-exit string comparison."""
        config = SolverConfig(
            exe_path="target",
            alphabet="abcdefghijklmnopqrstuvwxyz",
            threads=4,
            length=6,
            padding="#",
        )
        solver = SideChannelSolver(config, early_exit_target("secret"), logger=logger)

        assert solver.solve() == "secret"

    def test_probes_carry_literal_prefix_and_suffix(self, logger):
        """Test that input_beg and input_end wrap every probe."""
        service = favours('b')
        config = SolverConfig(
            exe_path="target", alphabet="ab", threads=1, length=1,
            input_beg="FLAG{", input_end="}",
        )

        SideChannelSolver(config, FakeMeasurementService(
            lambda probe: service.run(probe[len("FLAG{"):-1])
        ), logger=logger).solve()

        assert sorted(service.probes) == ["a", "b"]

    def test_starts_with_mismatch_aborts_run(self, logger):
        """Test that a starts_with conflict stops the whole run."""
        config = SolverConfig(
            exe_path="target", alphabet="abz", threads=2, length=4, starts_with="q"
        )
        solver = SideChannelSolver(config, favours('z'), logger=logger)

        with pytest.raises(ConstraintMismatch) as info:
            solver.solve()

        assert info.value.constraint == "starts_with"
        assert info.value.found == "z"
        assert solver.coordinator.rounds == 1
        assert solver.coordinator.state is RunState.ABORTED

    def test_measurement_failure_aborts_run(self, logger):
        """Test that one failed measurement stops the whole run."""
        def score(probe):
            if probe == "b":
                raise MeasurementFailure(probe, "perf crashed")
            return 1

        config = SolverConfig(exe_path="target", alphabet="abc", threads=2, length=2)
        solver = SideChannelSolver(config, FakeMeasurementService(score), logger=logger)

        with pytest.raises(MeasurementFailure, match="perf crashed"):
            solver.solve()
        assert solver.coordinator.state is RunState.ABORTED

    def test_unexpected_error_becomes_measurement_failure(self, logger):
        """Test that stray backend errors surface as MeasurementFailure."""
        config = SolverConfig(exe_path="target", alphabet="ab", threads=1, length=1)
        service = Mock()
        service.run.side_effect = RuntimeError("boom")

        with pytest.raises(MeasurementFailure, match="boom"):
            SideChannelSolver(config, service, logger=logger).solve()

    def test_discovers_length_when_unset(self, logger):
        """Test that length discovery runs when no length is given."""
        target = early_exit_target("abcd")
        length_service = FakeMeasurementService(
            lambda probe: 100 + 10 * len(probe) + (5000 if len(probe) == 4 else 0)
        )
        discovery = LengthDiscovery(length_service, ProbeBuilder(), DeviationStrategy(), logger)
        config = SolverConfig(exe_path="target", alphabet="abcd", threads=2, max_length=10)

        assert SideChannelSolver(config, target, discovery, logger).solve() == "abcd"

    def test_unknown_length_without_discovery(self, logger):
        """Test that a missing length and no discovery is a config error."""
        config = SolverConfig(exe_path="target", alphabet="ab", threads=1)

        with pytest.raises(ConfigurationError):
            SideChannelSolver(config, favours('a'), logger=logger).solve()


class TestSolverConfig:
    """Host-independent configuration checks."""

    def test_defaults(self):
        """Test default configuration values."""
        config = SolverConfig(exe_path="target")

        assert config.alphabet == DEFAULT_ALPHABET
        assert len(DEFAULT_ALPHABET) == 0x7f
        assert DEFAULT_ALPHABET[0] == '\x01'
        assert config.event == "instructions"
        config.validate()

    @pytest.mark.parametrize("changes", [
        {"alphabet": ""},
        {"padding": "ab"},
        {"iterations": 0},
        {"threads": -1},
        {"max_length": 0},
    ])
    def test_invalid_values(self, changes):
        """Test rejection of invalid configuration values."""
        config = SolverConfig(exe_path="target", **changes)

        with pytest.raises(ConfigurationError):
            config.validate()


class TestIdleWorkers:
    """Workers wait quietly while no candidate is available."""

    def test_idle_workers_do_nothing(self, logger):
        """Test that workers wait without measuring before the first round."""
        coordinator = RoundCoordinator("abc", target_length=2)
        service = Mock()
        workers = [
            ProbeWorker(coordinator, ProbeBuilder(), service, logger, name=f"w{i}")
            for i in range(3)
        ]
        for worker in workers:
            worker.start()

        time.sleep(0.1)

        assert all(worker.is_alive() for worker in workers)
        assert coordinator.score_board == []
        service.run.assert_not_called()

        coordinator.abort(SolverException("stop"))
        for worker in workers:
            worker.join(timeout=1)

        assert all(not worker.is_alive() for worker in workers)

    def test_idle_between_dispatch_and_drain(self, logger):
        """Test that a worker waits while the last candidate is in flight."""
        coordinator = RoundCoordinator("a", target_length=2)
        coordinator.start_round()
        coordinator.next_candidate()
        service = Mock()
        worker = ProbeWorker(coordinator, ProbeBuilder(), service, logger)
        worker.start()

        time.sleep(0.05)

        service.run.assert_not_called()
        assert coordinator.score_board == []

        coordinator.abort(SolverException("stop"))
        worker.join(timeout=1)
        assert not worker.is_alive()
