"""
Side-channel solver orchestrator.

Implements ISolver: optionally discovers the password length, then runs
the round engine with a pool of worker threads until the discovered
prefix reaches that length.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from perf_solver.core.interfaces import ISolver, IMeasurementService, RoundOutcome
from perf_solver.core.exceptions import ConfigurationError
from perf_solver.attack.constraints import ConstraintValidator
from perf_solver.attack.coordinator import RoundCoordinator
from perf_solver.attack.worker import ProbeWorker
from perf_solver.services.length_service import LengthDiscovery
from perf_solver.services.perf_service import DEFAULT_EVENT
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger


DEFAULT_ALPHABET = "".join(chr(n) for n in range(0x01, 0x80))


@dataclass
class SolverConfig:
    """Configuration for one solver run."""
    exe_path: str = ""
    alphabet: str = DEFAULT_ALPHABET
    threads: int = 0            # 0 = one per CPU
    length: int = 0             # 0 = discover it
    max_length: int = 32
    padding: str = ""
    input_beg: str = ""
    input_end: str = ""
    iterations: int = 1
    event: str = DEFAULT_EVENT
    stdin: bool = False
    starts_with: str = ""
    ends_with: str = ""
    quiet: bool = False
    length_strategy: str = "deviation"

    def validate(self) -> None:
        """
        Check values that do not depend on the host.

        Raises:
            ConfigurationError: On the first invalid value
        """
        if not self.alphabet:
            raise ConfigurationError("Alphabet must not be empty")
        if len(self.padding) > 1:
            raise ConfigurationError(f"Padding must be a single character, got {self.padding!r}")
        if self.iterations < 1:
            raise ConfigurationError(f"Iterations must be at least 1, got {self.iterations}")
        if self.threads < 0:
            raise ConfigurationError(f"Threads must not be negative, got {self.threads}")
        if self.length < 0:
            raise ConfigurationError(f"Length must not be negative, got {self.length}")
        if self.max_length < 1:
            raise ConfigurationError(f"Max length must be at least 1, got {self.max_length}")


class SideChannelSolver(ISolver):
    """
    Character-by-character recovery driven by counter readings.

    Algorithm:
    1. Discover the length if it was not given
    2. Start N workers that stay alive for the whole search
    3. For each round:
        a. Seed the candidate set with the alphabet
        b. Workers measure prefix + candidate for every candidate
        c. The highest score wins (last recorded among ties)
        d. Check starts_with / ends_with against the new prefix
    4. Stop when the prefix has the target length

    Example:
        >>> config = SolverConfig(exe_path="./crackme", alphabet="abc", length=3)
        >>> solver = SideChannelSolver(config, PerfMeasurementService("./crackme"))
        >>> solver.solve()
        'cab'
    """

    def __init__(
        self,
        config: SolverConfig,
        measurement_service: IMeasurementService,
        length_discovery: Optional[LengthDiscovery] = None,
        logger: Optional[Logger] = None
    ):
        """
        Initialize solver.

        Args:
            config: Solver configuration
            measurement_service: Backend used to score character probes
            length_discovery: Used only when config.length is 0
            logger: Logger instance
        """
        self.config = config
        self.measurement_service = measurement_service
        self.length_discovery = length_discovery
        self.logger = logger or Logger(name="PerfSolver.solver", console=False)
        self.coordinator: Optional[RoundCoordinator] = None
        self.workers: List[ProbeWorker] = []

    def solve(self) -> str:
        """
        Run the search to completion.

        Returns:
            The discovered plaintext

        Raises:
            ConstraintMismatch: If starts_with/ends_with is contradicted
            MeasurementFailure: If any worker's measurement fails
        """
        self.config.validate()
        target_length = self.config.length or self._discover_length()

        validator = ConstraintValidator(
            target_length, self.config.starts_with, self.config.ends_with
        )
        probe_builder = ProbeBuilder(
            self.config.input_beg,
            self.config.input_end,
            target_length,
            self.config.padding,
        )
        self.coordinator = RoundCoordinator(self.config.alphabet, target_length, validator)

        threads = self.config.threads or os.cpu_count() or 1

        self.logger.info("Starting solver...")
        self.workers = [
            ProbeWorker(
                self.coordinator,
                probe_builder,
                self.measurement_service,
                self.logger,
                name=f"worker-{i}",
            )
            for i in range(threads)
        ]
        for worker in self.workers:
            worker.start()

        self.coordinator.start_round()

        while True:
            self.coordinator.await_drain()
            outcome = self.coordinator.resolve_round()

            if outcome is RoundOutcome.ABORT:
                raise self.coordinator.error

            self.logger.info(f"Currently found password: {self.coordinator.prefix}")

            if outcome is RoundOutcome.DONE:
                break

        for worker in self.workers:
            worker.join()

        return self.coordinator.prefix

    def _discover_length(self) -> int:
        """Run length discovery; a missing discovery service is a config error."""
        if self.length_discovery is None:
            raise ConfigurationError("Password length unknown and length discovery not configured")

        self.logger.info("No length found. Searching for length...")
        length = self.length_discovery.find_length(self.config.max_length)
        self.logger.info(
            f"Found length: {length}. Proceed with caution, the length might be wrong."
        )
        return length
