"""
Worker threads that score candidate characters.
"""

import threading
from typing import Optional

from perf_solver.core.interfaces import IMeasurementService
from perf_solver.core.exceptions import MeasurementFailure, SolverException
from perf_solver.attack.coordinator import RoundCoordinator
from perf_solver.services.probe_builder import ProbeBuilder
from perf_solver.utils.logger import Logger


class ProbeWorker(threading.Thread):
    """
    Long-lived worker: pop a candidate, measure it, record the score.

    Runs for the whole search rather than per round, and exits once the
    coordinator reports the run is over (done or aborted). A failed
    measurement aborts the entire run; nothing is retried.
    """

    def __init__(
        self,
        coordinator: RoundCoordinator,
        probe_builder: ProbeBuilder,
        measurement_service: IMeasurementService,
        logger: Optional[Logger] = None,
        name: Optional[str] = None
    ):
        # Daemon: an aborted run must not wait for in-progress measurements
        super().__init__(name=name, daemon=True)
        self.coordinator = coordinator
        self.probe_builder = probe_builder
        self.measurement_service = measurement_service
        self.logger = logger or Logger(name="PerfSolver.worker", console=False)
        self.measured = 0

    def run(self) -> None:
        while True:
            task = self.coordinator.next_candidate()
            if task is None:
                return

            prefix, character = task
            probe = self.probe_builder.prepare(prefix + character)

            try:
                score = int(self.measurement_service.run(probe))
            except SolverException as e:
                self.logger.error(f"{self.name}: {e}")
                self.coordinator.abort(e)
                return
            except Exception as e:
                self.logger.error(f"{self.name}: unexpected measurement error: {e}")
                self.coordinator.abort(MeasurementFailure(probe, str(e)))
                return

            self.measured += 1
            self.coordinator.record_score(score, character)
