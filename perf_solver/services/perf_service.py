"""
Measurement service backed by `perf stat`.

Implements IMeasurementService: runs the target under perf with one
probe and returns the counted event (executed instructions by default).
"""

import subprocess
from typing import List, Optional

from perf_solver.core.interfaces import IMeasurementService
from perf_solver.core.exceptions import MeasurementFailure
from perf_solver.utils.logger import Logger


DEFAULT_EVENT = "instructions"
FIELD_SEPARATOR = ","


def matches_event(name: str, event: str) -> bool:
    """
    Whether a perf event column names `event`.

    Plain hosts report "instructions:u"; hybrid hosts report one line per
    core type, e.g. "cpu_core/instructions/u" and "cpu_atom/instructions/u".
    """
    return name.startswith(event) or f"/{event}/" in name


def parse_output(output: str, event: str) -> int:
    """
    Extract the counter value from `perf stat -x ,` output.

    perf prints one CSV line per event: value, unit, event name, then
    run statistics. With -r the value is the mean over all runs and may
    carry a fractional part. On hybrid CPUs the core type that never ran
    the target reports "<not counted>"; the first line with a value wins.

    Args:
        output: Text perf wrote to stderr (target stderr may be mixed in)
        event: Event name that was requested

    Returns:
        Counter value rounded to an integer

    Raises:
        ValueError: If no usable counter line for `event` exists

    Example:
        >>> parse_output("123456,,instructions:u,1000,100.00,,\\n", "instructions")
        123456
    """
    status = None

    for line in output.splitlines():
        fields = line.strip().split(FIELD_SEPARATOR)
        if len(fields) < 3 or line.startswith("#"):
            continue
        if not matches_event(fields[2], event):
            continue

        value = fields[0].strip()
        if value.startswith("<"):
            status = value
            continue
        return int(round(float(value)))

    if status is not None:
        raise ValueError(f"event {event} reported {status}")
    raise ValueError(f"no counter line for event {event}")


class PerfMeasurementService(IMeasurementService):
    """
    Runs the target under `perf stat` and reads one counter.

    Each call launches a fresh process, so one instance can be shared by
    every worker thread.

    Example:
        >>> service = PerfMeasurementService("./crackme", iterations=3)
        >>> service.run("hunter2")
        181234
    """

    def __init__(
        self,
        exe_path: str,
        event: str = DEFAULT_EVENT,
        iterations: int = 1,
        use_stdin: bool = False,
        perf_path: str = "perf",
        timeout: Optional[float] = None,
        logger: Optional[Logger] = None
    ):
        """
        Initialize measurement service.

        Args:
            exe_path: Path of the target executable
            event: perf event to count
            iterations: Runs per measurement (perf -r), averaged by perf
            use_stdin: Deliver the probe on stdin instead of argv
            perf_path: perf binary to invoke
            timeout: Optional per-measurement timeout in seconds
            logger: Optional logger instance
        """
        self.exe_path = exe_path
        self.event = event
        self.iterations = iterations
        self.use_stdin = use_stdin
        self.perf_path = perf_path
        self.timeout = timeout
        self.logger = logger or Logger(name="PerfSolver.perf", console=False)

    def build_command(self, probe: str) -> List[str]:
        """Build the perf command line for one probe."""
        command = [
            self.perf_path, "stat",
            "-x", FIELD_SEPARATOR,
            "-e", self.event,
            "-r", str(self.iterations),
            "--", self.exe_path,
        ]
        if not self.use_stdin:
            command.append(probe)
        return command

    def run(self, probe: str) -> int:
        """
        Measure one probe.

        Args:
            probe: Full input for the target

        Returns:
            Counter reading for the configured event

        Raises:
            MeasurementFailure: If perf cannot run or reports no value
        """
        try:
            # The target's own exit status is meaningless here: wrong guesses fail
            completed = subprocess.run(
                self.build_command(probe),
                input=probe if self.use_stdin else None,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise MeasurementFailure(probe, str(e)) from e

        try:
            score = parse_output(completed.stderr, self.event)
        except ValueError as e:
            raise MeasurementFailure(probe, str(e)) from e

        self.logger.debug(f"Probe {probe!r}: {self.event}={score}")
        return score
