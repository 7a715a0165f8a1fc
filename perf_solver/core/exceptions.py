"""
Custom exceptions for the side-channel solver.

Provides specific, meaningful exceptions for the different ways a run
can stop early. The CLI maps each of them to its own exit status.
"""


class SolverException(Exception):
    """Base exception for all solver errors."""
    pass


class ConfigurationError(SolverException):
    """Raised when configuration is invalid or the host is not usable."""
    pass


class MeasurementFailure(SolverException):
    """Raised when the measurement backend fails or its output is unusable."""

    def __init__(self, probe: str, reason: str):
        self.probe = probe
        self.reason = reason
        super().__init__(f"Measurement failed for probe {probe!r}: {reason}")


class ConstraintMismatch(SolverException):
    """Raised when the discovered prefix contradicts a known-plaintext constraint."""

    def __init__(self, constraint: str, found: str, expected: str):
        self.constraint = constraint
        self.found = found
        self.expected = expected
        super().__init__(
            f"Found password and {constraint} argument don't match-up "
            f"(found: {found!r}, {constraint}: {expected!r})"
        )
